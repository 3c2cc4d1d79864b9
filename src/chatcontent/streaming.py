"""Server-sent-event framing and assembly of streamed assistant replies.

Frames are ``data: <json>\\n\\n`` lines terminated by ``data: [DONE]``. A frame
payload carries one of:

- ``text``: the next piece of the assistant reply
- ``updatedSummary``: ``{text, messageCountAtUpdate}`` after a summary refresh
- ``error``: a user-facing message, with ``code`` and optional ``status``

The assistant message is classified only once the stream has finished, never
per chunk.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Callable, Iterable, Iterator

from pydantic import ValidationError

from .config import RECENT_MESSAGE_COUNT
from .content import analyze_content
from .context import build_context
from .errors import StreamError
from .models import ChatRequest, ConversationSummary, Message
from .session import ChatState
from .summary import refresh_summary

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_MARKER = "[DONE]"
DONE_EVENT = f"{DATA_PREFIX}{DONE_MARKER}\n\n"

_DONE = object()


def encode_event(payload: dict) -> str:
    return f"{DATA_PREFIX}{json.dumps(payload)}\n\n"


def iter_events(chunks: Iterable[str]) -> Iterator[dict]:
    """Decode SSE payloads from raw chunks (newlines included), which may split lines anywhere.

    Non-data lines and undecodable payloads are skipped; ``[DONE]`` ends the
    stream.
    """
    buffer = ""
    for chunk in chunks:
        buffer += chunk
        *lines, buffer = buffer.split("\n")
        for line in lines:
            event = _decode_line(line)
            if event is _DONE:
                return
            if event is not None:
                yield event

    event = _decode_line(buffer)
    if event is not None and event is not _DONE:
        yield event


def _decode_line(line: str) -> dict | object | None:
    line = line.rstrip("\r")
    if not line.startswith(DATA_PREFIX):
        return None
    data = line[len(DATA_PREFIX):].strip()
    if data == DONE_MARKER:
        return _DONE
    try:
        payload = json.loads(data)
    except json.JSONDecodeError:
        logger.debug("Skipping undecodable stream payload: %r", data[:80])
        return None
    return payload if isinstance(payload, dict) else None


class CancellationToken:
    """Thread-safe stop flag checked by the consumer between chunks."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class StreamConsumer:
    """Drives one exchange against a ChatState: request, stream, finalize.

    Usage::

        consumer = StreamConsumer(state)
        request = consumer.begin("hello")
        consumer.consume(iter_events(response_chunks), token)
    """

    def __init__(self, state: ChatState, recent_count: int = RECENT_MESSAGE_COUNT):
        self.state = state
        self.recent_count = recent_count
        self.conversation_id: str | None = None
        self.assistant_id: str | None = None

    def begin(self, content: str) -> ChatRequest | None:
        """Add the user message and an empty streaming reply; return the request to send.

        Returns None when there is nothing to send or a request is in flight.
        """
        conv = self.state.active_conversation
        if not content.strip() or self.state.is_loading or conv is None:
            return None

        # Context is taken before the new user message is added
        context = build_context(self.state.snapshot(conv.id), self.recent_count)

        self.conversation_id = conv.id
        self.state.add_message(Message(role="user", content=content.strip()), conv.id)
        assistant = self.state.add_message(Message(role="assistant", status="streaming"), conv.id)
        self.assistant_id = assistant.id
        self.state.is_loading = True
        self.state.error = None

        return ChatRequest(message=content, context=context)

    def _add_error_message(self, text: str):
        self.state.add_message(
            Message(role="assistant", content=text, status="error", is_error=True),
            self.conversation_id,
        )
        self.state.error = text

    def consume(self, events: Iterable[dict], token: CancellationToken | None = None) -> Message | None:
        """Apply stream events to the in-progress reply.

        Returns the final assistant message, or None when it was removed
        because the stream failed before producing any text.
        """
        full_content = ""
        received = False
        errored = False
        cancelled = False

        try:
            for event in events:
                if token is not None and token.cancelled:
                    cancelled = True
                    break

                text = event.get("text")
                if isinstance(text, str) and text:
                    received = True
                    full_content += text
                    self.state.update_message(
                        self.assistant_id, self.conversation_id, persist=False, content=full_content
                    )
                elif text:
                    logger.debug("Ignoring non-text delta: %r", text)

                update = event.get("updatedSummary")
                if update:
                    try:
                        summary = ConversationSummary.model_validate(update)
                    except ValidationError:
                        logger.warning("Ignoring malformed summary update: %r", update)
                    else:
                        self.state.update_summary(self.conversation_id, summary)

                error = event.get("error")
                if error:
                    errored = True
                    logger.warning("Stream reported error: %s (%s)", error, event.get("code"))
                    if received:
                        self.state.update_message(self.assistant_id, self.conversation_id, status="stopped")
                    else:
                        self.state.delete_message(self.assistant_id, self.conversation_id)
                    self._add_error_message(str(error))
        finally:
            self.state.is_loading = False

        if cancelled and not errored:
            logger.debug("Stream cancelled after %d characters", len(full_content))
            return self.state.update_message(self.assistant_id, self.conversation_id, status="stopped")

        if errored:
            return self._current_assistant()

        parsed, fmt = analyze_content(full_content)
        return self.state.update_message(
            self.assistant_id,
            self.conversation_id,
            status="complete",
            format=fmt,
            parsed_content=parsed,
        )

    def fail(self, message: str):
        """Transport failure before or during the stream: drop the reply, record the error."""
        self.state.delete_message(self.assistant_id, self.conversation_id)
        self._add_error_message(message)
        self.state.is_loading = False

    def run(
        self,
        content: str,
        transport: Callable[[ChatRequest], Iterable[str]],
        token: CancellationToken | None = None,
    ) -> Message | None:
        """Full exchange: begin, send through ``transport``, consume its raw chunks."""
        request = self.begin(content)
        if request is None:
            return None

        try:
            return self.consume(iter_events(transport(request)), token)
        except StreamError as e:
            self.fail(e.message)
        except Exception as e:
            logger.warning("Chat transport failed", exc_info=True)
            self.fail(str(e).split("\n")[0][:200] or "An unexpected error occurred")
        return None

    def _current_assistant(self) -> Message | None:
        conv = self.state.get(self.conversation_id)
        for msg in conv.messages:
            if msg.id == self.assistant_id:
                return msg
        return None


def respond(
    request: ChatRequest,
    reply_chunks: Iterable[str],
    summarize: Callable[[str], str] | None = None,
) -> Iterator[str]:
    """Produce the SSE frames for one reply, as the chat endpoint sends them.

    ``reply_chunks`` yields the model's text deltas; ``summarize`` is the model
    call used when the rolling summary is due.
    """
    full_response = ""
    try:
        for text in reply_chunks:
            if text:
                full_response += text
                yield encode_event({"text": text})

        if request.context is not None and summarize is not None:
            update = refresh_summary(request.context, request.message, full_response, summarize)
            if update is not None:
                yield encode_event({"updatedSummary": update.to_wire()})

        yield DONE_EVENT
    except StreamError as e:
        yield encode_event(e.to_event())
    except Exception as e:
        logger.warning("Model stream failed", exc_info=True)
        yield encode_event(StreamError(str(e).split("\n")[0][:200]).to_event())
