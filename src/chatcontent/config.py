"""Central configuration for paths and constants."""

import os
from pathlib import Path

# Data directory, override with CHATCONTENT_DATA_DIR env var
DATA_DIR = Path(
    os.environ.get("CHATCONTENT_DATA_DIR", str(Path.home() / ".chatcontent"))
)

# Database path
SQLITE_PATH = DATA_DIR / "conversations.db"

# Context window
RECENT_MESSAGE_COUNT = 6  # Most recent non-error messages sent upstream

# Rolling summary
SUMMARY_UPDATE_THRESHOLD = 6  # Messages since last summary before refreshing
SUMMARY_MESSAGE_CHARS = 500  # Per-message limit inside the summary prompt

# Conversations
DEFAULT_TITLE = "New Chat"
TITLE_MAX_CHARS = 30

# Guard against pathological nesting in the markdown parser
MAX_NESTING_DEPTH = 32
