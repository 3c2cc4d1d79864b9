"""chatcontent: content classification, markdown parsing and conversation context for chat clients."""

__version__ = "0.1.0"
