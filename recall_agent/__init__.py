"""Conversational agent backend with semantic long-term memory."""

__version__ = "0.1.0"
