"""Chat backend: accounts, direct messages, realtime delivery and attachments."""

__version__ = "0.1.0"
