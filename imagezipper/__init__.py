"""Find image files by content, zip them and optionally ship the archive to Telegram."""

__version__ = "0.3.0"
