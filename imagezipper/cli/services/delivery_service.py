from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

from ...scanner.errors import DeliveryError, SizeLimitExceededError
from ..display import format_bytes
from .telegram_client import TelegramClientError

DEFAULT_MAX_ARCHIVE_BYTES = 20 * 1024 * 1024  # Bot API upload ceiling for documents.

logger = logging.getLogger(__name__)


class DeliveryClient(Protocol):
    chat_id: str

    def send_message(self, text: str) -> Dict[str, Any]: ...

    def send_document(self, path: Path, caption: Optional[str] = None) -> Dict[str, Any]: ...


@dataclass(slots=True)
class DeliveryReceipt:
    archive_path: Path
    size_bytes: int
    chat_id: str
    message_sent: bool = False
    document_sent: bool = False


class DeliveryGate:
    """Size-check an archive, then notify and upload it through ``client``."""

    def __init__(self, client: DeliveryClient, max_bytes: int = DEFAULT_MAX_ARCHIVE_BYTES) -> None:
        self.client = client
        self.max_bytes = max_bytes

    def check_size(self, archive_path: Path) -> int:
        try:
            size = Path(archive_path).stat().st_size
        except OSError as exc:
            raise DeliveryError(f"Error getting zip file stats: {exc}", "ARCHIVE_STAT_FAILED") from exc
        if size > self.max_bytes:
            raise SizeLimitExceededError(
                f"The zip file is too large to send ({size} bytes, limit {format_bytes(self.max_bytes)}).",
                "ARCHIVE_TOO_LARGE",
                size_bytes=size,
                limit_bytes=self.max_bytes,
            )
        return size

    def deliver(self, archive_path: Path, message: str) -> DeliveryReceipt:
        size = self.check_size(archive_path)
        receipt = DeliveryReceipt(archive_path=Path(archive_path), size_bytes=size, chat_id=self.client.chat_id)

        try:
            self.client.send_message(message)
            receipt.message_sent = True
            self.client.send_document(Path(archive_path), caption=message)
            receipt.document_sent = True
        except TelegramClientError as exc:
            step = "file" if receipt.message_sent else "message"
            raise DeliveryError(f"Error sending {step} to Telegram: {exc}", "DELIVERY_FAILED") from exc

        logger.info("Delivered %s (%d bytes) to chat %s", archive_path, size, receipt.chat_id)
        return receipt
