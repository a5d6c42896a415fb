"""HTTP client for the Telegram Bot API.

Only the two calls the delivery gate needs are wrapped:
- POST /bot{token}/sendMessage - Post a text notification to a chat
- POST /bot{token}/sendDocument - Upload a file (multipart) to a chat

Failures are raised as-is; callers decide whether to retry (the CLI never does).
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)


class TelegramClientError(Exception):
    """Base exception for Telegram client errors."""
    pass


class TelegramConnectionError(TelegramClientError):
    """Raised when the Bot API cannot be reached."""
    pass


class TelegramRequestError(TelegramClientError):
    """Raised when the Bot API rejects a request."""
    def __init__(self, message: str, status_code: Optional[int] = None, detail: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class TelegramClient:
    """Minimal Bot API client bound to a single chat.

    Example usage:
        with TelegramClient(token, chat_id) as client:
            client.send_message("Zipped 12 images")
            client.send_document(Path("images.zip"), caption="weekly export")
    """

    DEFAULT_BASE_URL = "https://api.telegram.org"
    DEFAULT_TIMEOUT = 30.0  # seconds

    def __init__(
        self,
        token: str,
        chat_id: str,
        base_url: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """Initialize the client.

        Args:
            token: Bot token issued by BotFather.
            chat_id: Destination chat ID.
            base_url: Bot API server. Defaults to TELEGRAM_API_URL env var
                     or https://api.telegram.org.
            timeout: Request timeout in seconds.
        """
        self.token = token
        self.chat_id = chat_id
        self.base_url = (
            base_url
            or os.environ.get("TELEGRAM_API_URL")
            or self.DEFAULT_BASE_URL
        ).rstrip("/")
        self.timeout = timeout
        self._client: Optional[httpx.Client] = None

    def _get_client(self) -> httpx.Client:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.Client(
                base_url=self.base_url,
                timeout=self.timeout,
            )
        return self._client

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> "TelegramClient":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def send_message(self, text: str) -> Dict[str, Any]:
        """Send a text message to the configured chat.

        Returns:
            The ``result`` object from the Bot API response.

        Raises:
            TelegramConnectionError: If the API cannot be reached.
            TelegramRequestError: If the chat ID is empty or the API rejects the call.
        """
        self._require_chat()
        payload = {"chat_id": self.chat_id, "text": text}
        response = self._post("sendMessage", json=payload)
        return self._unwrap(response, "send message")

    def send_document(self, path: Path, caption: Optional[str] = None) -> Dict[str, Any]:
        """Upload a file to the configured chat as a document.

        The file handle is passed straight to httpx so the multipart body is
        streamed from disk.
        """
        self._require_chat()
        document = Path(path)
        data = {"chat_id": self.chat_id}
        if caption:
            data["caption"] = caption

        try:
            handle = document.open("rb")
        except OSError as exc:
            raise TelegramRequestError(f"error opening file: {exc}") from exc

        with handle:
            files = {"document": (document.name, handle, "application/zip")}
            response = self._post("sendDocument", data=data, files=files)
        return self._unwrap(response, "send file")

    def _require_chat(self) -> None:
        if not self.chat_id:
            raise TelegramRequestError("chat_id is empty")

    def _post(self, method: str, **kwargs: Any) -> httpx.Response:
        try:
            return self._get_client().post(f"/bot{self.token}/{method}", **kwargs)
        except httpx.ConnectError as exc:
            raise TelegramConnectionError(
                f"Unable to connect to Telegram at {self.base_url}: {exc}"
            ) from exc
        except httpx.TimeoutException as exc:
            raise TelegramConnectionError(
                f"Request to Telegram timed out: {exc}"
            ) from exc
        except httpx.TransportError as exc:
            raise TelegramConnectionError(
                f"Request to Telegram failed: {exc}"
            ) from exc

    def _unwrap(self, response: httpx.Response, action: str) -> Dict[str, Any]:
        body: Dict[str, Any] = {}
        try:
            parsed = response.json()
        except ValueError:
            parsed = None
        if isinstance(parsed, dict):
            body = parsed

        if response.status_code == 200 and body.get("ok", True):
            logger.debug("Telegram %s succeeded for chat %s", action, self.chat_id)
            return body.get("result") or {}

        detail = body.get("description") or response.text
        raise TelegramRequestError(
            f"failed to {action}, status code: {response.status_code}, response: {detail}",
            status_code=response.status_code,
            detail=detail,
        )
