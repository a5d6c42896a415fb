"""Tests for the Telegram Bot API client (telegram_client.py).

These tests verify:
- TelegramClient initialization and configuration
- send_message() for POST /bot{token}/sendMessage
- send_document() multipart uploads for POST /bot{token}/sendDocument
- Error handling for connection failures and rejected requests
"""

from pathlib import Path
from unittest.mock import Mock, patch

import httpx
import pytest

from imagezipper.cli.services.telegram_client import (
    TelegramClient,
    TelegramClientError,
    TelegramConnectionError,
    TelegramRequestError,
)


def _response(status_code: int = 200, payload=None, text: str = "") -> Mock:
    response = Mock()
    response.status_code = status_code
    if payload is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = payload
    response.text = text
    return response


class TestTelegramClientInit:
    """Tests for TelegramClient initialization."""

    def test_default_base_url(self):
        """Client should default to the public Bot API."""
        client = TelegramClient("TOKEN", "42")
        assert client.base_url == "https://api.telegram.org"
        client.close()

    def test_base_url_from_env(self, monkeypatch):
        """Client should use TELEGRAM_API_URL environment variable."""
        monkeypatch.setenv("TELEGRAM_API_URL", "http://bot-api.local:8081")
        client = TelegramClient("TOKEN", "42")
        assert client.base_url == "http://bot-api.local:8081"
        client.close()

    def test_base_url_strips_trailing_slash(self):
        """Client should strip trailing slash from base URL."""
        client = TelegramClient("TOKEN", "42", base_url="http://example.com/")
        assert client.base_url == "http://example.com"
        client.close()

    def test_context_manager_closes_http_client(self):
        """Leaving the context should close the underlying httpx client."""
        with TelegramClient("TOKEN", "42") as client:
            http_client = client._get_client()
        assert http_client.is_closed
        assert client._client is None

    def test_errors_share_base_class(self):
        assert issubclass(TelegramConnectionError, TelegramClientError)
        assert issubclass(TelegramRequestError, TelegramClientError)


class TestSendMessage:
    """Tests for TelegramClient.send_message()."""

    @patch("imagezipper.cli.services.telegram_client.httpx.Client")
    def test_send_message_success(self, mock_client_class):
        """Should post chat_id and text as JSON to sendMessage."""
        mock_client = Mock()
        mock_client.post.return_value = _response(200, {"ok": True, "result": {"message_id": 7}})
        mock_client_class.return_value = mock_client

        client = TelegramClient("TOKEN", "42")
        result = client.send_message("Zipped 2 images")

        assert result == {"message_id": 7}
        call_args = mock_client.post.call_args
        assert call_args[0][0] == "/botTOKEN/sendMessage"
        assert call_args[1]["json"] == {"chat_id": "42", "text": "Zipped 2 images"}

    @patch("imagezipper.cli.services.telegram_client.httpx.Client")
    def test_send_message_rejected(self, mock_client_class):
        """Should surface the Bot API description verbatim."""
        mock_client = Mock()
        mock_client.post.return_value = _response(
            400, {"ok": False, "description": "Bad Request: chat not found"}
        )
        mock_client_class.return_value = mock_client

        client = TelegramClient("TOKEN", "42")
        with pytest.raises(TelegramRequestError) as exc_info:
            client.send_message("hi")

        assert exc_info.value.status_code == 400
        assert exc_info.value.detail == "Bad Request: chat not found"
        assert "status code: 400" in str(exc_info.value)

    @patch("imagezipper.cli.services.telegram_client.httpx.Client")
    def test_send_message_ok_false(self, mock_client_class):
        """A 200 with ok=false is still a failure."""
        mock_client = Mock()
        mock_client.post.return_value = _response(200, {"ok": False, "description": "nope"})
        mock_client_class.return_value = mock_client

        client = TelegramClient("TOKEN", "42")
        with pytest.raises(TelegramRequestError):
            client.send_message("hi")

    @patch("imagezipper.cli.services.telegram_client.httpx.Client")
    def test_send_message_non_json_error(self, mock_client_class):
        """Should fall back to the raw body when the response is not JSON."""
        mock_client = Mock()
        mock_client.post.return_value = _response(502, None, text="Bad Gateway")
        mock_client_class.return_value = mock_client

        client = TelegramClient("TOKEN", "42")
        with pytest.raises(TelegramRequestError) as exc_info:
            client.send_message("hi")

        assert exc_info.value.detail == "Bad Gateway"

    @patch("imagezipper.cli.services.telegram_client.httpx.Client")
    def test_send_message_connection_error(self, mock_client_class):
        """Should raise TelegramConnectionError on connection failure."""
        mock_client = Mock()
        mock_client.post.side_effect = httpx.ConnectError("Connection refused")
        mock_client_class.return_value = mock_client

        client = TelegramClient("TOKEN", "42")
        with pytest.raises(TelegramConnectionError) as exc_info:
            client.send_message("hi")

        assert "Unable to connect" in str(exc_info.value)

    @patch("imagezipper.cli.services.telegram_client.httpx.Client")
    def test_send_message_timeout(self, mock_client_class):
        """Should raise TelegramConnectionError on timeout."""
        mock_client = Mock()
        mock_client.post.side_effect = httpx.ReadTimeout("timed out")
        mock_client_class.return_value = mock_client

        client = TelegramClient("TOKEN", "42")
        with pytest.raises(TelegramConnectionError) as exc_info:
            client.send_message("hi")

        assert "timed out" in str(exc_info.value)

    @pytest.mark.parametrize(
        "error",
        [httpx.ReadError("connection reset"), httpx.WriteError("broken pipe")],
    )
    @patch("imagezipper.cli.services.telegram_client.httpx.Client")
    def test_send_message_other_transport_errors(self, mock_client_class, error):
        """Should raise TelegramConnectionError for any other transport failure."""
        mock_client = Mock()
        mock_client.post.side_effect = error
        mock_client_class.return_value = mock_client

        client = TelegramClient("TOKEN", "42")
        with pytest.raises(TelegramConnectionError) as exc_info:
            client.send_message("hi")

        assert "Request to Telegram failed" in str(exc_info.value)

    @patch("imagezipper.cli.services.telegram_client.httpx.Client")
    def test_empty_chat_id_rejected_before_request(self, mock_client_class):
        """Should refuse to send without a chat ID."""
        mock_client = Mock()
        mock_client_class.return_value = mock_client

        client = TelegramClient("TOKEN", "")
        with pytest.raises(TelegramRequestError) as exc_info:
            client.send_message("hi")

        assert str(exc_info.value) == "chat_id is empty"
        mock_client.post.assert_not_called()


class TestSendDocument:
    """Tests for TelegramClient.send_document()."""

    @patch("imagezipper.cli.services.telegram_client.httpx.Client")
    def test_send_document_uploads_file(self, mock_client_class, tmp_path: Path):
        """Should upload the archive as multipart field 'document'."""
        archive = tmp_path / "images.zip"
        archive.write_bytes(b"PK\x05\x06" + b"\x00" * 18)
        captured = {}

        def fake_post(url, **kwargs):
            name, handle, content_type = kwargs["files"]["document"]
            captured["url"] = url
            captured["name"] = name
            captured["body"] = handle.read()
            captured["content_type"] = content_type
            captured["data"] = kwargs["data"]
            return _response(200, {"ok": True, "result": {"document": {"file_id": "abc"}}})

        mock_client = Mock()
        mock_client.post.side_effect = fake_post
        mock_client_class.return_value = mock_client

        client = TelegramClient("TOKEN", "42")
        result = client.send_document(archive, caption="weekly export")

        assert result == {"document": {"file_id": "abc"}}
        assert captured["url"] == "/botTOKEN/sendDocument"
        assert captured["name"] == "images.zip"
        assert captured["body"] == archive.read_bytes()
        assert captured["content_type"] == "application/zip"
        assert captured["data"] == {"chat_id": "42", "caption": "weekly export"}

    @patch("imagezipper.cli.services.telegram_client.httpx.Client")
    def test_send_document_without_caption(self, mock_client_class, tmp_path: Path):
        archive = tmp_path / "images.zip"
        archive.write_bytes(b"zip")
        mock_client = Mock()
        mock_client.post.return_value = _response(200, {"ok": True, "result": {}})
        mock_client_class.return_value = mock_client

        TelegramClient("TOKEN", "42").send_document(archive)

        assert mock_client.post.call_args[1]["data"] == {"chat_id": "42"}

    @patch("imagezipper.cli.services.telegram_client.httpx.Client")
    def test_send_document_missing_file(self, mock_client_class, tmp_path: Path):
        """Should raise before any request when the file cannot be opened."""
        mock_client = Mock()
        mock_client_class.return_value = mock_client

        client = TelegramClient("TOKEN", "42")
        with pytest.raises(TelegramRequestError) as exc_info:
            client.send_document(tmp_path / "missing.zip")

        assert "error opening file" in str(exc_info.value)
        mock_client.post.assert_not_called()

    @patch("imagezipper.cli.services.telegram_client.httpx.Client")
    def test_send_document_rejected(self, mock_client_class, tmp_path: Path):
        archive = tmp_path / "images.zip"
        archive.write_bytes(b"zip")
        mock_client = Mock()
        mock_client.post.return_value = _response(
            413, {"ok": False, "description": "Request Entity Too Large"}
        )
        mock_client_class.return_value = mock_client

        with pytest.raises(TelegramRequestError) as exc_info:
            TelegramClient("TOKEN", "42").send_document(archive)

        assert exc_info.value.status_code == 413

    @patch("imagezipper.cli.services.telegram_client.httpx.Client")
    def test_send_document_dropped_connection(self, mock_client_class, tmp_path: Path):
        """Any transport failure mid-upload surfaces as TelegramConnectionError."""
        archive = tmp_path / "images.zip"
        archive.write_bytes(b"zip")
        mock_client = Mock()
        mock_client.post.side_effect = httpx.RemoteProtocolError("Server disconnected without sending a response.")
        mock_client_class.return_value = mock_client

        with pytest.raises(TelegramConnectionError) as exc_info:
            TelegramClient("TOKEN", "42").send_document(archive)

        assert "Server disconnected" in str(exc_info.value)

    @pytest.mark.parametrize("payload", [[], "error"])
    @patch("imagezipper.cli.services.telegram_client.httpx.Client")
    def test_send_document_non_object_body(self, mock_client_class, payload, tmp_path: Path):
        """A JSON body that is not an object falls back to the raw text."""
        archive = tmp_path / "images.zip"
        archive.write_bytes(b"zip")
        mock_client = Mock()
        mock_client.post.return_value = _response(502, payload, text="upstream proxy error")
        mock_client_class.return_value = mock_client

        with pytest.raises(TelegramRequestError) as exc_info:
            TelegramClient("TOKEN", "42").send_document(archive)

        assert exc_info.value.status_code == 502
        assert exc_info.value.detail == "upstream proxy error"
