"""
Pytest configuration and fixtures
"""
from __future__ import annotations

import io
from pathlib import Path
from typing import Callable

import pytest
from PIL import Image


def image_bytes(fmt: str, size: tuple[int, int] = (16, 8)) -> bytes:
    """Encode a small solid-colour image with Pillow."""
    buffer = io.BytesIO()
    Image.new("RGB", size, color=(123, 45, 67)).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep real Telegram credentials and .env files out of every test."""
    for key in (
        "TELEGRAM_BOT_TOKEN",
        "TELEGRAM_CHAT_ID",
        "TELEGRAM_API_URL",
        "IMAGEZIPPER_MESSAGE",
        "IMAGEZIPPER_MAX_WORKERS",
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr("imagezipper.config.settings.load_dotenv", lambda *args, **kwargs: False)


@pytest.fixture
def make_image() -> Callable[..., Path]:
    def _make(path: Path, fmt: str = "PNG", size: tuple[int, int] = (16, 8)) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(image_bytes(fmt, size))
        return path

    return _make


@pytest.fixture
def sample_tree(tmp_path: Path, make_image) -> tuple[Path, set[str]]:
    """``a.jpg`` (JPEG), ``sub/b.txt`` (text) and ``sub/c.png`` (PNG) under one root."""
    root = tmp_path / "tree"
    jpeg = make_image(root / "a.jpg", "JPEG")
    (root / "sub").mkdir(parents=True)
    (root / "sub" / "b.txt").write_text("plain text, nothing to see here\n")
    png = make_image(root / "sub" / "c.png", "PNG")
    return root, {str(jpeg), str(png)}
