from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

from dotenv import load_dotenv

from ..cli.services.delivery_service import DEFAULT_MAX_ARCHIVE_BYTES
from ..scanner.errors import ConfigError
from ..scanner.models import ScanOptions, default_worker_count

TOKEN_ENV = "TELEGRAM_BOT_TOKEN"
CHAT_ID_ENV = "TELEGRAM_CHAT_ID"
MESSAGE_ENV = "IMAGEZIPPER_MESSAGE"
MAX_WORKERS_ENV = "IMAGEZIPPER_MAX_WORKERS"

DEFAULT_LOCATION = "."
DEFAULT_OUTPUT = "images.zip"


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Settings for one invocation, resolved once and passed to every component."""

    location: Path = Path(DEFAULT_LOCATION)
    output: Path = Path(DEFAULT_OUTPUT)
    telegram_token: Optional[str] = None
    telegram_chat_id: Optional[str] = None
    message: Optional[str] = None
    debug: bool = False
    silence: bool = False
    max_workers: int = field(default_factory=default_worker_count)
    max_archive_bytes: int = DEFAULT_MAX_ARCHIVE_BYTES

    def __post_init__(self) -> None:
        if bool(self.telegram_token) != bool(self.telegram_chat_id):
            raise ConfigError(
                "Both a Telegram bot token and a chat ID are required to deliver the archive.",
                "INVALID_CONFIG",
            )
        if self.max_workers < 1:
            raise ConfigError("Worker count must be at least 1.", "INVALID_CONFIG")
        if self.max_archive_bytes <= 0:
            raise ConfigError("Maximum archive size must be positive.", "INVALID_CONFIG")

    @property
    def delivery_enabled(self) -> bool:
        return bool(self.telegram_token and self.telegram_chat_id)

    def to_scan_options(self) -> ScanOptions:
        return ScanOptions(
            max_workers=self.max_workers,
            suppress_errors=self.silence,
            debug=self.debug,
        )

    def message_for(self, image_count: int) -> str:
        if self.message:
            return self.message
        return f"Zipped {image_count} images into {self.output.name}"


def load_config(args: Any = None, environ: Mapping[str, str] | None = None) -> AppConfig:
    """
    Build an AppConfig from parsed CLI arguments, falling back to the environment.

    ``args`` is typically an argparse.Namespace; missing attributes are treated
    as unset. A ``.env`` file in the working directory is loaded first when no
    explicit ``environ`` mapping is supplied.
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    def arg(name: str, default: Any = None) -> Any:
        value = getattr(args, name, None) if args is not None else None
        return default if value is None else value

    max_workers = arg("workers")
    if max_workers is None:
        max_workers = _int_from_env(environ, MAX_WORKERS_ENV, default_worker_count())

    max_archive_mb = arg("max_archive_mb")
    max_archive_bytes = (
        int(max_archive_mb * 1024 * 1024) if max_archive_mb is not None else DEFAULT_MAX_ARCHIVE_BYTES
    )

    return AppConfig(
        location=Path(arg("location", DEFAULT_LOCATION)),
        output=Path(arg("output", DEFAULT_OUTPUT)),
        telegram_token=arg("token") or environ.get(TOKEN_ENV) or None,
        telegram_chat_id=arg("chat_id") or environ.get(CHAT_ID_ENV) or None,
        message=arg("message") or environ.get(MESSAGE_ENV) or None,
        debug=bool(arg("debug", False)),
        silence=bool(arg("silence", False)),
        max_workers=max_workers,
        max_archive_bytes=max_archive_bytes,
    )


def _int_from_env(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = environ.get(key)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{key} must be an integer, got {raw!r}", "INVALID_CONFIG") from exc
