from __future__ import annotations


class ImageZipperError(Exception):
    """Fatal error that terminates a run; ``stage`` names where it happened."""

    stage = "run"

    def __init__(self, message: str, code: str, *, stage: str | None = None) -> None:
        super().__init__(message)
        self.code = code
        if stage is not None:
            self.stage = stage


class ConfigError(ImageZipperError):
    stage = "config"


class InvalidRootError(ImageZipperError):
    stage = "walk"


class ArchiveBuildError(ImageZipperError):
    stage = "archive"

    def __init__(self, message: str, code: str, *, path: str | None = None) -> None:
        super().__init__(message, code)
        self.path = path


class DeliveryError(ImageZipperError):
    stage = "delivery"


class SizeLimitExceededError(DeliveryError):
    def __init__(self, message: str, code: str, *, size_bytes: int, limit_bytes: int) -> None:
        super().__init__(message, code)
        self.size_bytes = size_bytes
        self.limit_bytes = limit_bytes
