from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple, TypeVar

from ...config.settings import AppConfig
from ...scanner.models import ScanIssue, WalkResult
from ...scanner.walker import TreeWalker
from ..archive_utils import ArchiveSummary, build_archive
from .delivery_service import DeliveryClient, DeliveryGate, DeliveryReceipt
from .telegram_client import TelegramClient

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ScanRunResult:
    """Artifacts returned after a successful run."""

    walk: WalkResult
    archive: Optional[ArchiveSummary] = None
    delivery: Optional[DeliveryReceipt] = None
    timings: List[Tuple[str, float]] = field(default_factory=list)


class ScanService:
    """Run the walk -> archive -> delivery pipeline for one configuration."""

    def __init__(
        self,
        config: AppConfig,
        *,
        client_factory: Callable[[AppConfig], DeliveryClient] | None = None,
    ) -> None:
        self.config = config
        self._client_factory = client_factory or _telegram_client

    def run(
        self,
        progress_callback: Callable[[str], None] | None = None,
        *,
        on_discovered: Callable[[str], None] | None = None,
        on_issue: Callable[[ScanIssue], None] | None = None,
    ) -> ScanRunResult:
        """Execute the pipeline; fatal stage failures propagate as ImageZipperError."""

        timings: list[Tuple[str, float]] = []

        def _report_progress(message: str) -> None:
            if progress_callback:
                try:
                    progress_callback(message)
                except Exception:
                    logger.debug("Progress callback failed", exc_info=True)

        def _run_step(message: str, label: str, func: Callable[[], T]) -> T:
            _report_progress(message)
            start = time.perf_counter()
            try:
                return func()
            finally:
                timings.append((label, time.perf_counter() - start))

        walker = TreeWalker(self.config.to_scan_options())
        walk_result = _run_step(
            f"Searching {self.config.location} for images…",
            "walk",
            lambda: walker.walk(self.config.location, on_discovered=on_discovered, on_issue=on_issue),
        )
        result = ScanRunResult(walk=walk_result, timings=timings)

        paths = walk_result.paths
        if not paths:
            logger.info("No image files found under %s", self.config.location)
            return result

        result.archive = _run_step(
            f"Zipping {len(paths)} images…",
            "archive",
            lambda: build_archive(paths, self.config.output),
        )

        if not self.config.delivery_enabled:
            logger.info("Telegram delivery not configured; leaving %s on disk", self.config.output)
            return result

        message = self.config.message_for(len(result.archive.entries))
        result.delivery = _run_step(
            "Sending archive to Telegram…",
            "delivery",
            lambda: self._deliver(result.archive, message),
        )
        return result

    def _deliver(self, archive: ArchiveSummary, message: str) -> DeliveryReceipt:
        client = self._client_factory(self.config)
        try:
            gate = DeliveryGate(client, max_bytes=self.config.max_archive_bytes)
            return gate.deliver(archive.archive_path, message)
        finally:
            close = getattr(client, "close", None)
            if close is not None:
                close()


def _telegram_client(config: AppConfig) -> TelegramClient:
    return TelegramClient(config.telegram_token or "", config.telegram_chat_id or "")
