from __future__ import annotations

import os
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple


def default_worker_count() -> int:
    # Same heuristic ThreadPoolExecutor uses when max_workers is None.
    return min(32, (os.cpu_count() or 1) + 4)


class IssueSeverity(str, Enum):
    recoverable = "recoverable"
    fatal = "fatal"


@dataclass(frozen=True, slots=True)
class DirectoryEntry:
    name: str
    path: str
    is_dir: bool
    is_file: bool = False
    size: int = 0


@dataclass(frozen=True, slots=True)
class ImageFileRecord:
    path: str
    size_bytes: int = 0


@dataclass(frozen=True, slots=True)
class ScanIssue:
    path: str
    code: str
    message: str
    severity: IssueSeverity = IssueSeverity.recoverable

    @property
    def is_recoverable(self) -> bool:
        return self.severity is IssueSeverity.recoverable


@dataclass(frozen=True, slots=True)
class ScanOptions:
    """
    Walker settings resolved from the application configuration.

    ``suppress_errors`` only mutes the error channel; issues are still
    collected on the WalkResult.
    """

    max_workers: int = field(default_factory=default_worker_count)
    suppress_errors: bool = False
    debug: bool = False

    def __post_init__(self) -> None:
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")


class ResultCollection:
    """Append-only set of image records shared by concurrent walker tasks."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: Dict[str, ImageFileRecord] = {}
        self._frozen: Optional[Tuple[ImageFileRecord, ...]] = None

    def add(self, record: ImageFileRecord) -> bool:
        """Insert ``record``; returns False when its path is already present."""
        with self._lock:
            if self._frozen is not None:
                raise RuntimeError("ResultCollection is frozen")
            if record.path in self._records:
                return False
            self._records[record.path] = record
            return True

    def freeze(self) -> Tuple[ImageFileRecord, ...]:
        with self._lock:
            if self._frozen is None:
                self._frozen = tuple(self._records.values())
            return self._frozen

    @property
    def frozen(self) -> bool:
        return self._frozen is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, path: object) -> bool:
        with self._lock:
            return path in self._records


@dataclass(slots=True)
class WalkResult:
    root: Path
    records: Tuple[ImageFileRecord, ...] = ()
    issues: List[ScanIssue] = field(default_factory=list)
    summary: Dict[str, int] = field(default_factory=dict)

    @property
    def paths(self) -> List[str]:
        # Sorted so the archive layout does not depend on thread scheduling.
        return sorted(record.path for record in self.records)

    @property
    def total_bytes(self) -> int:
        return sum(record.size_bytes for record in self.records)
