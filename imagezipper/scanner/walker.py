from __future__ import annotations

import logging
import os
import stat
import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .classifier import classify, read_window
from .errors import InvalidRootError
from .models import (
    DirectoryEntry,
    ImageFileRecord,
    ResultCollection,
    ScanIssue,
    ScanOptions,
    WalkResult,
)

DiscoveredCb = Callable[[str], None]
IssueCb = Callable[[ScanIssue], None]

logger = logging.getLogger(__name__)


class _DirectoryNode:
    """
    Fork-join bookkeeping for one directory.

    ``pending`` counts the node's own listing plus every child directory it
    spawned that has not completed yet. A node is complete once ``pending``
    reaches zero, at which point it releases one unit of its parent.
    """

    __slots__ = ("path", "parent", "pending")

    def __init__(self, path: str, parent: Optional["_DirectoryNode"] = None) -> None:
        self.path = path
        self.parent = parent
        self.pending = 1


class _WalkRun:
    """State for a single walk: the shared collection, issues and counters."""

    def __init__(
        self,
        walker: "TreeWalker",
        executor: Executor,
        on_discovered: DiscoveredCb | None,
        on_issue: IssueCb | None,
    ) -> None:
        self.walker = walker
        self.executor = executor
        self.on_discovered = on_discovered
        self.on_issue = on_issue
        self.results = ResultCollection()
        self.issues: List[ScanIssue] = []
        self.counters: Dict[str, int] = {"directories_scanned": 0, "files_examined": 0}
        self.done = threading.Event()
        self._lock = threading.Lock()

    def spawn(self, node: _DirectoryNode) -> None:
        try:
            self.executor.submit(self._run_node, node)
        except RuntimeError as exc:
            # Executor is shutting down; account for the node so parents still complete.
            self.report(ScanIssue(path=node.path, code="WALK_TASK_ERROR", message=str(exc)))
            self._release(node)

    def report(self, issue: ScanIssue) -> None:
        with self._lock:
            self.issues.append(issue)
        if self.walker.options.suppress_errors:
            return
        _notify(self.on_issue, issue)

    def discovered(self, record: ImageFileRecord) -> None:
        if self.results.add(record):
            _notify(self.on_discovered, record.path)

    def count(self, key: str) -> None:
        with self._lock:
            self.counters[key] += 1

    def _run_node(self, node: _DirectoryNode) -> None:
        try:
            self.walker._scan_directory(self, node)
        except Exception as exc:
            logger.exception("Walker task for %s failed", node.path)
            self.report(
                ScanIssue(path=node.path, code="WALK_TASK_ERROR", message=f"{type(exc).__name__}: {exc}")
            )
        finally:
            self._release(node)

    def add_child(self, parent: _DirectoryNode, path: str) -> _DirectoryNode:
        with self._lock:
            parent.pending += 1
        return _DirectoryNode(path, parent)

    def _release(self, node: Optional[_DirectoryNode]) -> None:
        # Walk up the tree while nodes complete; the root completing ends the walk.
        while node is not None:
            with self._lock:
                node.pending -= 1
                finished = node.pending == 0
            if not finished:
                return
            if node.parent is None:
                self.done.set()
                return
            node = node.parent


class TreeWalker:
    """
    Recursively collect image files under a root using a bounded thread pool.

    Each subdirectory becomes its own task. Tasks never wait on each other,
    so the pool size only limits how many directories are read at once; the
    walk still finishes only after every descendant task has finished.
    Symlinked directories are not followed.
    """

    def __init__(self, options: ScanOptions | None = None) -> None:
        self.options = options or ScanOptions()

    def walk(
        self,
        root: str | Path,
        *,
        on_discovered: DiscoveredCb | None = None,
        on_issue: IssueCb | None = None,
    ) -> WalkResult:
        root_path = _validate_root(root)

        with ThreadPoolExecutor(
            max_workers=self.options.max_workers,
            thread_name_prefix="imagezipper-walk",
        ) as executor:
            run = _WalkRun(self, executor, on_discovered, on_issue)
            run.spawn(_DirectoryNode(root_path))
            run.done.wait()

        records = run.results.freeze()
        summary = dict(run.counters)
        summary["images_found"] = len(records)
        summary["issues_count"] = len(run.issues)
        logger.info(
            "Walked %s: %d directories, %d files, %d images, %d issues",
            root_path,
            summary["directories_scanned"],
            summary["files_examined"],
            summary["images_found"],
            summary["issues_count"],
        )
        return WalkResult(root=Path(root_path), records=records, issues=list(run.issues), summary=summary)

    def _list_directory(self, path: str) -> List[os.DirEntry]:
        with os.scandir(path) as it:
            return list(it)

    def _describe(self, parent: str, entry: os.DirEntry) -> DirectoryEntry:
        is_dir = entry.is_dir(follow_symlinks=False)
        is_file = not is_dir and entry.is_file()
        size = entry.stat().st_size if is_file else 0
        return DirectoryEntry(
            name=entry.name,
            path=os.path.normpath(os.path.join(parent, entry.name)),
            is_dir=is_dir,
            is_file=is_file,
            size=size,
        )

    def _scan_directory(self, run: _WalkRun, node: _DirectoryNode) -> None:
        try:
            raw_entries = self._list_directory(node.path)
        except OSError as exc:
            run.report(ScanIssue(path=node.path, code="DIRECTORY_LIST_ERROR", message=str(exc)))
            return
        run.count("directories_scanned")

        for raw in raw_entries:
            try:
                entry = self._describe(node.path, raw)
            except OSError as exc:
                run.report(ScanIssue(path=raw.path, code="ENTRY_STAT_ERROR", message=str(exc)))
                continue

            if entry.is_dir:
                run.spawn(run.add_child(node, entry.path))
            elif entry.is_file:
                self._examine_file(run, entry)
            else:
                logger.debug("Skipping non-regular entry %s", entry.path)

    def _examine_file(self, run: _WalkRun, entry: DirectoryEntry) -> None:
        run.count("files_examined")
        try:
            window = read_window(entry.path)
        except OSError as exc:
            run.report(
                ScanIssue(
                    path=entry.path,
                    code="FILE_READ_ERROR",
                    message=f"file read failed {entry.path}, {exc}",
                )
            )
            return

        is_image = classify(window)
        if self.options.debug:
            if is_image:
                logger.debug("Image file: %s", entry.path)
            else:
                logger.debug("Not image file: %s", entry.path)
        if is_image:
            run.discovered(ImageFileRecord(path=entry.path, size_bytes=entry.size))


def walk(
    root: str | Path,
    options: ScanOptions | None = None,
    *,
    on_discovered: DiscoveredCb | None = None,
    on_issue: IssueCb | None = None,
) -> WalkResult:
    """Walk ``root`` with a fresh TreeWalker and return the frozen result."""
    return TreeWalker(options).walk(root, on_discovered=on_discovered, on_issue=on_issue)


def _validate_root(root: str | Path) -> str:
    location = os.path.normpath(os.fspath(root))
    try:
        mode = os.stat(location).st_mode
    except OSError as exc:
        raise InvalidRootError(f"Location is an invalid value. {exc}", "INVALID_ROOT") from exc
    if not stat.S_ISDIR(mode):
        raise InvalidRootError(f"Location is not a directory: {location}", "ROOT_NOT_DIRECTORY")
    return location


def _notify(callback: Callable[..., None] | None, payload: object) -> None:
    if callback is None:
        return
    try:
        callback(payload)
    except Exception:
        logger.exception("Walker callback raised; continuing")
