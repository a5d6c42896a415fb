from __future__ import annotations

import threading
from pathlib import Path

import pytest

from imagezipper.scanner.models import (
    ImageFileRecord,
    IssueSeverity,
    ResultCollection,
    ScanIssue,
    ScanOptions,
    WalkResult,
)


def test_add_rejects_duplicate_paths():
    collection = ResultCollection()

    assert collection.add(ImageFileRecord("/a.jpg", 10)) is True
    assert collection.add(ImageFileRecord("/a.jpg", 10)) is False
    assert len(collection) == 1
    assert "/a.jpg" in collection


def test_concurrent_adds_lose_nothing():
    collection = ResultCollection()
    barrier = threading.Barrier(8)
    accepted: list[int] = []
    accepted_lock = threading.Lock()

    def worker(offset: int) -> None:
        barrier.wait()
        count = 0
        # Neighbouring workers overlap on half of their paths.
        for i in range(offset * 250, offset * 250 + 500):
            if collection.add(ImageFileRecord(f"/img/{i}.png")):
                count += 1
        with accepted_lock:
            accepted.append(count)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    expected_unique = 7 * 250 + 500
    assert len(collection) == expected_unique
    assert sum(accepted) == expected_unique
    assert len({record.path for record in collection.freeze()}) == expected_unique


def test_freeze_makes_collection_read_only():
    collection = ResultCollection()
    collection.add(ImageFileRecord("/a.jpg"))

    frozen = collection.freeze()

    assert collection.frozen
    assert frozen == (ImageFileRecord("/a.jpg"),)
    assert collection.freeze() is frozen
    with pytest.raises(RuntimeError):
        collection.add(ImageFileRecord("/b.jpg"))


def test_walk_result_paths_are_sorted():
    result = WalkResult(
        root=Path("/root"),
        records=(ImageFileRecord("/root/z.png", 3), ImageFileRecord("/root/a.png", 4)),
    )

    assert result.paths == ["/root/a.png", "/root/z.png"]
    assert result.total_bytes == 7


def test_scan_issue_defaults_to_recoverable():
    issue = ScanIssue(path="/x", code="FILE_READ_ERROR", message="nope")

    assert issue.severity is IssueSeverity.recoverable
    assert issue.is_recoverable
    assert not ScanIssue("/x", "X", "y", IssueSeverity.fatal).is_recoverable


def test_scan_options_require_a_worker():
    with pytest.raises(ValueError):
        ScanOptions(max_workers=0)
    assert ScanOptions().max_workers >= 1
