from __future__ import annotations

import logging
import os
import shutil
import stat
import time
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List

from ..scanner.errors import ArchiveBuildError

_COPY_CHUNK_SIZE = 64 * 1024  # 64 KiB chunks for streaming file bytes into the archive.
_MIN_ZIP_DATE = (1980, 1, 1, 0, 0, 0)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ArchiveSummary:
    """What was written by build_archive."""

    archive_path: Path
    entries: List[str] = field(default_factory=list)
    size_bytes: int = 0
    source_bytes: int = 0


def build_archive(paths: Iterable[str], output: Path | str) -> ArchiveSummary:
    """
    Zip ``paths`` into ``output`` in the given order, deflating every entry.

    Entry names are the paths exactly as given. Any file that cannot be
    opened, stat'd or fully copied aborts the build with ArchiveBuildError and
    the incomplete archive is removed.
    """
    archive_path = Path(output)
    summary = ArchiveSummary(archive_path=archive_path)
    seen: set[str] = set()

    try:
        archive_path.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(
            archive_path,
            mode="w",
            compression=zipfile.ZIP_DEFLATED,
            allowZip64=True,
        ) as zf:
            for path in paths:
                if path in seen:
                    continue
                seen.add(path)
                summary.source_bytes += _add_file(zf, path)
                summary.entries.append(path)
        summary.size_bytes = os.stat(archive_path).st_size
    except ArchiveBuildError:
        _discard(archive_path)
        raise
    except OSError as exc:
        _discard(archive_path)
        raise ArchiveBuildError(
            f"Error while zipping images: {exc}", "ARCHIVE_BUILD_FAILED", path=str(archive_path)
        ) from exc

    logger.info(
        "Wrote %d entries (%d source bytes) to %s (%d bytes)",
        len(summary.entries),
        summary.source_bytes,
        archive_path,
        summary.size_bytes,
    )
    return summary


def _add_file(zf: zipfile.ZipFile, path: str) -> int:
    try:
        with open(path, "rb") as source:
            st = os.fstat(source.fileno())
            info = _entry_info(path, st)
            with zf.open(info, mode="w") as target:
                shutil.copyfileobj(source, target, _COPY_CHUNK_SIZE)
    except OSError as exc:
        raise ArchiveBuildError(
            f"Error while zipping {path}: {exc}", "ARCHIVE_BUILD_FAILED", path=path
        ) from exc
    return st.st_size


def _entry_info(name: str, st: os.stat_result) -> zipfile.ZipInfo:
    # ZipInfo.from_file would strip leading separators; keep the discovered path verbatim.
    date_time = time.localtime(st.st_mtime)[:6]
    if date_time < _MIN_ZIP_DATE:
        date_time = _MIN_ZIP_DATE
    info = zipfile.ZipInfo(filename=name, date_time=date_time)
    info.compress_type = zipfile.ZIP_DEFLATED
    info.file_size = st.st_size
    info.external_attr = (stat.S_IMODE(st.st_mode) | stat.S_IFREG) << 16
    return info


def _discard(archive_path: Path) -> None:
    try:
        archive_path.unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Could not remove incomplete archive %s: %s", archive_path, exc)


def read_archive_entries(archive_path: Path | str) -> List[str]:
    """Return the entry names of an existing archive in stored order."""
    with zipfile.ZipFile(archive_path) as zf:
        return [info.filename for info in zf.infolist()]
