"""Utility helpers for the on-disk partition cache."""

from __future__ import annotations

import os
import tempfile
from datetime import date, datetime
from pathlib import Path
from typing import Iterator, Optional

PARTITION_SUFFIX = ".txt"
_DATE_FORMAT = "%Y-%m-%d"


def partition_filename(day: date) -> str:
    return day.strftime(_DATE_FORMAT) + PARTITION_SUFFIX


def partition_path(channel_dir: Path, day: date) -> Path:
    """Cache location of one day: ``<root>/<channel>/<YYYY-MM-DD>.txt``."""
    return channel_dir / partition_filename(day)


def date_from_filename(name: str) -> Optional[date]:
    """Decode ``YYYY-MM-DD.txt``; ``None`` for anything else."""
    if not name.endswith(PARTITION_SUFFIX):
        return None
    try:
        return datetime.strptime(name[: -len(PARTITION_SUFFIX)], _DATE_FORMAT).date()
    except ValueError:
        return None


def iter_partition_files(channel_dir: Path) -> Iterator[tuple[date, Path]]:
    """Yield ``(date, path)`` for every decodable partition file in a channel directory."""
    if not channel_dir.is_dir():
        return
    for child in sorted(channel_dir.iterdir()):
        if not child.is_file():
            continue
        day = date_from_filename(child.name)
        if day is not None:
            yield day, child


def is_nonempty_file(path: Path) -> bool:
    try:
        return path.is_file() and path.stat().st_size > 0
    except OSError:
        return False


def write_text_atomic(path: Path, text: str) -> None:
    """Write ``text`` to ``path`` through a temporary file so readers never see a partial file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
            handle.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def total_size(paths: Iterator[Path] | list[Path]) -> int:
    """Sum of file sizes, ignoring files that vanished in the meantime."""
    size = 0
    for path in paths:
        try:
            size += path.stat().st_size
        except OSError:
            continue
    return size
