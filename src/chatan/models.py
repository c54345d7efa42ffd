"""Core chatan data models."""

from __future__ import annotations

import bisect
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from pathlib import Path
from typing import Iterable, Iterator, Optional

ONE_DAY = timedelta(days=1)


class CachePolicy(str, Enum):
    """Rule set deciding when a partition is fetched, read from or written to the cache."""

    LOCAL = "local"
    REMOTE = "remote"
    REMOTE_AND_CACHE = "remote_and_cache"
    PREFETCH = "prefetch"
    PREFETCH_AND_CACHE = "prefetch_and_cache"

    @classmethod
    def parse(cls, value: "str | CachePolicy") -> "CachePolicy":
        """Accept ``RemoteAndCache``, ``remote-and-cache`` and ``remote_and_cache`` alike."""
        if isinstance(value, CachePolicy):
            return value
        key = value.strip().lower().replace("-", "").replace("_", "")
        for policy in cls:
            if policy.value.replace("_", "") == key:
                return policy
        raise ValueError(f"Unknown cache policy: {value!r}")

    @property
    def prefetches(self) -> bool:
        return self in (CachePolicy.PREFETCH, CachePolicy.PREFETCH_AND_CACHE)

    @property
    def uses_remote(self) -> bool:
        return self is not CachePolicy.LOCAL


@dataclass(slots=True)
class Partition:
    """One calendar day of chat log: remote locator plus optional cached copy."""

    date: date
    url: str
    local_path: Optional[Path] = None

    @property
    def is_cached(self) -> bool:
        return self.local_path is not None


class PartitionIndex:
    """Date-ordered, date-unique sequence of partition descriptors."""

    def __init__(self, partitions: Iterable[Partition] = ()) -> None:
        by_date: dict[date, Partition] = {}
        for partition in partitions:
            by_date.setdefault(partition.date, partition)
        self._partitions = sorted(by_date.values(), key=lambda p: p.date)
        self._dates = [p.date for p in self._partitions]

    def __len__(self) -> int:
        return len(self._partitions)

    def __iter__(self) -> Iterator[Partition]:
        return iter(self._partitions)

    def __bool__(self) -> bool:
        return bool(self._partitions)

    def __contains__(self, day: object) -> bool:
        return isinstance(day, date) and self.find(day) is not None

    def __getitem__(self, position: int) -> Partition:
        return self._partitions[position]

    def __repr__(self) -> str:
        if not self._partitions:
            return "PartitionIndex(empty)"
        return f"PartitionIndex({len(self)} partitions, {self.first_date} .. {self.last_date})"

    def find(self, day: date) -> Optional[Partition]:
        """Binary search for the partition of ``day``."""
        pos = bisect.bisect_left(self._dates, day)
        if pos < len(self._dates) and self._dates[pos] == day:
            return self._partitions[pos]
        return None

    def dates(self) -> list[date]:
        return list(self._dates)

    @property
    def first_date(self) -> Optional[date]:
        return self._dates[0] if self._dates else None

    @property
    def last_date(self) -> Optional[date]:
        return self._dates[-1] if self._dates else None

    @property
    def span(self) -> timedelta:
        """Time covered by the index, from the first day's midnight to the end of the last day."""
        if not self._dates:
            return timedelta(0)
        return self._dates[-1] + ONE_DAY - self._dates[0]

    def missing_dates(self) -> list[date]:
        """Calendar days between first and last partition that have no descriptor."""
        missing: list[date] = []
        for previous, current in zip(self._dates, self._dates[1:]):
            day = previous + ONE_DAY
            while day < current:
                missing.append(day)
                day += ONE_DAY
        return missing

    def cached(self) -> list[Partition]:
        return [p for p in self._partitions if p.local_path is not None]
