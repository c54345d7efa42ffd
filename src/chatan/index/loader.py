"""Cache-policy driven resolution of partition text."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, List, Optional

from rich.progress import Progress

from chatan.errors import FetchError, PartitionLoadError
from chatan.models import CachePolicy, Partition, PartitionIndex
from chatan.remote.client import TextFetcher
from chatan.utils.files import partition_path, write_text_atomic

LOGGER = logging.getLogger(__name__)

DEFAULT_RECENT_DAYS = 2


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


@dataclass(slots=True)
class SyncReport:
    downloaded: int = 0
    failed: int = 0
    skipped: int = 0
    failed_dates: list[date] = field(default_factory=list)

    def record(self, status: str, day: date) -> None:
        if status == "downloaded":
            self.downloaded += 1
        elif status == "skipped":
            self.skipped += 1
        else:
            self.failed += 1
            self.failed_dates.append(day)


class CachePolicyLoader:
    """Resolves the text of one partition according to a :class:`CachePolicy`.

    ``local`` reads the cache only, ``remote`` always downloads and never
    touches the cache, ``remote_and_cache`` reads the cache and falls back to a
    download that is written through. The two prefetch policies download the
    whole index up front in :meth:`sync`; later misses are fetched on demand,
    written through only for ``prefetch_and_cache``.
    """

    def __init__(
        self,
        fetcher: TextFetcher | None,
        cache_dir: Path,
        policy: CachePolicy,
        *,
        concurrency: int = 8,
        recent_days: int = DEFAULT_RECENT_DAYS,
        show_progress: bool = False,
        today: Callable[[], date] = utc_today,
    ) -> None:
        self.fetcher = fetcher
        self.cache_dir = Path(cache_dir)
        self.policy = CachePolicy.parse(policy)
        self.concurrency = max(1, concurrency)
        self.recent_days = recent_days
        self.show_progress = show_progress
        self._today = today
        self.loads = 0

    def load(self, partition: Partition) -> str:
        """Return the raw text of ``partition`` or raise :class:`PartitionLoadError`."""
        self.loads += 1
        policy = self.policy

        if policy is CachePolicy.LOCAL:
            return self._read(partition)

        if policy is CachePolicy.REMOTE:
            return self._fetch(partition)

        if partition.local_path is not None:
            return self._read(partition)

        text = self._fetch(partition)
        if policy in (CachePolicy.REMOTE_AND_CACHE, CachePolicy.PREFETCH_AND_CACHE):
            self._store(partition, text)
        return text

    def _read(self, partition: Partition) -> str:
        if partition.local_path is None:
            raise PartitionLoadError(partition.date, "not available in local cache")
        try:
            return partition.local_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise PartitionLoadError(partition.date, f"cannot read {partition.local_path}: {exc}") from exc

    def _fetch(self, partition: Partition) -> str:
        if self.fetcher is None:
            raise PartitionLoadError(partition.date, "no fetcher configured")
        try:
            return self.fetcher.fetch(partition.url)
        except FetchError as exc:
            raise PartitionLoadError(partition.date, exc.reason) from exc

    def _store(self, partition: Partition, text: str) -> Optional[Path]:
        path = partition_path(self.cache_dir, partition.date)
        try:
            write_text_atomic(path, text)
        except OSError as exc:
            LOGGER.warning("Could not cache partition %s at %s: %s", partition.date, path, exc)
            return None
        partition.local_path = path
        return path

    def is_recent(self, day: date) -> bool:
        return day >= self._today() - timedelta(days=self.recent_days)

    def needs_download(self, partition: Partition) -> bool:
        return partition.local_path is None or self.is_recent(partition.date)

    def sync(self, index: PartitionIndex) -> SyncReport:
        """Eagerly download missing and recent partitions for prefetch policies.

        Downloads run on a bounded thread pool. A failed download is logged and
        leaves the descriptor as it was, so the next sync retries it.
        """
        report = SyncReport()
        if not self.policy.prefetches:
            return report

        pending: List[Partition] = []
        for partition in index:
            if self.needs_download(partition):
                pending.append(partition)
            else:
                report.record("skipped", partition.date)

        if not pending:
            return report

        LOGGER.info("Downloading %d partitions into %s", len(pending), self.cache_dir)
        with Progress(disable=not self.show_progress, transient=True) as progress:
            task = progress.add_task("Downloading", total=len(pending))
            with ThreadPoolExecutor(max_workers=self.concurrency) as pool:
                futures = {pool.submit(self._download, p): p for p in pending}
                for future in as_completed(futures):
                    partition = futures[future]
                    report.record(future.result(), partition.date)
                    progress.advance(task)

        if report.failed:
            LOGGER.warning(
                "%d of %d downloads failed; they will be retried on the next sync",
                report.failed,
                len(pending),
            )
        return report

    def _download(self, partition: Partition) -> str:
        try:
            text = self._fetch(partition)
        except PartitionLoadError as exc:
            LOGGER.warning("%s", exc)
            return "failed"
        if self._store(partition, text) is None:
            return "failed"
        return "downloaded"
