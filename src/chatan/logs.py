"""Channel log source: partition index, cache policy and window slider in one place."""

from __future__ import annotations

import logging
import threading
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Callable, Optional, Protocol, Tuple

from rich.filesize import decimal

from chatan.config import AppConfig
from chatan.errors import EmptyIndexError, PartitionLoadError
from chatan.index.loader import CachePolicyLoader, SyncReport, utc_today
from chatan.index.locator import PartitionLocator, channel_dir
from chatan.ingestion.parser import Messages, parse_partition
from chatan.models import ONE_DAY, CachePolicy, PartitionIndex
from chatan.utils.files import total_size
from chatan.window.slider import SlideReport, WindowCallback, WindowSlider, midnight
from chatan.window.tokens import TokenAggregator, TokenPredicate, WindowStats

LOGGER = logging.getLogger(__name__)


class RemoteClient(Protocol):
    def fetch(self, url: str) -> str: ...

    def list(self, url: str) -> list[str]: ...


class ChannelLogs:
    """Day-partitioned chat log of one channel.

    The index is replaced only by :meth:`sync`; sliding reads it. Both take
    the same lock, so a sync never interleaves with a slide on one instance.
    """

    def __init__(
        self,
        channel: str,
        cache_dir: Path,
        policy: CachePolicy | str = CachePolicy.LOCAL,
        *,
        client: Optional[RemoteClient] = None,
        concurrency: int = 8,
        recent_days: int = 2,
        show_progress: bool = False,
        today: Callable[[], date] = utc_today,
    ) -> None:
        if not channel:
            raise ValueError("Channel name must not be empty")
        self.channel = channel
        self.root_path = Path(cache_dir)
        self.policy = CachePolicy.parse(policy)
        if self.policy.uses_remote and client is None:
            raise ValueError(f"Cache policy {self.policy.value!r} needs a remote client")
        self.client = client
        self.index = PartitionIndex()
        self.locator = PartitionLocator(
            client, concurrency=concurrency, show_progress=show_progress
        )
        self.loader = CachePolicyLoader(
            client,
            channel_dir(self.root_path, channel),
            self.policy,
            concurrency=concurrency,
            recent_days=recent_days,
            show_progress=show_progress,
            today=today,
        )
        self._lock = threading.RLock()

    @classmethod
    def from_config(cls, config: AppConfig, client: Optional[RemoteClient] = None) -> "ChannelLogs":
        return cls(
            config.channel,
            config.resolve_cache_dir(Path.cwd()),
            config.policy,
            client=client,
            concurrency=config.concurrency,
            recent_days=config.recent_days,
            show_progress=config.show_progress,
        )

    @property
    def channel_path(self) -> Path:
        return channel_dir(self.root_path, self.channel)

    def sync(self) -> SyncReport:
        """Rebuild the index and, for prefetch policies, download the archive."""
        with self._lock:
            if self.policy is CachePolicy.LOCAL:
                index = self.locator.discover_local(self.channel, self.root_path)
            else:
                index = self.locator.discover(self.channel, self.root_path, remote=True)
            report = self.loader.sync(index)
            self.index = index
        LOGGER.info("Synced %s: %d partitions (%s)", self.channel, len(index), self.policy.value)
        return report

    def range(self) -> Optional[Tuple[date, date]]:
        """First and last day in the index, or ``None`` when it is empty."""
        if not self.index:
            return None
        return self.index.first_date, self.index.last_date  # type: ignore[return-value]

    def default_interval(self) -> Tuple[datetime, datetime]:
        """Whole index: first day's midnight to the midnight after the last day."""
        bounds = self.range()
        if bounds is None:
            raise EmptyIndexError(self.channel)
        return midnight(bounds[0]), midnight(bounds[1] + ONE_DAY)

    def load(self, day: date) -> Messages:
        """Load and parse one day under the configured cache policy."""
        partition = self.index.find(day)
        if partition is None:
            raise PartitionLoadError(day, "not present in the index")
        text = self.loader.load(partition)
        return parse_partition(text, partition_date=day)

    def slider(self) -> WindowSlider:
        return WindowSlider(self.index, self.load)

    def slide(
        self,
        start: datetime,
        end: datetime,
        step: timedelta,
        size: timedelta,
        on_window: WindowCallback,
    ) -> SlideReport:
        with self._lock:
            if not self.index:
                raise EmptyIndexError(self.channel)
            return self.slider().slide(start, end, step, size, on_window)

    def slide_token_counts(
        self,
        start: datetime,
        end: datetime,
        step: timedelta,
        size: timedelta,
        on_window: Callable[[WindowStats], None],
        predicate: Optional[TokenPredicate] = None,
    ) -> SlideReport:
        with self._lock:
            if not self.index:
                raise EmptyIndexError(self.channel)
            aggregator = TokenAggregator(self.slider(), predicate)
            return aggregator.slide(start, end, step, size, on_window)

    def local_summary(self) -> Tuple[int, int]:
        """Number of cached partitions and their total size in bytes."""
        paths = [p.local_path for p in self.index.cached() if p.local_path is not None]
        return len(paths), total_size(paths)

    def __str__(self) -> str:
        n_local, size = self.local_summary()
        return (
            f"ChannelLogs {{ {self.channel} @ policy = {self.policy.value} ; "
            f"local_path = {self.channel_path} ; URLs in index = {len(self.index)} ; "
            f"Local files in index = {n_local} ; Total size on disk = {decimal(size)} }}"
        )
