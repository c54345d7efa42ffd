"""Discovery of daily log partitions, locally and on the remote archive."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, List

from rich.progress import Progress

from chatan.errors import FetchError
from chatan.models import Partition, PartitionIndex
from chatan.remote.client import DirectoryLister
from chatan.remote.urls import (
    BASE_URL,
    absolute_url,
    channel_url,
    date_from_href,
    day_file_url,
    is_data_entry,
    partition_url,
)
from chatan.utils.files import is_nonempty_file, iter_partition_files, partition_path

LOGGER = logging.getLogger(__name__)


def channel_dir(root: Path, channel: str) -> Path:
    return Path(root) / channel


def attach_local(index: PartitionIndex, directory: Path) -> int:
    """Point descriptors at their cached file when a non-empty one exists."""
    attached = 0
    for partition in index:
        path = partition_path(directory, partition.date)
        if is_nonempty_file(path):
            partition.local_path = path
            attached += 1
    return attached


def merge(remote: PartitionIndex, local: PartitionIndex, directory: Path) -> PartitionIndex:
    """Union of both indexes by date.

    Remote descriptors win for the locator; a non-empty cached file in
    ``directory`` fills in ``local_path``. Dates only present locally are
    kept as they are.
    """
    attach_local(remote, directory)
    merged: dict = {p.date: p for p in local}
    merged.update((p.date, p) for p in remote)
    return PartitionIndex(merged.values())


class PartitionLocator:
    """Builds :class:`PartitionIndex` objects for a channel."""

    def __init__(
        self,
        lister: DirectoryLister | None = None,
        *,
        base_url: str = BASE_URL,
        concurrency: int = 8,
        show_progress: bool = False,
    ) -> None:
        self.lister = lister
        self.base_url = base_url
        self.concurrency = max(1, concurrency)
        self.show_progress = show_progress

    def discover_local(self, channel: str, root: Path) -> PartitionIndex:
        """Index every ``YYYY-MM-DD.txt`` file under ``root/<channel>``."""
        directory = channel_dir(root, channel)
        directory.mkdir(parents=True, exist_ok=True)
        partitions = [
            Partition(date=day, url=partition_url(channel, day, self.base_url), local_path=path)
            for day, path in iter_partition_files(directory)
        ]
        LOGGER.debug("Found %d local partitions in %s", len(partitions), directory)
        return PartitionIndex(partitions)

    def discover_remote(self, channel: str) -> PartitionIndex:
        """Walk the archive's channel page and its month pages."""
        if self.lister is None:
            raise RuntimeError("Remote discovery needs a directory lister")

        root_url = channel_url(channel, self.base_url)
        try:
            month_hrefs = self.lister.list(root_url)
        except FetchError as exc:
            LOGGER.warning("Failed to list months for channel %s: %s", channel, exc)
            return PartitionIndex()

        month_urls = []
        for href in month_hrefs:
            try:
                month_urls.append(absolute_url(href, root_url))
            except ValueError:
                LOGGER.warning("Skipping malformed month link: %s", href)
        partitions: List[Partition] = []
        with Progress(disable=not self.show_progress, transient=True) as progress:
            task = progress.add_task(f"Listing {channel}", total=len(month_urls))
            with ThreadPoolExecutor(max_workers=self.concurrency) as pool:
                for found in pool.map(self._list_month, month_urls):
                    partitions.extend(found)
                    progress.advance(task)

        index = PartitionIndex(partitions)
        gaps = index.missing_dates()
        if gaps:
            LOGGER.warning(
                "Remote index for %s is missing %d days between %s and %s",
                channel,
                len(gaps),
                index.first_date,
                index.last_date,
            )
        LOGGER.info("Discovered %d remote partitions for %s", len(index), channel)
        return index

    def _list_month(self, url: str) -> List[Partition]:
        try:
            hrefs = self.lister.list(url)  # type: ignore[union-attr]
        except FetchError as exc:
            LOGGER.warning("Failed to list %s: %s", url, exc)
            return []
        return list(self._parse_entries(hrefs, url))

    def _parse_entries(self, hrefs: Iterable[str], page_url: str) -> Iterable[Partition]:
        for href in hrefs:
            if not is_data_entry(href):
                continue
            try:
                day = date_from_href(href)
                url = day_file_url(href, page_url)
            except ValueError:
                LOGGER.warning("Skipping listing entry without a date: %s", href)
                continue
            yield Partition(date=day, url=url)

    def discover(self, channel: str, root: Path, *, remote: bool) -> PartitionIndex:
        """Local scan, optionally merged with the remote listing."""
        local = self.discover_local(channel, root)
        if not remote:
            return local
        return merge(self.discover_remote(channel), local, channel_dir(root, channel))
