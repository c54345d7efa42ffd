"""Tests for partition discovery."""

from __future__ import annotations

from datetime import date
from pathlib import Path

import httpx
import pytest

from chatan.index.locator import PartitionLocator, attach_local, merge
from chatan.models import Partition, PartitionIndex
from chatan.remote.client import HttpClient
from conftest import FakeClient

CHANNEL_URL = "https://overrustlelogs.net/Forsen%20chatlog/"
JULY_URL = "https://overrustlelogs.net/Forsen%20chatlog/July%202019"
AUGUST_URL = "https://overrustlelogs.net/Forsen%20chatlog/August%202019"


@pytest.fixture
def archive() -> FakeClient:
    return FakeClient(
        listings={
            CHANNEL_URL: ["/Forsen%20chatlog/July%202019", "/Forsen%20chatlog/August%202019"],
            JULY_URL: [
                "/Forsen%20chatlog/July%202019/2019-07-02",
                "/Forsen%20chatlog/July%202019/2019-07-01",
                "/Forsen%20chatlog/July%202019/userlogs",
                "/Forsen%20chatlog/July%202019/subscribers",
                "/Forsen%20chatlog/July%202019/bans",
                "/Forsen%20chatlog/July%202019/broadcaster",
                "/Forsen%20chatlog/July%202019/not-a-date",
            ],
            AUGUST_URL: ["/Forsen%20chatlog/August%202019/2019-08-01"],
        }
    )


def listing_page(*hrefs: str) -> str:
    items = "".join(f'<a class="list-group-item" href="{href}">x</a>' for href in hrefs)
    return f"<html><body>{items}</body></html>"


class TestDiscoverLocal:
    """Test local directory scans."""

    def test_indexes_dated_files(self, tmp_path: Path) -> None:
        """Should index YYYY-MM-DD.txt files and skip anything else."""
        channel_dir = tmp_path / "forsen"
        channel_dir.mkdir()
        (channel_dir / "2019-07-02.txt").write_text("b")
        (channel_dir / "2019-07-01.txt").write_text("a")
        (channel_dir / "notes.txt").write_text("skip me")
        (channel_dir / "2019-07-03.log").write_text("skip me")

        index = PartitionLocator().discover_local("forsen", tmp_path)

        assert index.dates() == [date(2019, 7, 1), date(2019, 7, 2)]
        first = index[0]
        assert first.local_path == channel_dir / "2019-07-01.txt"
        assert first.url == "https://overrustlelogs.net/Forsen%20chatlog/July%202019/2019-07-01.txt"

    def test_creates_missing_channel_directory(self, tmp_path: Path) -> None:
        """Should create the channel directory and return an empty index."""
        index = PartitionLocator().discover_local("nymn", tmp_path)

        assert len(index) == 0
        assert (tmp_path / "nymn").is_dir()

    def test_repeated_scans_are_identical(self, tmp_path: Path) -> None:
        """Should build the same index on every scan."""
        channel_dir = tmp_path / "forsen"
        channel_dir.mkdir()
        for day in ("2019-07-01", "2019-07-02", "2019-07-04"):
            (channel_dir / f"{day}.txt").write_text(day)
        locator = PartitionLocator()

        first = locator.discover_local("forsen", tmp_path)
        second = locator.discover_local("forsen", tmp_path)

        assert [(p.date, p.local_path) for p in first] == [(p.date, p.local_path) for p in second]


class TestDiscoverRemote:
    """Test remote listing walks."""

    def test_builds_sorted_index(self, archive: FakeClient) -> None:
        """Should keep day entries only, sorted by date."""
        index = PartitionLocator(archive).discover_remote("forsen")

        assert index.dates() == [date(2019, 7, 1), date(2019, 7, 2), date(2019, 8, 1)]
        assert index[0].url == "https://overrustlelogs.net/Forsen%20chatlog/July%202019/2019-07-01.txt"
        assert all(p.local_path is None for p in index)

    def test_failed_month_listing_is_skipped(self, archive: FakeClient) -> None:
        """Should keep the months that could be listed."""
        del archive.listings[AUGUST_URL]

        index = PartitionLocator(archive).discover_remote("forsen")

        assert index.dates() == [date(2019, 7, 1), date(2019, 7, 2)]

    def test_failed_channel_listing_gives_empty_index(self) -> None:
        """Should return an empty index when the channel page fails."""
        index = PartitionLocator(FakeClient()).discover_remote("forsen")

        assert len(index) == 0

    def test_requires_lister(self) -> None:
        """Should refuse remote discovery without a lister."""
        with pytest.raises(RuntimeError):
            PartitionLocator().discover_remote("forsen")

    def test_unparseable_hrefs_are_skipped(self, archive: FakeClient) -> None:
        """Should drop links that cannot be resolved to a URL."""
        archive.listings[CHANNEL_URL].append("http://[::1/broken")
        archive.listings[JULY_URL].append("http://[::1/2019-07-03")

        index = PartitionLocator(archive).discover_remote("forsen")

        assert index.dates() == [date(2019, 7, 1), date(2019, 7, 2), date(2019, 8, 1)]

    def test_malformed_month_url_does_not_abort_discovery(self) -> None:
        """Should list the good month when another month link has a bad port."""
        pages = {
            CHANNEL_URL: listing_page(
                "/Forsen%20chatlog/July%202019",
                "https://overrustlelogs.net:xx/Forsen%20chatlog/August%202019",
            ),
            JULY_URL: listing_page("/Forsen%20chatlog/July%202019/2019-07-01"),
        }

        def handler(request: httpx.Request) -> httpx.Response:
            text = pages.get(str(request.url))
            return httpx.Response(404) if text is None else httpx.Response(200, text=text)

        with HttpClient(transport=httpx.MockTransport(handler)) as client:
            index = PartitionLocator(client).discover_remote("forsen")

        assert index.dates() == [date(2019, 7, 1)]


class TestMerge:
    """Test merging remote and local indexes."""

    def test_remote_gets_local_path_for_nonempty_files(self, tmp_path: Path, archive: FakeClient) -> None:
        """Should attach non-empty cached files and keep local-only days."""
        channel_dir = tmp_path / "forsen"
        channel_dir.mkdir()
        (channel_dir / "2019-07-01.txt").write_text("[2019-07-01 00:00:00 UTC] a: b\n")
        (channel_dir / "2019-07-02.txt").write_text("")
        (channel_dir / "2019-06-30.txt").write_text("old day")

        index = PartitionLocator(archive).discover("forsen", tmp_path, remote=True)

        by_date = {p.date: p for p in index}
        assert by_date[date(2019, 7, 1)].local_path == channel_dir / "2019-07-01.txt"
        assert by_date[date(2019, 7, 2)].local_path is None
        assert by_date[date(2019, 8, 1)].local_path is None
        assert by_date[date(2019, 6, 30)].local_path == channel_dir / "2019-06-30.txt"

    def test_merge_prefers_remote_url(self, tmp_path: Path) -> None:
        """Should take the URL from the remote descriptor."""
        path = tmp_path / "2019-07-01.txt"
        path.write_text("x")
        local = PartitionIndex([Partition(date(2019, 7, 1), "local-url", path)])
        remote = PartitionIndex([Partition(date(2019, 7, 1), "remote-url")])

        merged = merge(remote, local, tmp_path)

        assert len(merged) == 1
        assert merged[0].url == "remote-url"
        assert merged[0].local_path == path

    def test_attach_local(self, tmp_path: Path) -> None:
        """Should set local_path only where a cached file exists."""
        (tmp_path / "2019-07-01.txt").write_text("x")
        index = PartitionIndex(
            [Partition(date(2019, 7, 1), "u1"), Partition(date(2019, 7, 2), "u2")]
        )

        attached = attach_local(index, tmp_path)

        assert attached == 1
        assert index[0].local_path == tmp_path / "2019-07-01.txt"
        assert index[1].local_path is None
