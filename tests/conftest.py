"""Shared fixtures: an in-memory archive client and partition writers."""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Callable, Dict, List

import pytest

from chatan.errors import FetchError


class FakeClient:
    """Stands in for ``HttpClient`` with canned pages and day files."""

    def __init__(
        self,
        pages: Dict[str, str] | None = None,
        listings: Dict[str, List[str]] | None = None,
    ) -> None:
        self.pages = dict(pages or {})
        self.listings = dict(listings or {})
        self.fetched: List[str] = []
        self.listed: List[str] = []

    def fetch(self, url: str) -> str:
        self.fetched.append(url)
        if url not in self.pages:
            raise FetchError(url, "HTTP 404")
        return self.pages[url]

    def list(self, url: str) -> List[str]:
        self.listed.append(url)
        if url not in self.listings:
            raise FetchError(url, "HTTP 404")
        return list(self.listings[url])


def log_line(stamp: str, user: str, body: str) -> str:
    return f"[{stamp} UTC] {user}: {body}\n"


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def write_partition(tmp_path: Path) -> Callable[[str, date, str], Path]:
    """Write ``<tmp>/logs/<channel>/<date>.txt`` and return its path."""

    def _write(channel: str, day: date, text: str) -> Path:
        directory = tmp_path / "logs" / channel
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"{day.isoformat()}.txt"
        path.write_text(text, encoding="utf-8")
        return path

    return _write
