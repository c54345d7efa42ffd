"""URL naming for the OverRustle log archive."""

from __future__ import annotations

from datetime import date, datetime
from urllib.parse import unquote, urljoin

from chatan.utils.text import capitalized

BASE_URL = "https://overrustlelogs.net"

# Listing entries with these suffixes are per-user or moderation pages, not daily logs.
NON_DATA_SUFFIXES = ("userlogs", "broadcaster", "subscribers", "bans")

_MONTHS = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)


def channel_url(channel: str, base_url: str = BASE_URL) -> str:
    return f"{base_url}/{capitalized(channel)}%20chatlog/"


def month_url(channel: str, day: date, base_url: str = BASE_URL) -> str:
    return f"{channel_url(channel, base_url)}{_MONTHS[day.month - 1]}%20{day.year}/"


def partition_url(channel: str, day: date, base_url: str = BASE_URL) -> str:
    """Rebuild the remote locator of a day from the channel name alone."""
    return f"{month_url(channel, day, base_url)}{day.isoformat()}.txt"


def absolute_url(href: str, page_url: str = BASE_URL + "/") -> str:
    """Resolve a listing href against the page it was found on."""
    return urljoin(page_url, href)


def is_data_entry(href: str) -> bool:
    trimmed = href.rstrip("/")
    return bool(trimmed) and not trimmed.endswith(NON_DATA_SUFFIXES)


def date_from_href(href: str) -> date:
    """Parse the trailing path segment of a day entry, e.g. ``/Forsen chatlog/July 2019/2019-07-01``.

    Raises ``ValueError`` when the segment is not an ISO date.
    """
    segment = unquote(href.rstrip("/").rsplit("/", 1)[-1])
    if segment.endswith(".txt"):
        segment = segment[: -len(".txt")]
    return datetime.strptime(segment, "%Y-%m-%d").date()


def day_file_url(href: str, page_url: str = BASE_URL + "/") -> str:
    url = absolute_url(href.rstrip("/"), page_url)
    return url if url.endswith(".txt") else url + ".txt"
