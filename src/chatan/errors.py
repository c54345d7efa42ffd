"""Exception hierarchy shared by the chat-log engine."""

from __future__ import annotations

from datetime import date


class ChatanError(Exception):
    """Base class for all errors raised by chatan."""


class SlideError(ChatanError):
    """A sliding-window query was rejected before any work started."""


class NotEnoughDataError(SlideError):
    """The index does not hold enough data to answer the query."""


class EmptyIndexError(NotEnoughDataError):
    def __init__(self, channel: str | None = None) -> None:
        where = f" for channel {channel!r}" if channel else ""
        super().__init__(f"No partitions in index{where}; run sync first")


class InsufficientWindowError(NotEnoughDataError):
    """Window size exceeds the time span covered by the index."""


class InvalidTimeIntervalError(SlideError, ValueError):
    """Start/end/step/size do not describe a valid slide."""


class FetchError(ChatanError):
    """Network fetch failed (connection, timeout or HTTP status)."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"Failed to fetch {url}: {reason}")
        self.url = url
        self.reason = reason


class PartitionLoadError(ChatanError):
    """One partition could not be resolved under the active cache policy."""

    def __init__(self, partition_date: date, reason: str) -> None:
        super().__init__(f"Cannot load partition {partition_date.isoformat()}: {reason}")
        self.date = partition_date
        self.reason = reason


class StaleMessageError(ChatanError):
    """A message view was accessed after its partition buffer was released."""


class EmoteIndexError(ChatanError):
    """Emote index file is missing or malformed."""
