"""Parsing of daily OverRustle log buffers into message views.

A partition's text is kept as one owned string. Each parsed :class:`Message`
stores only offsets into that string, so parsing a day never copies user
names or message bodies. The views stay usable while the owning
:class:`Messages` buffer is alive; once the buffer is released (the slider
evicts the partition) every view raises :class:`StaleMessageError` instead of
returning data. Use :meth:`Message.materialize` to keep a message beyond that
point.
"""

from __future__ import annotations

import bisect
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Iterator, List, Optional, Sequence, Tuple

from chatan.errors import StaleMessageError

LOGGER = logging.getLogger(__name__)

# [2019-07-01 00:00:42 UTC] someuser: message
# ^                   ^     ^
# 1                  20    26
TS_START = 1
TS_END = 20
USER_START = 26

ParsedLine = Tuple[datetime, int, int, int]


@dataclass(frozen=True, slots=True)
class MaterializedMessage:
    """Owned copy of a message, independent of any partition buffer."""

    timestamp: datetime
    user: str
    body: str


class Message:
    """Immutable view of one log line inside a :class:`Messages` buffer."""

    __slots__ = ("_owner", "timestamp", "_user_start", "_user_end", "_body_start", "_body_end")

    def __init__(
        self,
        owner: "Messages",
        timestamp: datetime,
        user_start: int,
        user_end: int,
        body_start: int,
        body_end: int,
    ) -> None:
        self._owner = owner
        self.timestamp = timestamp
        self._user_start = user_start
        self._user_end = user_end
        self._body_start = body_start
        self._body_end = body_end

    @property
    def user(self) -> str:
        return self._owner.resolve(self._user_start, self._user_end)

    @property
    def body(self) -> str:
        return self._owner.resolve(self._body_start, self._body_end)

    @property
    def span(self) -> Tuple[int, int]:
        """Offsets of the whole line (user start to body end) in the owning buffer."""
        return self._user_start, self._body_end

    def materialize(self) -> MaterializedMessage:
        return MaterializedMessage(self.timestamp, self.user, self.body)

    def __repr__(self) -> str:
        if self._owner.released:
            return f"Message({self.timestamp.isoformat()}, <released>)"
        return f"Message({self.timestamp.isoformat()}, {self.user!r}, {self.body!r})"

    def __str__(self) -> str:
        return f"[{self.timestamp:%Y-%m-%d %H:%M:%S} UTC] {self._owner.resolve(*self.span)}"


class Messages(Sequence[Message]):
    """Owned text of one partition plus its ordered message views."""

    __slots__ = ("partition_date", "_text", "_messages", "_timestamps", "dropped_lines")

    def __init__(self, text: str = "", *, partition_date: Optional[date] = None) -> None:
        self.partition_date = partition_date
        self._text: Optional[str] = text
        self._messages: List[Message] = []
        self._timestamps: List[datetime] = []
        self.dropped_lines = 0

    @classmethod
    def empty(cls, partition_date: Optional[date] = None) -> "Messages":
        return cls("", partition_date=partition_date)

    def _append(self, message: Message) -> None:
        self._messages.append(message)
        self._timestamps.append(message.timestamp)

    def _sort(self) -> None:
        self._messages.sort(key=lambda m: m.timestamp)
        self._timestamps = [m.timestamp for m in self._messages]

    def __len__(self) -> int:
        return len(self._messages)

    def __getitem__(self, index):  # type: ignore[override]
        return self._messages[index]

    def __iter__(self) -> Iterator[Message]:
        return iter(self._messages)

    def __repr__(self) -> str:
        day = self.partition_date.isoformat() if self.partition_date else "?"
        state = "released" if self.released else f"{len(self)} messages"
        return f"Messages({day}, {state})"

    @property
    def released(self) -> bool:
        return self._text is None

    @property
    def text(self) -> str:
        if self._text is None:
            raise StaleMessageError(f"Buffer of partition {self.partition_date} was released")
        return self._text

    @property
    def timestamps(self) -> Sequence[datetime]:
        return self._timestamps

    def resolve(self, start: int, end: int) -> str:
        return self.text[start:end]

    def release(self) -> None:
        """Drop the owned buffer; views created from it become stale."""
        self._text = None

    def bounds(self, t0: datetime, t1: datetime) -> Tuple[int, int]:
        """Index range of messages with ``t0 <= timestamp < t1``."""
        timestamps = self._timestamps
        if not timestamps or t1 <= timestamps[0] or t0 > timestamps[-1]:
            return 0, 0
        lo = 0 if t0 <= timestamps[0] else bisect.bisect_left(timestamps, t0)
        hi = len(timestamps) if t1 > timestamps[-1] else bisect.bisect_left(timestamps, t1, lo)
        return lo, hi

    def temporal_slice(self, t0: datetime, t1: datetime) -> Sequence[Message]:
        """Messages falling into the half-open interval ``[t0, t1)``."""
        lo, hi = self.bounds(t0, t1)
        return self._messages[lo:hi]


def _parse_timestamp(raw: str) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_line(text: str, start: int = 0, end: Optional[int] = None) -> Optional[ParsedLine]:
    """Parse the line ``text[start:end]``.

    Returns ``(timestamp, user_start, user_end, body_start)`` as absolute
    offsets into ``text``; the body ends at ``end``. ``None`` for any line that
    does not look like ``[YYYY-MM-DD HH:MM:SS UTC] user: message``.
    """
    if end is None:
        end = len(text)
    if end - start <= USER_START or text[start] != "[":
        return None

    # the user ends at the first ':' after the bracket; it may not be the last char
    user_end = text.find(":", start + USER_START, end - 1)
    if user_end == -1:
        return None

    timestamp = _parse_timestamp(text[start + TS_START : start + TS_END])
    if timestamp is None:
        return None

    return timestamp, start + USER_START, user_end, user_end + 2


def parse_partition(
    text: str, *, partition_date: Optional[date] = None, sort: bool = False
) -> Messages:
    """Parse a whole day of log text into a :class:`Messages` buffer.

    Archive files are already chronological, so the default keeps input order
    and leaves sorting to callers that pass ``sort=True``.
    """
    messages = Messages(text, partition_date=partition_date)
    length = len(text)
    pos = 0
    while pos < length:
        newline = text.find("\n", pos)
        if newline == -1:
            newline = length
        line_end = newline
        if line_end > pos and text[line_end - 1] == "\r":
            line_end -= 1

        parsed = parse_line(text, pos, line_end) if line_end > pos else None
        if parsed is None:
            if line_end > pos:
                messages.dropped_lines += 1
        else:
            timestamp, user_start, user_end, body_start = parsed
            messages._append(
                Message(messages, timestamp, user_start, user_end, body_start, line_end)
            )
        pos = newline + 1

    if sort:
        messages._sort()
    if messages.dropped_lines:
        LOGGER.debug(
            "Dropped %d malformed lines from partition %s", messages.dropped_lines, partition_date
        )
    return messages
