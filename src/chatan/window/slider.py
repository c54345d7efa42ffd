"""Sliding-window iteration over a day-partitioned log.

The slider keeps a small, date-ordered buffer of parsed partitions. Each
step evicts the partitions that lie entirely before the window start, loads
the days needed for the current window plus one step of lookahead, and hands
the callback a lazy view over the messages inside ``[start, start + size)``.
A partition that is already resident is never loaded again, whatever the
overlap between consecutive windows.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Iterator, List, Tuple

from chatan.errors import (
    EmptyIndexError,
    InsufficientWindowError,
    InvalidTimeIntervalError,
    PartitionLoadError,
)
from chatan.ingestion.parser import Message, Messages
from chatan.models import ONE_DAY, PartitionIndex

LOGGER = logging.getLogger(__name__)

# Last representable instant before a boundary; datetimes have microsecond resolution.
_EPSILON = timedelta(microseconds=1)

PartitionLoader = Callable[[date], Messages]


def as_utc(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def midnight(day: date) -> datetime:
    return datetime(day.year, day.month, day.day, tzinfo=timezone.utc)


def days_between(first: date, last: date) -> List[date]:
    """Inclusive list of calendar days from ``first`` to ``last``."""
    days = []
    day = first
    while day <= last:
        days.append(day)
        day += ONE_DAY
    return days


class WindowMessages:
    """Single-pass, lazy sequence of the messages of one window.

    Only valid during the callback it is passed to: the partitions it reads
    from may be evicted as soon as the slider advances.
    """

    __slots__ = ("start", "end", "expected_dates", "missing_dates", "_iterator")

    def __init__(
        self,
        start: datetime,
        end: datetime,
        iterator: Iterator[Message],
        *,
        expected_dates: Tuple[date, ...] = (),
        missing_dates: Tuple[date, ...] = (),
    ) -> None:
        self.start = start
        self.end = end
        self.expected_dates = expected_dates
        self.missing_dates = missing_dates
        self._iterator = iterator

    def __iter__(self) -> "WindowMessages":
        return self

    def __next__(self) -> Message:
        return next(self._iterator)


WindowCallback = Callable[[datetime, datetime, WindowMessages], None]


@dataclass(slots=True)
class SlideReport:
    windows: int = 0
    loads: int = 0
    evictions: int = 0
    missing_dates: set[date] = field(default_factory=set)


@dataclass(slots=True)
class _Resident:
    date: date
    messages: Messages
    missing: bool


class WindowSlider:
    """Drives a sliding window across a :class:`PartitionIndex`."""

    def __init__(self, index: PartitionIndex, load_partition: PartitionLoader) -> None:
        self.index = index
        self.load_partition = load_partition

    def check(
        self, start: datetime, end: datetime, step: timedelta, size: timedelta
    ) -> Tuple[datetime, datetime]:
        """Validate a slide request; returns ``start`` and ``end`` normalised to UTC."""
        if not self.index:
            raise EmptyIndexError()
        if step <= timedelta(0) or size <= timedelta(0):
            raise InvalidTimeIntervalError(f"Step and size must be positive (step={step}, size={size})")

        start, end = as_utc(start), as_utc(end)
        span = self.index.span
        if start > end:
            raise InvalidTimeIntervalError(f"Start {start.isoformat()} is after end {end.isoformat()}")
        if end - start > span:
            raise InvalidTimeIntervalError(
                f"Requested interval of {end - start} exceeds the {span} covered by the index"
            )
        if size > span:
            raise InsufficientWindowError(f"Window size {size} exceeds the {span} covered by the index")
        return start, end

    def slide(
        self,
        start: datetime,
        end: datetime,
        step: timedelta,
        size: timedelta,
        on_window: WindowCallback,
    ) -> SlideReport:
        """Call ``on_window(window_start, window_end, messages)`` for each window.

        Windows are half-open: a message stamped exactly at ``window_end``
        belongs to the next window. Iteration stops once ``window_end`` would
        pass ``end``.
        """
        start, end = self.check(start, end, step, size)
        report = SlideReport()
        buffer: List[_Resident] = []

        try:
            cur = start
            while cur + size <= end:
                window_end = cur + size
                self._evict(buffer, cur.date(), report)
                self._fill(buffer, cur, min(window_end + step, end), report)

                expected = tuple(days_between(cur.date(), (window_end - _EPSILON).date()))
                missing = tuple(
                    r.date for r in buffer if r.missing and cur.date() <= r.date <= expected[-1]
                )
                messages = WindowMessages(
                    cur,
                    window_end,
                    self._window_iterator(buffer, cur, window_end),
                    expected_dates=expected,
                    missing_dates=missing,
                )
                on_window(cur, window_end, messages)
                report.windows += 1
                cur += step
        finally:
            for resident in buffer:
                resident.messages.release()

        LOGGER.debug(
            "Slide finished: %d windows, %d loads, %d evictions",
            report.windows,
            report.loads,
            report.evictions,
        )
        return report

    @staticmethod
    def _window_iterator(
        buffer: List[_Resident], t0: datetime, t1: datetime
    ) -> Iterator[Message]:
        # snapshot the buffer: the view must not follow later evictions
        residents = [r.messages for r in buffer]
        return itertools.chain.from_iterable(m.temporal_slice(t0, t1) for m in residents)

    @staticmethod
    def _evict(buffer: List[_Resident], cur_date: date, report: SlideReport) -> None:
        kept = []
        for resident in buffer:
            if resident.date < cur_date:
                resident.messages.release()
                report.evictions += 1
            else:
                kept.append(resident)
        buffer[:] = kept

    def _fill(
        self, buffer: List[_Resident], cur: datetime, horizon: datetime, report: SlideReport
    ) -> None:
        """Load every day overlapping ``[cur, horizon)`` that is not resident yet."""
        day = buffer[-1].date + ONE_DAY if buffer else cur.date()
        day = max(day, cur.date())
        last = (horizon - _EPSILON).date()
        while day <= last:
            buffer.append(self._load(day, report))
            day += ONE_DAY

    def _load(self, day: date, report: SlideReport) -> _Resident:
        if self.index.find(day) is None:
            report.missing_dates.add(day)
            return _Resident(day, Messages.empty(day), missing=True)

        report.loads += 1
        try:
            messages = self.load_partition(day)
        except PartitionLoadError as exc:
            LOGGER.warning("%s; continuing with an empty partition", exc)
            report.missing_dates.add(day)
            return _Resident(day, Messages.empty(day), missing=True)
        return _Resident(day, messages, missing=False)

