"""Per-window token statistics on top of :class:`WindowSlider`."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Callable, Iterable, List, Mapping, Optional, Tuple

from chatan.ingestion.parser import Message
from chatan.utils.text import iter_tokens
from chatan.window.slider import SlideReport, WindowMessages, WindowSlider

TokenPredicate = Callable[[str], bool]


def accept_all(token: str) -> bool:
    return True


@dataclass(slots=True)
class WindowStats:
    """Statistics of one window of tokenized messages."""

    start: datetime
    end: datetime
    n_messages: int = 0
    n_tokens: int = 0
    n_tokens_filtered: int = 0
    token_counts: Counter = field(default_factory=Counter)
    expected_dates: Tuple[date, ...] = ()
    missing_dates: Tuple[date, ...] = ()


def count_tokens(
    messages: Iterable[Message], predicate: TokenPredicate = accept_all
) -> Tuple[Counter, int, int, int]:
    """Count predicate-accepted tokens of message bodies.

    Returns ``(counts, n_messages, n_tokens, n_tokens_filtered)`` where
    ``n_tokens`` includes rejected tokens.
    """
    counts: Counter = Counter()
    n_messages = n_tokens = n_filtered = 0
    for message in messages:
        n_messages += 1
        for token in iter_tokens(message.body):
            n_tokens += 1
            if predicate(token):
                n_filtered += 1
                counts[token] += 1
    return counts, n_messages, n_tokens, n_filtered


def count_messages(messages: Iterable[Message]) -> Counter:
    """Count identical message bodies."""
    return Counter(message.body for message in messages)


def most_common(counts: Mapping[str, int], threshold: int = 0) -> List[Tuple[str, int]]:
    """Tokens seen more than ``threshold`` times, most frequent first.

    Ties keep the order in which the tokens were first counted.
    """
    items = [(token, count) for token, count in counts.items() if count > threshold]
    items.sort(key=lambda item: item[1], reverse=True)
    return items


class TokenAggregator:
    """Slides over a log and reports :class:`WindowStats` for each window."""

    def __init__(self, slider: WindowSlider, predicate: Optional[TokenPredicate] = None) -> None:
        self.slider = slider
        self.predicate = predicate or accept_all

    def window_stats(self, window: WindowMessages) -> WindowStats:
        counts, n_messages, n_tokens, n_filtered = count_tokens(window, self.predicate)
        return WindowStats(
            start=window.start,
            end=window.end,
            n_messages=n_messages,
            n_tokens=n_tokens,
            n_tokens_filtered=n_filtered,
            token_counts=counts,
            expected_dates=window.expected_dates,
            missing_dates=window.missing_dates,
        )

    def slide(
        self,
        start: datetime,
        end: datetime,
        step: timedelta,
        size: timedelta,
        on_window: Callable[[WindowStats], None],
    ) -> SlideReport:
        def handle(t0: datetime, t1: datetime, window: WindowMessages) -> None:
            on_window(self.window_stats(window))

        return self.slider.slide(start, end, step, size, handle)
