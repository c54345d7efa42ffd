"""Jobs built on the sliding-window engine."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Any, List, Optional, Set, Tuple

from chatan.logs import ChannelLogs
from chatan.utils.text import is_word_candidate
from chatan.window.slider import SlideReport, WindowMessages
from chatan.window.tokens import TokenPredicate, WindowStats, count_messages, most_common

LOGGER = logging.getLogger(__name__)


class TopMode(str, Enum):
    TOKENS = "tokens"
    EMOTES = "emotes"
    MESSAGES = "messages"


@dataclass(slots=True)
class WindowRecord:
    """One row of job output: the ranked tokens of a window."""

    window_start: datetime
    window_end: datetime
    ranked_tokens: List[Tuple[str, int]]
    n_messages: int = 0
    missing_dates: List[date] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "window_start": self.window_start.isoformat(),
            "window_end": self.window_end.isoformat(),
            "ranked_tokens": [[token, count] for token, count in self.ranked_tokens],
            "n_messages": self.n_messages,
            "missing_dates": [day.isoformat() for day in self.missing_dates],
        }


def rolling_top(
    logs: ChannelLogs,
    start: datetime,
    end: datetime,
    step: timedelta,
    size: timedelta,
    *,
    top: int,
    threshold: int = 0,
    mode: TopMode = TopMode.TOKENS,
    predicate: Optional[TokenPredicate] = None,
) -> Tuple[List[WindowRecord], SlideReport]:
    """Top ``top`` tokens (or whole messages) per window."""
    records: List[WindowRecord] = []

    if mode is TopMode.MESSAGES:

        def on_messages(t0: datetime, t1: datetime, window: WindowMessages) -> None:
            counts = count_messages(window)
            LOGGER.debug("Window %s -- %s", t0, t1)
            records.append(
                WindowRecord(
                    t0,
                    t1,
                    most_common(counts, threshold)[:top],
                    n_messages=sum(counts.values()),
                    missing_dates=list(window.missing_dates),
                )
            )

        report = logs.slide(start, end, step, size, on_messages)
        return records, report

    def on_stats(stats: WindowStats) -> None:
        LOGGER.debug(
            "Window %s -- %s: %d messages, %d/%d tokens",
            stats.start,
            stats.end,
            stats.n_messages,
            stats.n_tokens_filtered,
            stats.n_tokens,
        )
        records.append(
            WindowRecord(
                stats.start,
                stats.end,
                most_common(stats.token_counts, threshold)[:top],
                n_messages=stats.n_messages,
                missing_dates=list(stats.missing_dates),
            )
        )

    report = logs.slide_token_counts(start, end, step, size, on_stats, predicate)
    return records, report


def discover_emotes(
    logs: ChannelLogs,
    start: datetime,
    end: datetime,
    size: timedelta,
    *,
    top: int,
    threshold: int = 0,
    predicate: TokenPredicate = is_word_candidate,
) -> Set[str]:
    """Union of each disjoint window's most frequent emote-like tokens."""
    found: Set[str] = set()

    def on_stats(stats: WindowStats) -> None:
        found.update(token for token, _ in most_common(stats.token_counts, threshold)[:top])

    logs.slide_token_counts(start, end, size, size, on_stats, predicate)
    return found


def write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, ensure_ascii=False)
