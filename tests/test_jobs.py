"""Tests for rolling-top and emote discovery jobs."""

from __future__ import annotations

import json
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

import pytest

from chatan.jobs import TopMode, WindowRecord, discover_emotes, rolling_top, write_json
from chatan.logs import ChannelLogs
from conftest import log_line

DAY = timedelta(days=1)


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def logs(tmp_path: Path, write_partition) -> ChannelLogs:
    write_partition(
        "forsen",
        date(2024, 1, 1),
        log_line("2024-01-01 08:00:00", "a", "OMEGALUL OMEGALUL")
        + log_line("2024-01-01 09:00:00", "b", "OMEGALUL")
        + log_line("2024-01-01 10:00:00", "c", "gg"),
    )
    write_partition(
        "forsen",
        date(2024, 1, 2),
        log_line("2024-01-02 08:00:00", "a", "gg")
        + log_line("2024-01-02 09:00:00", "b", "gg")
        + log_line("2024-01-02 10:00:00", "c", "!!!"),
    )
    write_partition("forsen", date(2024, 1, 4), log_line("2024-01-04 08:00:00", "a", "Kappa"))
    channel_logs = ChannelLogs("forsen", tmp_path / "logs")
    channel_logs.sync()
    return channel_logs


class TestRollingTop:
    """Test rolling_top."""

    def test_tokens_mode(self, logs: ChannelLogs) -> None:
        """Should rank tokens per daily window."""
        records, report = rolling_top(logs, utc(2024, 1, 1), utc(2024, 1, 3), DAY, DAY, top=1)

        assert report.windows == 2
        assert [r.ranked_tokens for r in records] == [[("OMEGALUL", 3)], [("gg", 2)]]
        assert [r.n_messages for r in records] == [3, 3]

    def test_messages_mode(self, logs: ChannelLogs) -> None:
        """Should rank whole message bodies."""
        records, _ = rolling_top(
            logs, utc(2024, 1, 2), utc(2024, 1, 3), DAY, DAY, top=10, mode=TopMode.MESSAGES
        )

        assert records[0].ranked_tokens == [("gg", 2), ("!!!", 1)]
        assert records[0].n_messages == 3

    def test_emotes_mode_uses_predicate(self, logs: ChannelLogs) -> None:
        """Should count only tokens accepted by the predicate."""
        records, _ = rolling_top(
            logs,
            utc(2024, 1, 1),
            utc(2024, 1, 3),
            DAY,
            2 * DAY,
            top=10,
            mode=TopMode.EMOTES,
            predicate=lambda token: token == "gg",
        )

        assert records[0].ranked_tokens == [("gg", 3)]

    def test_threshold(self, logs: ChannelLogs) -> None:
        """Should drop tokens at or below the threshold."""
        records, _ = rolling_top(
            logs, utc(2024, 1, 1), utc(2024, 1, 3), DAY, 2 * DAY, top=10, threshold=2
        )

        assert records[0].ranked_tokens == [("OMEGALUL", 3), ("gg", 3)]

    def test_missing_day_is_reported(self, logs: ChannelLogs) -> None:
        """Should report days without data in each record."""
        records, report = rolling_top(logs, utc(2024, 1, 3), utc(2024, 1, 4), DAY, DAY, top=5)

        assert records[0].ranked_tokens == []
        assert records[0].missing_dates == [date(2024, 1, 3)]
        assert report.missing_dates == {date(2024, 1, 3)}


class TestDiscoverEmotes:
    """Test discover_emotes."""

    def test_union_of_window_tops(self, logs: ChannelLogs) -> None:
        """Should collect the top tokens of every window."""
        found = discover_emotes(logs, utc(2024, 1, 1), utc(2024, 1, 5), DAY, top=1)

        assert found == {"OMEGALUL", "gg", "Kappa"}

    def test_non_alphanumeric_tokens_are_ignored(self, logs: ChannelLogs) -> None:
        """Should skip tokens that do not look like emotes."""
        found = discover_emotes(logs, utc(2024, 1, 2), utc(2024, 1, 3), DAY, top=10)

        assert found == {"gg"}


class TestOutput:
    """Test JSON output."""

    def test_record_to_dict(self) -> None:
        """Should serialize datetimes and dates as ISO strings."""
        record = WindowRecord(
            utc(2024, 1, 1),
            utc(2024, 1, 2),
            [("gg", 2)],
            n_messages=2,
            missing_dates=[date(2024, 1, 1)],
        )

        assert record.to_dict() == {
            "window_start": "2024-01-01T00:00:00+00:00",
            "window_end": "2024-01-02T00:00:00+00:00",
            "ranked_tokens": [["gg", 2]],
            "n_messages": 2,
            "missing_dates": ["2024-01-01"],
        }

    def test_write_json_creates_parents(self, tmp_path: Path) -> None:
        """Should create missing parent directories."""
        target = tmp_path / "nested" / "out.json"

        write_json(target, ["Kappa"])

        assert json.loads(target.read_text(encoding="utf-8")) == ["Kappa"]
