"""Tests for emote index loading."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from chatan.emotes import emote_predicate, load_emote_index
from chatan.errors import EmoteIndexError


def test_loads_object(tmp_path: Path) -> None:
    """Should load a JSON object keyed by emote name."""
    path = tmp_path / "emotes.json"
    path.write_text(json.dumps({"Kappa": {"provider": "twitch"}, "OMEGALUL": {}}), encoding="utf-8")

    index = load_emote_index(path)

    assert set(index) == {"Kappa", "OMEGALUL"}


def test_list_becomes_mapping(tmp_path: Path) -> None:
    """Should accept a plain list of names."""
    path = tmp_path / "emotes.json"
    path.write_text('["Kappa", "LUL"]', encoding="utf-8")

    assert load_emote_index(path) == {"Kappa": {}, "LUL": {}}


@pytest.mark.parametrize("content", ["not json", "42"])
def test_malformed_file(tmp_path: Path, content: str) -> None:
    """Should raise EmoteIndexError for invalid content."""
    path = tmp_path / "emotes.json"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(EmoteIndexError):
        load_emote_index(path)


def test_missing_file(tmp_path: Path) -> None:
    """Should raise EmoteIndexError for a missing file."""
    with pytest.raises(EmoteIndexError):
        load_emote_index(tmp_path / "missing.json")


def test_predicate_is_exact_membership() -> None:
    """Should match emote names exactly."""
    is_emote = emote_predicate({"Kappa": {}})

    assert is_emote("Kappa")
    assert not is_emote("kappa")
    assert not is_emote("KappaPride")
