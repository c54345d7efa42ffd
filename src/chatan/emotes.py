"""Emote index files used as token filters."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict

from chatan.errors import EmoteIndexError
from chatan.window.tokens import TokenPredicate

LOGGER = logging.getLogger(__name__)


def load_emote_index(path: Path) -> Dict[str, Any]:
    """Read a JSON object mapping emote names to provider metadata."""
    try:
        with Path(path).open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except FileNotFoundError as exc:
        raise EmoteIndexError(f"Emote index not found: {path}") from exc
    except (OSError, json.JSONDecodeError) as exc:
        raise EmoteIndexError(f"Could not read emote index {path}: {exc}") from exc

    if isinstance(data, list):
        data = {str(name): {} for name in data}
    if not isinstance(data, dict):
        raise EmoteIndexError(f"Emote index {path} must be a JSON object or list")
    LOGGER.info("Loaded %d emotes from %s", len(data), path)
    return data


def emote_predicate(index: Dict[str, Any]) -> TokenPredicate:
    names = frozenset(index)

    def is_emote(token: str) -> bool:
        return token in names

    return is_emote
