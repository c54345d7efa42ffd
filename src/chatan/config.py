"""Application configuration defaults."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path

from chatan.models import CachePolicy


def _get_default_cache_dir() -> Path:
    """Get the default partition cache root."""
    # When running from a checkout, prefer a local data/logs if it exists
    local_dir = Path("data/logs")
    if local_dir.exists():
        return local_dir
    return Path.home() / ".cache" / "chatan"


@dataclass(slots=True)
class AppConfig:
    channel: str = ""
    cache_dir: Path | None = None
    policy: CachePolicy = CachePolicy.REMOTE_AND_CACHE
    start: datetime | None = None
    end: datetime | None = None
    step: timedelta = field(default_factory=lambda: timedelta(days=1))
    size: timedelta = field(default_factory=lambda: timedelta(days=1))
    top: int = 100
    threshold: int = 0
    concurrency: int = 8
    timeout: float = 30.0
    recent_days: int = 2
    show_progress: bool = False

    def __post_init__(self) -> None:
        if self.cache_dir is None:
            self.cache_dir = _get_default_cache_dir()
        self.policy = CachePolicy.parse(self.policy)

    def resolve_cache_dir(self, base_dir: Path | None = None) -> Path:
        if self.cache_dir is None:
            self.cache_dir = _get_default_cache_dir()
        if Path(self.cache_dir).is_absolute() or base_dir is None:
            return Path(self.cache_dir)
        return base_dir / self.cache_dir
