"""Type definitions for the sync worker."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class WorkerConfig:
    """Configuration for the outbox sync worker."""

    poll_interval_ms: int
    max_backoff_seconds: int
    data_dir: Path
    transient_media_hosts: tuple[str, ...] = field(default_factory=lambda: ("api.telegram.org",))


@dataclass(frozen=True)
class DrainResult:
    processed: int
    remaining: int
