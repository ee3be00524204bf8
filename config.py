from __future__ import annotations

import os
from dataclasses import dataclass, replace

from settings import SETTINGS


def _env_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None or not v.strip():
        return int(default)
    return int(v.strip())


def _env_rate(name: str, default: float | None) -> float | None:
    v = os.getenv(name)
    if v is None:
        return default
    v = v.strip()
    if not v or v.lower() in {"none", "off"}:
        return None
    return float(v)


@dataclass(frozen=True)
class IngestConfig:
    """Tunables for one pipeline run."""

    worker_count: int = int(SETTINGS["WORKER_COUNT"])
    queue_capacity: int = int(SETTINGS["QUEUE_CAPACITY"])
    column_count: int = int(SETTINGS["COLUMN_COUNT"])
    date_format: str = str(SETTINGS["DATE_FORMAT"])
    # Abort (rollback) when failed_rows / rows_read exceeds this. None disables.
    max_failure_rate: float | None = SETTINGS["MAX_FAILURE_RATE"]  # type: ignore[assignment]
    count_field_warnings: bool = bool(SETTINGS["COUNT_FIELD_WARNINGS"])
    progress_every: int = int(SETTINGS["PROGRESS_EVERY"])

    def __post_init__(self) -> None:
        if self.worker_count <= 0:
            raise ValueError("worker_count must be a positive integer")
        if self.queue_capacity <= 0:
            raise ValueError("queue_capacity must be a positive integer")
        if self.column_count <= 0:
            raise ValueError("column_count must be a positive integer")
        if self.max_failure_rate is not None and not (
            0.0 <= float(self.max_failure_rate) <= 1.0
        ):
            raise ValueError("max_failure_rate must be within [0, 1]")

    @classmethod
    def from_env(cls) -> "IngestConfig":
        """Build a config from COMPANIES_INGEST_* env vars, falling back to SETTINGS."""

        base = cls()
        return cls(
            worker_count=_env_int("COMPANIES_INGEST_WORKERS", base.worker_count),
            queue_capacity=_env_int(
                "COMPANIES_INGEST_QUEUE_CAPACITY", base.queue_capacity
            ),
            column_count=_env_int("COMPANIES_INGEST_COLUMN_COUNT", base.column_count),
            date_format=os.getenv("COMPANIES_INGEST_DATE_FORMAT", base.date_format),
            max_failure_rate=_env_rate(
                "COMPANIES_INGEST_MAX_FAILURE_RATE", base.max_failure_rate
            ),
            count_field_warnings=_env_bool(
                "COMPANIES_INGEST_COUNT_FIELD_WARNINGS", base.count_field_warnings
            ),
            progress_every=_env_int(
                "COMPANIES_INGEST_PROGRESS_EVERY", base.progress_every
            ),
        )

    def with_overrides(self, **overrides) -> "IngestConfig":
        """Return a copy with every non-None override applied."""

        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def database_url_from_env() -> str:
    return os.getenv("DATABASE_URL") or str(SETTINGS["DATABASE_URL"])
