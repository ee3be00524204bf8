from __future__ import annotations

import abc
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.orm import sessionmaker


@dataclass(frozen=True)
class IngestRunResult:
    rows_read: int
    persisted: int
    structural_errors: int = 0
    field_warning_rows: int = 0
    persistence_errors: int = 0
    field_warnings_by_field: dict[str, int] = field(default_factory=dict)
    outcome: str = "commit"

    @property
    def failed_rows(self) -> int:
        return self.structural_errors + self.persistence_errors


class SourceIngestBase(abc.ABC):
    """Reusable base class for source ingestion jobs.

    Subclasses should implement:
    - `source_name`: canonical identifier used in logs.
    - `run(rows)`: ingest the rows and return counts.

    The session factory is always passed in explicitly; there is no module-level
    database handle.
    """

    source_name: str

    def __init__(self, *, session_factory: sessionmaker | Any) -> None:
        if session_factory is None:
            raise ValueError("session_factory is required")
        self.session_factory = session_factory

    @abc.abstractmethod
    def run(self, rows: Iterable[list[str]]) -> IngestRunResult:  # pragma: no cover
        raise NotImplementedError
