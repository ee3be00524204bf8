"""Error taxonomy for the Companies House ingest pipeline.

Per-row errors (structural, field parse, persistence) are always recovered by
skipping the row. Only `FatalIngestError` ends a run, and it always means the
shared transaction was rolled back.
"""

from __future__ import annotations


class IngestError(RuntimeError):
    pass


class StructuralRowError(IngestError):
    """Row does not have the contracted column count."""

    def __init__(self, actual: int, expected: int, *, company_number: str | None = None):
        self.actual = actual
        self.expected = expected
        self.company_number = company_number
        super().__init__(f"expected {expected} columns, got {actual}")


class FieldParseError(IngestError, ValueError):
    """A date or numeric field could not be parsed."""

    def __init__(self, field: str, value: str):
        self.field = field
        self.value = value
        super().__init__(f"cannot parse {field}={value!r}")


class PersistenceError(IngestError):
    """Writing one aggregate failed (duplicate key, constraint violation)."""

    def __init__(self, company_number: str, cause: BaseException):
        self.company_number = company_number
        self.cause = cause
        super().__init__(f"failed to persist company {company_number}: {cause}")


class FatalIngestError(IngestError):
    """Unrecoverable fault; the run's transaction has been rolled back.

    `result` is filled in by the job with the counts reached before the abort.
    """

    result = None


class FailureThresholdExceeded(FatalIngestError):
    def __init__(self, failed_rows: int, rows_read: int, max_failure_rate: float):
        self.failed_rows = failed_rows
        self.rows_read = rows_read
        self.max_failure_rate = max_failure_rate
        super().__init__(
            f"failure rate {failed_rows}/{rows_read} exceeds max_failure_rate={max_failure_rate}"
        )
