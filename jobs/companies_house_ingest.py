"""Load the Companies House bulk register export into the database.

Pipeline: one producer thread (the caller) reads raw rows into a bounded queue;
`worker_count` workers map each row to a Company aggregate and hand it to a
`CompanySink`. Every write lands in one transaction that is committed once after
all workers have finished, or rolled back once if the run hits a fatal fault (or
the configured failure threshold).

Usage:
    python jobs/companies_house_ingest.py --csv BasicCompanyData.csv
    python jobs/companies_house_ingest.py --zip BasicCompanyDataAsOneFile.zip --workers 8
    python jobs/companies_house_ingest.py            # download the archive if missing
"""

from __future__ import annotations

import argparse
import io
import os
import queue
import sys
import threading
from collections import Counter
from collections.abc import Iterable, Iterator
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from pathlib import Path

# Allow running this file directly (e.g. `python jobs/companies_house_ingest.py`) by
# ensuring the project root is importable.
_PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

from config import IngestConfig, database_url_from_env
from db import init_schema, make_engine, make_session_factory
from logging_utils import configure_app_logging, get_logger
from settings import SETTINGS
from support.errors import (
    FailureThresholdExceeded,
    FatalIngestError,
    PersistenceError,
    StructuralRowError,
)
from support.source_ingest_base import IngestRunResult, SourceIngestBase
from utils.companies_house_download import download_archive, open_csv_from_zip
from utils.persistence_sink import CompanySink
from utils.record_mapper import FieldWarning, map_row
from utils.row_source import RowSourceStats, iter_rows

logger = get_logger(__name__)

# Queue close marker; each worker consumes exactly one.
_CLOSED = object()


class _RunStats:
    """Thread-safe counters shared by the producer and all workers."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.rows_read = 0
        self.persisted = 0
        self.structural_errors = 0
        self.persistence_errors = 0
        self.field_warning_rows = 0
        self.persisted_with_warnings = 0
        self.field_warnings: Counter[str] = Counter()

    def row_read(self) -> int:
        with self._lock:
            self.rows_read += 1
            return self.rows_read

    def structural_error(self) -> None:
        with self._lock:
            self.structural_errors += 1

    def persistence_error(self) -> None:
        with self._lock:
            self.persistence_errors += 1

    def warned(self, warnings: list[FieldWarning]) -> None:
        with self._lock:
            self.field_warning_rows += 1
            self.field_warnings.update(w.field for w in warnings)

    def persisted_row(self, *, had_warnings: bool) -> None:
        with self._lock:
            self.persisted += 1
            if had_warnings:
                self.persisted_with_warnings += 1

    def failed_rows(self, *, count_field_warnings: bool) -> int:
        with self._lock:
            failed = self.structural_errors + self.persistence_errors
            if count_field_warnings:
                failed += self.persisted_with_warnings
            return failed

    def result(self, outcome: str) -> IngestRunResult:
        with self._lock:
            return IngestRunResult(
                rows_read=self.rows_read,
                persisted=self.persisted,
                structural_errors=self.structural_errors,
                field_warning_rows=self.field_warning_rows,
                persistence_errors=self.persistence_errors,
                field_warnings_by_field=dict(self.field_warnings),
                outcome=outcome,
            )


class CompaniesHouseIngestJob(SourceIngestBase):
    source_name = "companies_house"

    def __init__(self, *, session_factory, config: IngestConfig | None = None) -> None:
        super().__init__(session_factory=session_factory)
        self.config = config or IngestConfig()

    def run(self, rows: Iterable[list[str]]) -> IngestRunResult:
        """Ingest `rows` under one shared transaction.

        Returns the run counts after a commit.

        Raises:
            FatalIngestError: the transaction was rolled back; `err.result` holds the
                counts reached before the abort.
        """

        cfg = self.config
        stats = _RunStats()
        session = self.session_factory()
        sink = CompanySink(session)

        logger.info(
            "Ingest starting | source=%s workers=%s queue_capacity=%s column_count=%s max_failure_rate=%s",
            self.source_name,
            cfg.worker_count,
            cfg.queue_capacity,
            cfg.column_count,
            cfg.max_failure_rate,
        )

        try:
            sink.begin()
            try:
                self._run_pipeline(rows, sink, stats)
                self._check_failure_threshold(stats)
            except BaseException as e:
                if isinstance(e, FailureThresholdExceeded):
                    logger.error("Aborting ingest: %s", e)
                else:
                    logger.exception("Ingest crashed; rolling back")
                sink.rollback()
                if isinstance(e, FatalIngestError):
                    e.result = stats.result("rollback")
                    raise
                if isinstance(e, Exception):
                    err = FatalIngestError(f"ingest aborted: {e!r}")
                    err.result = stats.result("rollback")
                    raise err from e
                raise

            try:
                sink.commit()
            except Exception as e:
                logger.exception("Commit failed")
                err = FatalIngestError(f"commit failed: {e!r}")
                err.result = stats.result("rollback")
                raise err from e
        finally:
            session.close()

        result = stats.result("commit")
        logger.info(
            "Ingest complete | rows_read=%s persisted=%s structural_errors=%s persistence_errors=%s field_warning_rows=%s",
            result.rows_read,
            result.persisted,
            result.structural_errors,
            result.persistence_errors,
            result.field_warning_rows,
        )
        if result.field_warnings_by_field:
            logger.warning(
                "Unparsable fields stored as unset | counts=%s",
                result.field_warnings_by_field,
            )
        return result

    def _run_pipeline(
        self, rows: Iterable[list[str]], sink: CompanySink, stats: _RunStats
    ) -> None:
        cfg = self.config
        q: queue.Queue = queue.Queue(maxsize=cfg.queue_capacity)
        abort = threading.Event()

        with ThreadPoolExecutor(
            max_workers=cfg.worker_count, thread_name_prefix="ingest-worker"
        ) as ex:
            futures = [
                ex.submit(self._worker_loop, q, sink, stats, abort)
                for _ in range(cfg.worker_count)
            ]

            produced = False
            try:
                self._produce(rows, q, stats, abort)
                produced = True
            finally:
                if not produced:
                    abort.set()
                # Close the queue. Workers keep draining (and discarding, once
                # aborted) until they see their marker, so these puts cannot stall.
                for _ in range(cfg.worker_count):
                    q.put(_CLOSED)

            # Completion barrier: every worker must finish before commit/rollback.
            for fut in futures:
                fut.result()

    def _produce(
        self,
        rows: Iterable[list[str]],
        q: queue.Queue,
        stats: _RunStats,
        abort: threading.Event,
    ) -> None:
        every = max(1, int(self.config.progress_every))
        for row in rows:
            if abort.is_set():
                logger.warning("Producer stopping: a worker hit a fatal fault")
                return
            n = stats.row_read()
            # Blocks while the queue is full.
            q.put((n, row))
            if n % every == 0:
                logger.info("Progress | rows_read=%s", n)

    def _worker_loop(
        self,
        q: queue.Queue,
        sink: CompanySink,
        stats: _RunStats,
        abort: threading.Event,
    ) -> int:
        processed = 0
        fault: BaseException | None = None
        while True:
            item = q.get()
            try:
                if item is _CLOSED:
                    break
                if abort.is_set():
                    continue
                row_number, row = item
                try:
                    self._process_row(row_number, row, sink, stats)
                    processed += 1
                except Exception as e:
                    logger.exception("Worker fault | row=%s", row_number)
                    fault = e
                    abort.set()
            finally:
                q.task_done()

        if fault is not None:
            raise fault
        return processed

    def _process_row(
        self, row_number: int, row: list[str], sink: CompanySink, stats: _RunStats
    ) -> None:
        cfg = self.config
        try:
            record = map_row(row, column_count=cfg.column_count, date_format=cfg.date_format)
        except StructuralRowError as e:
            stats.structural_error()
            logger.warning(
                "Skipping malformed row | row=%s company_number=%s error=%s",
                row_number,
                e.company_number,
                e,
            )
            return

        if record.has_warnings:
            stats.warned(record.warnings)
            logger.warning(
                "Unparsable fields stored as unset | row=%s company_number=%s fields=%s",
                row_number,
                record.company.company_number,
                ", ".join(f"{w.field}={w.value!r}" for w in record.warnings),
            )

        try:
            sink.write(record.company)
        except PersistenceError as e:
            stats.persistence_error()
            logger.warning(
                "Error saving record to the database | row=%s company_number=%s error=%s",
                row_number,
                e.company_number,
                e.cause,
            )
            return

        stats.persisted_row(had_warnings=record.has_warnings)

    def _check_failure_threshold(self, stats: _RunStats) -> None:
        cfg = self.config
        if cfg.max_failure_rate is None or stats.rows_read == 0:
            return
        failed = stats.failed_rows(count_field_warnings=cfg.count_field_warnings)
        if failed / stats.rows_read > cfg.max_failure_rate:
            raise FailureThresholdExceeded(failed, stats.rows_read, cfg.max_failure_rate)


@contextmanager
def _open_source(args: argparse.Namespace) -> Iterator[io.TextIOBase]:
    if args.csv:
        with open(args.csv, "r", encoding="utf-8-sig", newline="") as f:
            yield f
        return

    archive = Path(args.zip) if args.zip else Path(str(SETTINGS["ARCHIVE_PATH"]))
    if not args.zip:
        download_archive(args.download_url or str(SETTINGS["DOWNLOAD_URL"]), archive)
    with open_csv_from_zip(archive) as stream:
        yield stream


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="Load the Companies House bulk register export into the database."
    )
    src = p.add_mutually_exclusive_group()
    src.add_argument("--csv", help="Path to an extracted BasicCompanyData CSV file.")
    src.add_argument("--zip", help="Path to a local BasicCompanyData ZIP archive.")
    p.add_argument(
        "--download-url",
        default=None,
        help="Archive URL used when neither --csv nor --zip is given.",
    )
    p.add_argument("--database-url", default=None, help="SQLAlchemy database URL.")
    p.add_argument("--workers", type=int, default=None, help="Worker thread count.")
    p.add_argument(
        "--queue-capacity", type=int, default=None, help="Bounded queue capacity."
    )
    p.add_argument(
        "--max-failure-rate",
        type=float,
        default=None,
        help="Roll back if failed_rows / rows_read exceeds this (0..1).",
    )
    p.add_argument(
        "--count-field-warnings",
        action="store_true",
        help="Count rows with unparsable dates as failures for --max-failure-rate.",
    )
    p.add_argument("--log-level", default=None, help="Logging level (e.g. DEBUG).")
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    if args.log_level:
        os.environ["LOG_LEVEL"] = str(args.log_level)
        configure_app_logging(str(args.log_level))

    try:
        config = IngestConfig.from_env().with_overrides(
            worker_count=args.workers,
            queue_capacity=args.queue_capacity,
            max_failure_rate=args.max_failure_rate,
            count_field_warnings=True if args.count_field_warnings else None,
        )
    except ValueError as e:
        raise SystemExit(f"invalid configuration: {e}")

    engine = make_engine(args.database_url or database_url_from_env())
    try:
        init_schema(engine)
        job = CompaniesHouseIngestJob(
            session_factory=make_session_factory(engine), config=config
        )
        source_stats = RowSourceStats()
        with _open_source(args) as stream:
            result = job.run(iter_rows(stream, stats=source_stats))
    except FatalIngestError as e:
        print(f"\ncompanies_house_ingest: rolled back | {e}")
        return 1
    except Exception:
        logger.exception("companies_house_ingest crashed")
        raise
    finally:
        engine.dispose()

    print(
        f"\ncompanies_house_ingest: committed | rows_read={result.rows_read} "
        f"persisted={result.persisted} structural_errors={result.structural_errors} "
        f"persistence_errors={result.persistence_errors} "
        f"field_warning_rows={result.field_warning_rows} "
        f"unreadable_rows={source_stats.rows_skipped}"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
