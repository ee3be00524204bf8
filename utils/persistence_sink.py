from __future__ import annotations

import threading

from sqlalchemy.exc import DataError, IntegrityError
from sqlalchemy.orm import Session as SASession
from sqlalchemy.orm.exc import FlushError

from logging_utils import get_logger
from models.companies import Company
from models.previous_names import PreviousName
from support.errors import PersistenceError

logger = get_logger(__name__)


def _drop_colliding_previous_names(company: Company) -> list[PreviousName]:
    """Keep the first previous name per con_date; return the ones dropped.

    Two slots can share a date (including two unparsable dates, both stored as
    ZERO_DATE). The company itself must still be written, so later colliding
    children are skipped instead of failing the whole aggregate.
    """

    seen = set()
    kept: list[PreviousName] = []
    dropped: list[PreviousName] = []
    for p in company.previous_names:
        if p.con_date in seen:
            dropped.append(p)
        else:
            seen.add(p.con_date)
            kept.append(p)

    if dropped:
        company.previous_names = kept
        logger.warning(
            "Skipping previous names with a duplicate con_date | company_number=%s dropped=%s",
            company.company_number,
            ", ".join(f"{p.con_date.isoformat()}={p.company_name!r}" for p in dropped),
        )
    return dropped


class CompanySink:
    """Writes Company aggregates into one transaction shared by every worker.

    SQLAlchemy sessions are not thread-safe, so every use of the session goes
    through `self._lock`. Each aggregate is written inside its own SAVEPOINT: a
    duplicate key or constraint violation undoes only that aggregate and leaves the
    shared transaction usable.

    `commit()` and `rollback()` end the run; only one of them may be called, once.
    """

    def __init__(self, session: SASession):
        self._session = session
        self._lock = threading.Lock()
        self._begun = False
        self._finished: str | None = None
        self.written = 0

    def begin(self) -> None:
        with self._lock:
            if self._begun:
                raise RuntimeError("shared transaction already begun")
            if self._session.in_transaction():
                # Autobegun by an earlier query on this session; adopt it.
                logger.debug("Adopting already-open session transaction")
            else:
                self._session.begin()
            self._begun = True

    def write(self, company: Company) -> None:
        """Persist one aggregate (company + nested rows) as a unit.

        Raises:
            PersistenceError: the aggregate was rejected by the database.
        """

        with self._lock:
            self._check_open()
            _drop_colliding_previous_names(company)
            try:
                with self._session.begin_nested():
                    self._session.add(company)
            except (IntegrityError, DataError, FlushError) as e:
                raise PersistenceError(company.company_number, e) from e
            finally:
                # Flushed rows live on in the transaction; drop the objects so the
                # identity map does not grow with the input.
                self._session.expunge_all()
            self.written += 1

    def commit(self) -> None:
        with self._lock:
            self._finish("commit")
            try:
                self._session.commit()
            except Exception:
                self._finished = "rollback"
                self._session.rollback()
                raise
        logger.info("Shared transaction committed | written=%s", self.written)

    def rollback(self) -> None:
        with self._lock:
            self._finish("rollback")
            self._session.rollback()
        logger.warning(
            "Shared transaction rolled back | discarded_writes=%s", self.written
        )

    @property
    def outcome(self) -> str | None:
        """'commit', 'rollback', or None while the run is still open."""
        return self._finished

    def _check_open(self) -> None:
        if not self._begun:
            raise RuntimeError("begin() must be called before write()")
        if self._finished is not None:
            raise RuntimeError(f"shared transaction already ended by {self._finished}")

    def _finish(self, how: str) -> None:
        if self._finished is not None:
            raise RuntimeError(f"shared transaction already ended by {self._finished}")
        self._finished = how
