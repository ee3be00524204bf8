from __future__ import annotations

import io
import threading

import pytest

import jobs.companies_house_ingest as job_mod
from config import IngestConfig
from jobs.companies_house_ingest import CompaniesHouseIngestJob
from models import Company, PreviousName
from pytests.common import make_row, make_rows, rows_to_csv
from support.errors import FailureThresholdExceeded, FatalIngestError
from utils.row_source import iter_rows


def _job(temp_db, **cfg) -> CompaniesHouseIngestJob:
    cfg.setdefault("worker_count", 4)
    cfg.setdefault("queue_capacity", 8)
    return CompaniesHouseIngestJob(
        session_factory=temp_db.session_factory, config=IngestConfig(**cfg)
    )


def _company_numbers(temp_db) -> list[str]:
    with temp_db.session_factory() as s:
        return sorted(n for (n,) in s.query(Company.company_number).all())


def test_all_rows_persisted_with_many_workers(temp_db):
    rows = make_rows(250)

    result = _job(temp_db, worker_count=4, queue_capacity=5).run(rows)

    assert result.outcome == "commit"
    assert result.rows_read == 250
    assert result.persisted == 250
    assert result.failed_rows == 0
    assert _company_numbers(temp_db) == sorted(r[1] for r in rows)


def test_small_queue_neither_drops_nor_duplicates_rows(temp_db, monkeypatch):
    seen: list[str] = []
    lock = threading.Lock()
    real_write = job_mod.CompanySink.write

    def _recording_write(self, company):
        with lock:
            seen.append(company.company_number)
        return real_write(self, company)

    monkeypatch.setattr(job_mod.CompanySink, "write", _recording_write)
    rows = make_rows(120)

    result = _job(temp_db, worker_count=3, queue_capacity=1).run(iter(rows))

    assert result.persisted == 120
    assert sorted(seen) == sorted(r[1] for r in rows)
    assert len(seen) == len(set(seen))


def test_one_duplicate_key_is_skipped_and_run_commits(temp_db, app_caplog):
    rows = make_rows(99)
    rows.append(make_row(rows[41][1], company_name="SAME NUMBER AGAIN"))

    with app_caplog.at_level("WARNING"):
        result = _job(temp_db).run(rows)

    assert result.outcome == "commit"
    assert result.rows_read == 100
    assert result.persisted == 99
    assert result.persistence_errors == 1
    assert len(_company_numbers(temp_db)) == 99
    assert "Error saving record to the database" in app_caplog.text


def test_rerun_against_loaded_store_fails_every_row_but_commits(temp_db):
    rows = make_rows(30)
    _job(temp_db).run(rows)

    result = _job(temp_db).run(rows)

    assert result.outcome == "commit"
    assert result.persisted == 0
    assert result.persistence_errors == 30
    assert len(_company_numbers(temp_db)) == 30


def test_structural_rows_are_skipped(temp_db, app_caplog):
    rows = make_rows(10)
    rows.insert(3, ["too", "short"])
    rows.insert(7, rows[0][:-1])

    with app_caplog.at_level("WARNING"):
        result = _job(temp_db).run(rows)

    assert result.rows_read == 12
    assert result.structural_errors == 2
    assert result.persisted == 10
    assert "Skipping malformed row" in app_caplog.text


def test_field_parse_warnings_are_counted_not_fatal(temp_db):
    rows = make_rows(5)
    rows[2] = make_row("00000003", dissolution_date="not a date")

    result = _job(temp_db).run(rows)

    assert result.persisted == 5
    assert result.field_warning_rows == 1
    assert result.field_warnings_by_field == {"dissolution_date": 1}
    with temp_db.session_factory() as s:
        assert s.get(Company, "00000003").dissolution_date is None


def test_previous_names_land_in_their_table(temp_db):
    rows = [
        make_row(
            "00000001",
            previous_names=[("01/01/2001", "A LTD"), ("", "SKIPPED"), ("02/02/2002", "B LTD")],
        )
    ]

    _job(temp_db).run(rows)

    with temp_db.session_factory() as s:
        names = s.query(PreviousName).order_by(PreviousName.con_date).all()
        assert [n.company_name for n in names] == ["A LTD", "B LTD"]


def test_producer_fault_rolls_back_everything(temp_db):
    def _rows():
        yield from make_rows(20)
        raise OSError("archive truncated")

    with pytest.raises(FatalIngestError) as exc:
        _job(temp_db).run(_rows())

    assert isinstance(exc.value.__cause__, OSError)
    assert exc.value.result.outcome == "rollback"
    assert _company_numbers(temp_db) == []


def test_worker_fault_rolls_back_and_stops_pipeline(temp_db, monkeypatch):
    real_write = job_mod.CompanySink.write

    def _exploding_write(self, company):
        if company.company_number == "00000050":
            raise RuntimeError("disk on fire")
        return real_write(self, company)

    monkeypatch.setattr(job_mod.CompanySink, "write", _exploding_write)

    with pytest.raises(FatalIngestError) as exc:
        _job(temp_db, queue_capacity=2).run(make_rows(500))

    assert isinstance(exc.value.__cause__, RuntimeError)
    assert exc.value.result.rows_read < 500
    assert _company_numbers(temp_db) == []


def test_failure_threshold_triggers_rollback(temp_db):
    rows = make_rows(8) + [["short"]] * 2

    with pytest.raises(FailureThresholdExceeded) as exc:
        _job(temp_db, max_failure_rate=0.1).run(rows)

    assert exc.value.failed_rows == 2
    assert exc.value.rows_read == 10
    assert _company_numbers(temp_db) == []


def test_failure_threshold_not_exceeded_commits(temp_db):
    rows = make_rows(9) + [["short"]]

    result = _job(temp_db, max_failure_rate=0.1).run(rows)

    assert result.outcome == "commit"
    assert result.persisted == 9


def test_field_warnings_count_toward_threshold_when_enabled(temp_db):
    rows = make_rows(3) + [make_row("00000099", incorporation_date="99/99/9999")]

    _job(temp_db, max_failure_rate=0.2).run(rows[:])
    assert len(_company_numbers(temp_db)) == 4

    with pytest.raises(FailureThresholdExceeded):
        _job(temp_db, max_failure_rate=0.2, count_field_warnings=True).run(
            make_rows(3, start=200)
            + [make_row("00000299", incorporation_date="99/99/9999")]
        )
    assert len(_company_numbers(temp_db)) == 4


def test_end_to_end_from_csv_text(temp_db):
    text = rows_to_csv(make_rows(40)) + 'bad,"row"x\n'

    result = _job(temp_db, worker_count=2).run(iter_rows(io.StringIO(text)))

    assert result.persisted == 40
    assert len(_company_numbers(temp_db)) == 40


def test_main_loads_csv_file(tmp_path, capsys):
    csv_path = tmp_path / "basic.csv"
    csv_path.write_text(rows_to_csv(make_rows(12)), encoding="utf-8")
    db_path = tmp_path / "cli.sqlite"

    rc = job_mod.main(
        ["--csv", str(csv_path), "--database-url", f"sqlite:///{db_path}", "--workers", "2"]
    )

    assert rc == 0
    out = capsys.readouterr().out
    assert "committed" in out
    assert "persisted=12" in out


@pytest.mark.parametrize(
    "names",
    [
        [("bad", "A LTD"), ("also bad", "B LTD")],
        [("01/01/0001", "A LTD"), ("xx", "B LTD")],
    ],
)
def test_colliding_previous_name_dates_still_persist_company(temp_db, names):
    rows = [make_row("00000001"), make_row("00000002", previous_names=names)]

    result = _job(temp_db).run(rows)

    assert result.persisted == 2
    assert result.persistence_errors == 0
    assert result.field_warning_rows == 1
    with temp_db.session_factory() as s:
        assert s.get(Company, "00000002") is not None
        assert [n.company_name for n in s.query(PreviousName).all()] == ["A LTD"]
