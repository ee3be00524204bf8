from __future__ import annotations

import threading
from datetime import date

import pytest

from models import ZERO_DATE, Address, Company, PreviousName, SICCode
from pytests.common import make_row
from support.errors import PersistenceError
from utils.persistence_sink import CompanySink
from utils.record_mapper import map_row


def _company(number: str, **kw) -> Company:
    return map_row(make_row(number, **kw)).company


def test_write_persists_aggregate_with_nested_rows(temp_db):
    session = temp_db.session_factory()
    sink = CompanySink(session)
    sink.begin()
    sink.write(
        map_row(
            make_row(
                "00000001",
                post_code="AB1 2CD",
                sic_text_2="70100",
                previous_names=[("01/01/2001", "OLD NAME LTD")],
            )
        ).company
    )
    sink.commit()
    session.close()

    with temp_db.session_factory() as s:
        c = s.get(Company, "00000001")
        assert c is not None
        assert c.reg_address.post_code == "AB1 2CD"
        assert c.sic_code.sic_text_2 == "70100"
        assert [(p.con_date, p.company_name) for p in c.previous_names] == [
            (date(2001, 1, 1), "OLD NAME LTD")
        ]


def test_duplicate_key_fails_one_write_and_keeps_transaction(temp_db):
    session = temp_db.session_factory()
    sink = CompanySink(session)
    sink.begin()
    sink.write(_company("00000001"))

    with pytest.raises(PersistenceError) as exc:
        sink.write(_company("00000001", company_name="DUPLICATE"))
    assert exc.value.company_number == "00000001"

    sink.write(_company("00000002"))
    sink.commit()
    session.close()

    with temp_db.session_factory() as s:
        assert s.query(Company).count() == 2
        assert s.query(Address).count() == 2
        assert s.query(SICCode).count() == 2
        assert s.get(Company, "00000001").company_name == "COMPANY 00000001 LTD"


def test_failed_aggregate_leaves_no_partial_children(temp_db):
    session = temp_db.session_factory()
    sink = CompanySink(session)
    sink.begin()
    sink.write(_company("00000003", post_code="AA1 1AA"))

    # Same company number again: the whole second aggregate must be undone.
    with pytest.raises(PersistenceError):
        sink.write(
            _company(
                "00000003",
                post_code="ZZ9 9ZZ",
                previous_names=[("02/02/2002", "SHOULD NOT LAND LTD")],
            )
        )
    sink.commit()
    session.close()

    with temp_db.session_factory() as s:
        assert s.query(Company).count() == 1
        assert s.query(Address).count() == 1
        assert s.get(Address, "00000003").post_code == "AA1 1AA"
        assert s.query(PreviousName).count() == 0


def test_same_date_previous_names_keep_company(temp_db, app_caplog):
    session = temp_db.session_factory()
    sink = CompanySink(session)
    sink.begin()

    dup_names = [("01/01/2001", "A LTD"), ("01/01/2001", "B LTD")]
    with app_caplog.at_level("WARNING"):
        sink.write(_company("00000004", sic_text_1="70100", previous_names=dup_names))
    sink.commit()
    session.close()

    assert "duplicate con_date" in app_caplog.text
    with temp_db.session_factory() as s:
        assert s.get(Company, "00000004") is not None
        assert s.get(SICCode, "00000004").sic_text_1 == "70100"
        assert s.get(Address, "00000004") is not None
        assert [(p.con_date, p.company_name) for p in s.query(PreviousName).all()] == [
            (date(2001, 1, 1), "A LTD")
        ]


@pytest.mark.parametrize(
    "names",
    [
        [("bad", "A LTD"), ("also bad", "B LTD")],
        [("01/01/0001", "A LTD"), ("xx", "B LTD")],
    ],
)
def test_unparsable_previous_name_dates_never_reject_company(temp_db, names):
    session = temp_db.session_factory()
    sink = CompanySink(session)
    sink.begin()
    sink.write(_company("00000005", previous_names=names))
    sink.commit()
    session.close()

    with temp_db.session_factory() as s:
        assert s.get(Company, "00000005") is not None
        assert s.get(Address, "00000005") is not None
        assert s.get(SICCode, "00000005") is not None
        names_out = s.query(PreviousName).all()
        assert [(p.con_date, p.company_name) for p in names_out] == [
            (ZERO_DATE, "A LTD")
        ]


def test_rollback_discards_every_write(temp_db):
    session = temp_db.session_factory()
    sink = CompanySink(session)
    sink.begin()
    for i in range(1, 4):
        sink.write(_company(f"{i:08d}"))
    sink.rollback()
    session.close()

    assert sink.outcome == "rollback"
    with temp_db.session_factory() as s:
        assert s.query(Company).count() == 0


def test_transaction_ends_exactly_once(temp_db):
    session = temp_db.session_factory()
    sink = CompanySink(session)
    sink.begin()
    sink.commit()

    with pytest.raises(RuntimeError):
        sink.rollback()
    with pytest.raises(RuntimeError):
        sink.write(_company("00000009"))
    session.close()


def test_write_before_begin_is_rejected(temp_db):
    session = temp_db.session_factory()
    with pytest.raises(RuntimeError):
        CompanySink(session).write(_company("00000001"))
    session.close()


def test_concurrent_writers_share_one_transaction(temp_db):
    session = temp_db.session_factory()
    sink = CompanySink(session)
    sink.begin()

    def _writer(offset: int) -> None:
        for i in range(offset, offset + 25):
            sink.write(_company(f"{i:08d}"))

    threads = [threading.Thread(target=_writer, args=(k * 100,)) for k in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    sink.commit()
    session.close()

    assert sink.written == 100
    with temp_db.session_factory() as s:
        assert s.query(Company).count() == 100
