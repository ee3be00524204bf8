"""Map one Companies House register row to a Company aggregate.

The bulk export ("BasicCompanyDataAsOneFile") has a fixed positional layout:

- 0-1    company name, company number
- 2-9    registered address (care of, PO box, lines 1-2, town, county, country, postcode)
- 10-14  category, status, country of origin, dissolution date, incorporation date
- 15-19  accounts (ref day/month, next due, last made up, category)     [not mapped]
- 20-21  returns (next due, last made up)                               [not mapped]
- 22-25  mortgages (charges, outstanding, part satisfied, satisfied)    [not mapped]
- 26-29  SIC code texts 1-4
- 30-31  limited partnerships (general, limited partner counts)         [not mapped]
- 32     URI
- 33-52  ten previous-name pairs, each (CONDATE, CompanyName)
- 53-54  confirmation statement (next due, last made up)                [not mapped]

Mapping is purely positional; header names are never consulted. Nothing here does
I/O, so `map_row` is safe to call from any number of threads.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from models.addresses import Address
from models.companies import Company
from models.previous_names import ZERO_DATE, PreviousName
from models.sic_codes import SICCode
from support.errors import FieldParseError, StructuralRowError
from utils.time_utils import REGISTER_DATE_FORMAT, parse_register_date

EXPECTED_COLUMN_COUNT = 55

COLUMNS: dict[str, int] = {
    "company_name": 0,
    "company_number": 1,
    "care_of": 2,
    "po_box": 3,
    "address_line1": 4,
    "address_line2": 5,
    "post_town": 6,
    "county": 7,
    "country": 8,
    "post_code": 9,
    "company_category": 10,
    "company_status": 11,
    "country_of_origin": 12,
    "dissolution_date": 13,
    "incorporation_date": 14,
    "accounts_ref_day": 15,
    "accounts_ref_month": 16,
    "accounts_next_due_date": 17,
    "accounts_last_made_up_date": 18,
    "accounts_category": 19,
    "returns_next_due_date": 20,
    "returns_last_made_up_date": 21,
    "mortgages_num_charges": 22,
    "mortgages_num_outstanding": 23,
    "mortgages_num_part_satisfied": 24,
    "mortgages_num_satisfied": 25,
    "sic_text_1": 26,
    "sic_text_2": 27,
    "sic_text_3": 28,
    "sic_text_4": 29,
    "lp_num_gen_partners": 30,
    "lp_num_lim_partners": 31,
    "uri": 32,
    "conf_stmt_next_due_date": 53,
    "conf_stmt_last_made_up_date": 54,
}

ADDRESS_FIELDS = (
    "care_of",
    "po_box",
    "address_line1",
    "address_line2",
    "post_town",
    "county",
    "country",
    "post_code",
)

SIC_FIELDS = ("sic_text_1", "sic_text_2", "sic_text_3", "sic_text_4")


@dataclass(frozen=True)
class PairSlot:
    """Column positions of one (CONDATE, CompanyName) previous-name pair."""

    date_col: int
    name_col: int


PREVIOUS_NAME_SLOT_COUNT = 10
PREVIOUS_NAME_SLOTS: tuple[PairSlot, ...] = tuple(
    PairSlot(date_col=33 + i * 2, name_col=34 + i * 2)
    for i in range(PREVIOUS_NAME_SLOT_COUNT)
)


@dataclass(frozen=True)
class FieldWarning:
    """A non-empty field that could not be parsed and was stored as unset."""

    field: str
    value: str


@dataclass
class MappedRecord:
    company: Company
    warnings: list[FieldWarning] = field(default_factory=list)

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)


def _col(row: Sequence[str], name: str) -> str:
    return row[COLUMNS[name]]


def _date_or_unset(
    value: str, *, field_name: str, fmt: str, warnings: list[FieldWarning]
):
    try:
        return parse_register_date(value, field=field_name, fmt=fmt)
    except FieldParseError as e:
        warnings.append(FieldWarning(field=e.field, value=e.value))
        return None


def extract_previous_names(
    row: Sequence[str],
    company_number: str,
    *,
    date_format: str = REGISTER_DATE_FORMAT,
    warnings: list[FieldWarning] | None = None,
) -> list[PreviousName]:
    """Collect previous names from the fixed pair slots, in slot order.

    A pair is kept only when both its date and name are non-blank. A kept pair with
    an unparsable date gets `ZERO_DATE` and a warning.
    """

    out: list[PreviousName] = []
    for i, slot in enumerate(PREVIOUS_NAME_SLOTS, start=1):
        con_text = row[slot.date_col].strip()
        name = row[slot.name_col].strip()
        if not con_text or not name:
            continue

        try:
            con_date = parse_register_date(
                con_text, field=f"previous_name_{i}.con_date", fmt=date_format
            )
        except FieldParseError as e:
            if warnings is not None:
                warnings.append(FieldWarning(field=e.field, value=e.value))
            con_date = ZERO_DATE

        out.append(
            PreviousName(
                company_number=company_number,
                con_date=con_date,
                company_name=name,
            )
        )
    return out


def map_row(
    row: Sequence[str],
    *,
    column_count: int = EXPECTED_COLUMN_COUNT,
    date_format: str = REGISTER_DATE_FORMAT,
) -> MappedRecord:
    """Map one raw register row into a Company with its nested entities.

    Raises:
        StructuralRowError: if the row does not have exactly `column_count` fields.
    """

    if len(row) != column_count:
        number = row[COLUMNS["company_number"]] if len(row) > 1 else None
        raise StructuralRowError(len(row), column_count, company_number=number)

    warnings: list[FieldWarning] = []
    company_number = _col(row, "company_number")

    company = Company(
        company_number=company_number,
        company_name=_col(row, "company_name"),
        company_category=_col(row, "company_category"),
        company_status=_col(row, "company_status"),
        country_of_origin=_col(row, "country_of_origin"),
        dissolution_date=_date_or_unset(
            _col(row, "dissolution_date"),
            field_name="dissolution_date",
            fmt=date_format,
            warnings=warnings,
        ),
        incorporation_date=_date_or_unset(
            _col(row, "incorporation_date"),
            field_name="incorporation_date",
            fmt=date_format,
            warnings=warnings,
        ),
        uri=_col(row, "uri"),
    )

    company.reg_address = Address(
        company_number=company_number,
        **{name: _col(row, name) for name in ADDRESS_FIELDS},
    )
    company.sic_code = SICCode(
        company_number=company_number,
        **{name: _col(row, name) for name in SIC_FIELDS},
    )
    company.previous_names = extract_previous_names(
        row, company_number, date_format=date_format, warnings=warnings
    )

    return MappedRecord(company=company, warnings=warnings)
