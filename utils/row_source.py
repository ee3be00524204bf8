from __future__ import annotations

import csv
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import TextIO

from logging_utils import get_logger

logger = get_logger(__name__)


@dataclass
class RowSourceStats:
    rows_yielded: int = 0
    rows_skipped: int = 0
    header: list[str] | None = None


def iter_rows(
    stream: TextIO | Iterable[str],
    *,
    skip_header: bool = True,
    stats: RowSourceStats | None = None,
) -> Iterator[list[str]]:
    """Yield raw rows (lists of string fields) from a decoded CSV stream.

    - Exactly one header row is discarded when `skip_header` is true.
    - A row that cannot be tokenized is logged and skipped; iteration continues.
    - The generator simply ends at end of input.

    Quoting is strict: a stray quote inside a field is a tokenization error rather
    than being silently glued into the value.
    """

    stats = stats if stats is not None else RowSourceStats()
    reader = csv.reader(stream, strict=True)

    header_pending = skip_header
    while True:
        try:
            row = next(reader)
        except StopIteration:
            break
        except csv.Error as e:
            if header_pending:
                # The first line is the header even when it cannot be tokenized.
                header_pending = False
                logger.warning(
                    "Discarded unreadable header row | line=%s error=%s",
                    reader.line_num,
                    e,
                )
                continue
            stats.rows_skipped += 1
            logger.warning(
                "Skipping unreadable CSV row | line=%s error=%s", reader.line_num, e
            )
            continue

        # Blank lines carry no fields at all.
        if not row:
            continue

        if header_pending:
            header_pending = False
            stats.header = row
            logger.debug("Discarded header row | columns=%s", len(row))
            continue

        stats.rows_yielded += 1
        yield row
