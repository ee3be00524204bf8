from __future__ import annotations

import io
import zipfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import requests

from logging_utils import get_logger

logger = get_logger(__name__)

_CHUNK_SIZE = 1024 * 1024


class CompaniesHouseDownloadError(RuntimeError):
    pass


def download_archive(
    url: str,
    destination: Path | str,
    *,
    session: requests.Session | None = None,
    timeout_seconds: float = 60.0,
) -> Path:
    """Download the bulk archive to `destination` unless it already exists.

    The body is streamed to a `.part` file and renamed on success, so an
    interrupted download never leaves a truncated archive at `destination`.
    """

    dest = Path(destination)
    if dest.exists():
        logger.info("Archive already exists, skipping download | path=%s", dest)
        return dest

    dest.parent.mkdir(parents=True, exist_ok=True)
    tmp = dest.with_name(dest.name + ".part")

    s = session or requests.Session()
    logger.info("Downloading archive | url=%s dest=%s", url, dest)
    try:
        resp = s.get(url, stream=True, timeout=timeout_seconds)
    except requests.RequestException as e:
        raise CompaniesHouseDownloadError(f"download failed url={url}: {e}") from e

    try:
        if resp.status_code != 200:
            raise CompaniesHouseDownloadError(
                f"HTTP request failed with status code: {resp.status_code} url={url}"
            )
        written = 0
        with open(tmp, "wb") as f:
            for chunk in resp.iter_content(chunk_size=_CHUNK_SIZE):
                if chunk:
                    f.write(chunk)
                    written += len(chunk)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
    finally:
        resp.close()

    tmp.replace(dest)
    logger.info("Downloaded archive | path=%s bytes=%s", dest, written)
    return dest


@contextmanager
def open_csv_from_zip(archive: Path | str) -> Iterator[io.TextIOWrapper]:
    """Open the first `.csv` member of `archive` as a decoded text stream."""

    with zipfile.ZipFile(archive) as zf:
        member = next(
            (n for n in zf.namelist() if n.lower().endswith(".csv")), None
        )
        if member is None:
            raise CompaniesHouseDownloadError(
                f"CSV file not found in the ZIP archive {archive}"
            )
        logger.info("Opening CSV member | archive=%s member=%s", archive, member)
        with zf.open(member) as raw:
            with io.TextIOWrapper(raw, encoding="utf-8-sig", newline="") as text:
                yield text
