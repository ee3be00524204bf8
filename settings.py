"""Ingest settings.

Plain defaults for the Companies House loader. `config.py` layers environment
variables on top of these, and the CLI layers its flags on top of that.
"""

import os

_PROJECT_ROOT = os.path.dirname(__file__)

# Single source of truth for defaults.
SETTINGS: dict[str, object] = {
    # Storage
    "DATABASE_URL": "sqlite:///" + os.path.join(_PROJECT_ROOT, "data", "companies.db"),
    # Source archive
    "DOWNLOAD_URL": "http://download.companieshouse.gov.uk/BasicCompanyDataAsOneFile-2023-09-01.zip",
    "ARCHIVE_PATH": os.path.join(
        _PROJECT_ROOT, "raw_data", "BasicCompanyDataAsOneFile-2023-09-01.zip"
    ),
    # Pipeline
    "WORKER_COUNT": 4,
    "QUEUE_CAPACITY": 1000,
    "COLUMN_COUNT": 55,
    "DATE_FORMAT": "%d/%m/%Y",
    # None means "commit whatever succeeded".
    "MAX_FAILURE_RATE": None,
    "COUNT_FIELD_WARNINGS": False,
    "PROGRESS_EVERY": 10000,
    # Logging
    "LOG_LEVEL": "INFO",
}
