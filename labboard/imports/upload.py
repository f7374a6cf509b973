"""Uploaded CSV file handling: checks, decoding and lexical parsing."""

import csv
import io
import logging
from pathlib import PurePath
from typing import Optional

from labboard.config import Settings, get_settings
from labboard.imports.exceptions import CSVInputError

logger = logging.getLogger(__name__)

CANDIDATE_DELIMITERS = ",\t|;"


def check_upload(filename: Optional[str], size: int, settings: Optional[Settings] = None) -> None:
    """Reject files with a wrong extension or over the size limit.

    Raises:
        CSVInputError: With a user-facing message.
    """
    settings = settings or get_settings()
    suffix = PurePath(filename or "").suffix.lower()
    if suffix not in settings.allowed_upload_extensions:
        allowed = ", ".join(settings.allowed_upload_extensions)
        raise CSVInputError(f"Please upload a file of type: {allowed}")
    if size > settings.max_upload_bytes:
        limit_mb = settings.max_upload_bytes / (1024 * 1024)
        raise CSVInputError(f"File too large. Maximum size is {limit_mb:g}MB")


def _detect_delimiter(sample: str) -> str:
    try:
        return csv.Sniffer().sniff(sample, delimiters=CANDIDATE_DELIMITERS).delimiter
    except csv.Error:
        return ","


def parse_csv(content: bytes) -> list[dict[str, str]]:
    """Decode CSV bytes and return header/value rows.

    Args:
        content: Raw file contents; a UTF-8 BOM is accepted.

    Returns:
        list[dict[str, str]]: One dict per data row, keyed by the raw headers.

    Raises:
        CSVInputError: If the file is not UTF-8 or has no header row.
    """
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise CSVInputError("Could not decode file. Please save it as UTF-8 CSV")

    if not text.strip():
        raise CSVInputError("CSV file is empty")

    delimiter = _detect_delimiter(text[:4096])
    reader = csv.DictReader(io.StringIO(text), delimiter=delimiter)
    if not reader.fieldnames:
        raise CSVInputError("CSV file has no header row")

    try:
        rows = [dict(row) for row in reader]
    except csv.Error as e:
        raise CSVInputError(f"Could not parse CSV: {e}")

    logger.debug("Parsed %d CSV rows (delimiter=%r)", len(rows), delimiter)
    return rows


def read_upload(
    filename: Optional[str], content: bytes, settings: Optional[Settings] = None
) -> list[dict[str, str]]:
    """Check an uploaded file and parse it into rows."""
    check_upload(filename, len(content), settings)
    return parse_csv(content)
