"""CSV row normalization.

Turns flat header/value rows into typed subject entries and include/exclude
terms. Lexical CSV parsing happens before this step; names are not
deduplicated here (that is the internal validator's job).
"""

import re
from collections.abc import Iterable, Mapping
from typing import Any, Optional

from labboard.board.schemas import UNCATEGORIZED_ID, normalize_key
from labboard.imports.exceptions import CSVInputError
from labboard.imports.schemas import EXCLUDE_SENTINEL, INCLUDE_SENTINEL, CSVData, CSVSubject

# Accepted header aliases, in priority order
SUBJECT_COLUMNS = ("subject_name", "term", "name")
CATEGORY_COLUMNS = ("subcategory_name", "category", "subcategory")

_WHITESPACE = re.compile(r"\s+")


def normalize_header(header: str) -> str:
    """Lowercase a header and turn inner whitespace into underscores.

    ``" Subject Name "`` becomes ``"subject_name"``.
    """
    return _WHITESPACE.sub("_", header.strip().lower())


def _cell(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _first_value(row: Mapping[str, str], columns: Iterable[str]) -> str:
    for column in columns:
        value = row.get(column, "")
        if value:
            return value
    return ""


def normalize_row(raw: Mapping[str, Any]) -> dict[str, str]:
    """Normalize the headers and trim the values of one row."""
    return {
        normalize_header(str(key)): _cell(value) for key, value in raw.items() if key is not None
    }


def normalize_rows(rows: Iterable[Mapping[str, Any]], max_rows: Optional[int] = None) -> CSVData:
    """Convert raw CSV rows into subjects and include/exclude terms.

    A category value of ``_include``/``_exclude`` routes the name into the term
    lists. Any other category is kept on the subject and recorded in the list
    of distinct subcategories. Rows without a name are ignored.

    Args:
        rows: Rows as produced by a CSV dict reader.
        max_rows: Optional upper bound on the number of rows.

    Returns:
        CSVData: Normalized, not yet deduplicated data.

    Raises:
        CSVInputError: If the input is not a sequence of rows, has no data
            rows, has no subject column, or exceeds ``max_rows``.
    """
    if rows is None or isinstance(rows, (str, bytes, Mapping)):
        raise CSVInputError("Expected a list of CSV rows")

    data = CSVData()
    seen_subcategories: set[str] = set()
    has_subject_column = False

    for index, raw in enumerate(rows, start=1):
        if not isinstance(raw, Mapping):
            raise CSVInputError(f"Row {index} is not a header/value mapping")
        if max_rows is not None and index > max_rows:
            raise CSVInputError(f"CSV has more than {max_rows} rows")
        data.row_count = index

        row = normalize_row(raw)
        if any(column in row for column in SUBJECT_COLUMNS):
            has_subject_column = True

        name = _first_value(row, SUBJECT_COLUMNS)
        if not name:
            continue
        category = _first_value(row, CATEGORY_COLUMNS)
        marker = normalize_key(category)

        if marker == INCLUDE_SENTINEL:
            data.include_terms.append(name)
        elif marker == EXCLUDE_SENTINEL:
            data.exclude_terms.append(name)
        elif not category or marker == UNCATEGORIZED_ID:
            data.subjects.append(CSVSubject(name=name))
        else:
            data.subjects.append(CSVSubject(name=name, category=category))
            if marker not in seen_subcategories:
                seen_subcategories.add(marker)
                data.subcategories.append(category)

    if data.row_count == 0:
        raise CSVInputError("No data rows found in CSV")
    if not has_subject_column:
        raise CSVInputError(
            f"CSV has no subject column (expected one of: {', '.join(SUBJECT_COLUMNS)})"
        )
    return data
