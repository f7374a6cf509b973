"""Stage 1: conflicts inside a single CSV file.

Runs before the CSV ever touches the board. The result guarantees "one name,
one bucket" once every conflict has been resolved.
"""

import logging
from collections.abc import Mapping
from typing import Optional

from labboard.board.schemas import UNCATEGORIZED_ID, normalize_key
from labboard.imports.exceptions import MissingResolutionError
from labboard.imports.schemas import (
    EXCLUDE_SENTINEL,
    INCLUDE_SENTINEL,
    CSVData,
    CSVSubject,
    DuplicateSubjectConflict,
    IncludeVsExcludeConflict,
    InternalConflict,
    InternalValidationResult,
    SubjectVsExcludeConflict,
)

logger = logging.getLogger(__name__)


def dedupe_terms(terms: list[str]) -> list[str]:
    """Drop case-insensitive repeats, keeping the first casing."""
    seen: set[str] = set()
    result = []
    for term in terms:
        key = normalize_key(term)
        if key and key not in seen:
            seen.add(key)
            result.append(term)
    return result


def _subcategories_of(subjects: list[CSVSubject]) -> list[str]:
    seen: set[str] = set()
    result = []
    for subject in subjects:
        if subject.category and normalize_key(subject.category) not in seen:
            seen.add(normalize_key(subject.category))
            result.append(subject.category)
    return result


def validate_internally(data: CSVData) -> InternalValidationResult:
    """Find conflicts that exist purely inside the parsed CSV.

    Subjects are grouped by case-insensitive name. A group spread over a single
    category (case-insensitive) is merged into its first occurrence; a group
    spread over several raises ``duplicate_subject``. Surviving subjects are
    then checked against the exclude terms, and exclude terms against include
    terms.

    Args:
        data: Output of ``normalize_rows``.

    Returns:
        InternalValidationResult: Conflicts plus the deduplicated data, which
            leaves out any name involved in a duplicate_subject conflict.
    """
    conflicts: list[InternalConflict] = []
    cleaned: list[CSVSubject] = []

    groups: dict[str, list[CSVSubject]] = {}
    for subject in data.subjects:
        groups.setdefault(normalize_key(subject.name), []).append(subject)

    for subjects in groups.values():
        # Keyed by lowercase category, first casing kept for display
        by_category: dict[str, str] = {}
        for subject in subjects:
            category = subject.category or UNCATEGORIZED_ID
            by_category.setdefault(normalize_key(category), category)

        first = subjects[0]
        if len(by_category) == 1:
            cleaned.append(CSVSubject(name=first.name, category=first.category))
            if len(subjects) > 1:
                logger.debug("Merged %d rows for subject %s", len(subjects), first.name)
        else:
            conflicts.append(
                DuplicateSubjectConflict(name=first.name, categories=list(by_category.values()))
            )

    include_terms = dedupe_terms(data.include_terms)
    exclude_terms = dedupe_terms(data.exclude_terms)
    exclude_keys = {normalize_key(t) for t in exclude_terms}
    include_keys = {normalize_key(t) for t in include_terms}

    for subject in cleaned:
        if normalize_key(subject.name) in exclude_keys:
            conflicts.append(
                SubjectVsExcludeConflict(
                    name=subject.name,
                    categories=[subject.category or UNCATEGORIZED_ID, EXCLUDE_SENTINEL],
                )
            )

    for term in exclude_terms:
        if normalize_key(term) in include_keys:
            conflicts.append(IncludeVsExcludeConflict(name=term))

    if conflicts:
        logger.info("CSV internal validation found %d conflicts", len(conflicts))

    return InternalValidationResult(
        has_conflicts=bool(conflicts),
        conflicts=conflicts,
        cleaned=CSVData(
            subjects=cleaned,
            include_terms=include_terms,
            exclude_terms=exclude_terms,
            subcategories=_subcategories_of(cleaned),
            row_count=data.row_count,
        ),
    )


def lookup_resolution(resolutions: Mapping[str, object], name: str) -> Optional[object]:
    """Find the resolution for a conflict name, falling back to case-insensitive keys."""
    if name in resolutions:
        return resolutions[name]
    key = normalize_key(name)
    for candidate, value in resolutions.items():
        if normalize_key(candidate) == key:
            return value
    return None


def apply_internal_resolutions(
    data: CSVData,
    conflicts: list[InternalConflict],
    resolutions: Mapping[str, str],
) -> CSVData:
    """Apply stage 1 resolutions to the parsed CSV.

    Each resolution names one bucket for the conflicting name: a category
    name, ``uncategorized``, ``_include`` or ``_exclude``. The name is removed
    from every other bucket and placed only in the chosen one.

    Args:
        data: The CSV data the conflicts were computed from.
        conflicts: Conflicts returned by ``validate_internally``.
        resolutions: Conflict name -> chosen bucket.

    Returns:
        CSVData: Data with one bucket per name. Subcategories are recomputed
            from the surviving subjects.

    Raises:
        MissingResolutionError: If any conflict has no resolution.
    """
    targets: dict[str, tuple[str, str]] = {}
    missing = []
    for conflict in conflicts:
        bucket = lookup_resolution(resolutions, conflict.name)
        if bucket is None or not str(bucket).strip():
            missing.append(conflict.name)
            continue
        targets.setdefault(normalize_key(conflict.name), (conflict.name, str(bucket).strip()))
    if missing:
        raise MissingResolutionError(sorted(set(missing)))

    subjects: list[CSVSubject] = []
    seen: set[str] = set()
    for subject in data.subjects:
        key = normalize_key(subject.name)
        if key in seen:
            continue
        seen.add(key)
        if key not in targets:
            subjects.append(subject)
            continue
        name, bucket = targets[key]
        marker = normalize_key(bucket)
        if marker not in (INCLUDE_SENTINEL, EXCLUDE_SENTINEL):
            category = None if marker == UNCATEGORIZED_ID else bucket
            subjects.append(CSVSubject(name=name, category=category))

    include_terms = [t for t in dedupe_terms(data.include_terms) if normalize_key(t) not in targets]
    exclude_terms = [t for t in dedupe_terms(data.exclude_terms) if normalize_key(t) not in targets]

    for key, (name, bucket) in targets.items():
        marker = normalize_key(bucket)
        if marker == INCLUDE_SENTINEL:
            include_terms.append(name)
        elif marker == EXCLUDE_SENTINEL:
            exclude_terms.append(name)
        elif key not in seen:
            # Term-only conflict resolved into a category
            category = None if marker == UNCATEGORIZED_ID else bucket
            subjects.append(CSVSubject(name=name, category=category))

    logger.info("Applied %d CSV internal resolutions", len(targets))
    return CSVData(
        subjects=subjects,
        include_terms=include_terms,
        exclude_terms=exclude_terms,
        subcategories=_subcategories_of(subjects),
        row_count=data.row_count,
    )
