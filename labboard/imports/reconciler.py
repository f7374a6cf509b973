"""Stage 2: classify cleaned CSV data against the live board.

Pure classification; nothing is mutated here. Every CSV subject ends up in
exactly one of: a conflict, an auto-merge, or an addition.
"""

import logging
from typing import Optional

from labboard.board.schemas import (
    UNCATEGORIZED_ID,
    UNCATEGORIZED_NAME,
    Board,
    TermDirection,
    normalize_key,
)
from labboard.imports.schemas import (
    EXCLUDE_SENTINEL,
    INCLUDE_SENTINEL,
    AutoMerge,
    BoardConflict,
    CategoryConflict,
    CSVData,
    CSVSubject,
    ExcludedSubjectConflict,
    ExcludeVsSubjectConflict,
    ReconciliationResult,
    TermDirectionConflict,
)

logger = logging.getLogger(__name__)

_SENTINELS = {TermDirection.INCLUDE: INCLUDE_SENTINEL, TermDirection.EXCLUDE: EXCLUDE_SENTINEL}


def category_display_name(category: Optional[str]) -> str:
    """Display name of a CSV category (None means uncategorized)."""
    return category if category else UNCATEGORIZED_NAME


def _same_category(board: Board, category_id: str, csv_category: str) -> bool:
    return normalize_key(board.category_name(category_id)) == normalize_key(csv_category)


def reconcile_with_board(data: CSVData, board: Board) -> ReconciliationResult:
    """Classify each CSV subject and term against the board.

    Subjects, in priority order:

    1. Name is an exclude term on the board -> ``ExcludedSubjectConflict``.
    2. Name is not a board subject (include terms never block) -> addition.
    3. Name is a board subject:
       - same category, or no CSV category -> auto-merge, existing kept;
       - existing subject uncategorized -> auto-merge, moved to the CSV category;
       - otherwise -> ``CategoryConflict``.

    Terms: a CSV exclude term named like a board subject raises
    ``ExcludeVsSubjectConflict``; a CSV term present on the board in the other
    direction raises ``TermDirectionConflict``.

    Args:
        data: Internally clean CSV data (stage 1 passed with no conflicts).
        board: Current board snapshot.

    Returns:
        ReconciliationResult: Conflicts, auto-merges and plain additions.
    """
    existing_by_key = {}
    for subject in board.iter_subjects():
        existing_by_key.setdefault(subject.key, subject)
    include_by_key = {t.key: t for t in board.include_terms}
    exclude_by_key = {t.key: t for t in board.exclude_terms}

    conflicts: list[BoardConflict] = []
    auto_merges: list[AutoMerge] = []
    additions: list[CSVSubject] = []
    processed: set[str] = set()

    for csv_subject in data.subjects:
        key = normalize_key(csv_subject.name)
        if key in processed:
            continue
        processed.add(key)
        new_category = category_display_name(csv_subject.category)

        exclude_term = exclude_by_key.get(key)
        if exclude_term is not None:
            conflicts.append(
                ExcludedSubjectConflict(
                    name=csv_subject.name,
                    existing_category=EXCLUDE_SENTINEL,
                    new_category=new_category,
                    existing_source=exclude_term.source,
                    existing_term_id=exclude_term.id,
                    csv_subject=csv_subject,
                )
            )
            continue

        existing = existing_by_key.get(key)
        if existing is None:
            additions.append(csv_subject)
            continue

        if not csv_subject.category or _same_category(
            board, existing.category_id, csv_subject.category
        ):
            auto_merges.append(AutoMerge(csv_subject=csv_subject, existing_subject=existing))
        elif existing.category_id == UNCATEGORIZED_ID:
            auto_merges.append(
                AutoMerge(csv_subject=csv_subject, existing_subject=existing, move=True)
            )
        else:
            conflicts.append(
                CategoryConflict(
                    name=csv_subject.name,
                    existing_category=board.category_name(existing.category_id),
                    new_category=new_category,
                    existing_source=existing.source,
                    existing_subject_id=existing.id,
                    csv_subject=csv_subject,
                )
            )
        logger.debug("CSV subject %s matches board subject %s", csv_subject.name, existing.id)

    for direction, texts, opposite_by_key in (
        (TermDirection.EXCLUDE, data.exclude_terms, include_by_key),
        (TermDirection.INCLUDE, data.include_terms, exclude_by_key),
    ):
        for text in texts:
            key = normalize_key(text)
            if key in processed:
                continue
            processed.add(key)

            subject = existing_by_key.get(key)
            if direction == TermDirection.EXCLUDE and subject is not None:
                conflicts.append(
                    ExcludeVsSubjectConflict(
                        name=text,
                        existing_category=board.category_name(subject.category_id),
                        new_category=EXCLUDE_SENTINEL,
                        existing_source=subject.source,
                        existing_subject_id=subject.id,
                    )
                )
                continue

            opposite = opposite_by_key.get(key)
            if opposite is not None:
                conflicts.append(
                    TermDirectionConflict(
                        name=text,
                        existing_category=_SENTINELS[opposite.direction],
                        new_category=_SENTINELS[direction],
                        existing_source=opposite.source,
                        existing_term_id=opposite.id,
                        direction=direction,
                    )
                )

    logger.info(
        "Board reconciliation: %d conflicts, %d auto-merges, %d additions",
        len(conflicts),
        len(auto_merges),
        len(additions),
    )
    return ReconciliationResult(
        has_conflicts=bool(conflicts),
        conflicts=conflicts,
        auto_merges=auto_merges,
        additions=additions,
    )
