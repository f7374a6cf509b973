"""Apply a reconciled CSV import to a board.

Runs as one logical transaction: it works on its own ``BoardService`` and
only the final snapshot is returned, so the input board never changes.
"""

import logging
from collections.abc import Mapping
from typing import Optional

from labboard.board.schemas import UNCATEGORIZED_ID, Board, DataSource, TermDirection, normalize_key
from labboard.board.service import RESERVED_CATEGORY_NAMES, BoardService
from labboard.imports.exceptions import InvalidResolutionError, MissingResolutionError
from labboard.imports.schemas import (
    BoardResolution,
    BoardResolutionAction,
    CategoryConflict,
    CSVData,
    ExcludedSubjectConflict,
    ExcludeVsSubjectConflict,
    ReconciliationResult,
    TermDirectionConflict,
)
from labboard.imports.validators import lookup_resolution

logger = logging.getLogger(__name__)


class _CategoryResolver:
    """Maps CSV category names to board category ids, creating categories once."""

    def __init__(self, service: BoardService):
        self.service = service
        self._ids: dict[str, str] = {}

    def id_for(self, name: Optional[str]) -> str:
        if not name:
            return UNCATEGORIZED_ID
        key = normalize_key(name)
        if key not in self._ids:
            self._ids[key] = self.service.ensure_category(name).id
        return self._ids[key]

    def target_id(self, target: Optional[str], default: Optional[str]) -> str:
        """Resolve a use_new target given as a category id or a category name."""
        if target and self.service.board.get_category(target) is not None:
            return target
        return self.id_for(target or default)


def check_resolution_targets(
    board: Board,
    reconciliation: ReconciliationResult,
    resolutions: Mapping[str, BoardResolution],
) -> None:
    """Reject use_new moves whose target can never be a category.

    A target is a category id on the board or a category name. Names that
    route rows to terms (``_include``, ``_exclude``) are not categories.

    Raises:
        InvalidResolutionError: Naming every conflict with such a target.
    """
    invalid = []
    for conflict in reconciliation.conflicts:
        if not isinstance(conflict, CategoryConflict):
            continue
        resolution = lookup_resolution(resolutions, conflict.name)
        if resolution is None or resolution.action != BoardResolutionAction.USE_NEW:
            continue
        target = resolution.target_category
        if not target or board.get_category(target) is not None:
            continue
        key = normalize_key(target)
        if key in RESERVED_CATEGORY_NAMES and key != UNCATEGORIZED_ID:
            invalid.append(conflict.name)
    if invalid:
        raise InvalidResolutionError(invalid)


def apply_resolutions(
    board: Board,
    data: CSVData,
    reconciliation: ReconciliationResult,
    resolutions: Mapping[str, BoardResolution],
) -> Board:
    """Merge reconciled CSV data into the board.

    Steps:
        1. Create missing categories from the CSV subcategory list.
        2. Apply every conflict resolution, auto-merge and addition once per
           distinct name.
        3. Exclude terms given up for a subject are not re-added.
        4. Merge the CSV terms, skipping texts already on the board.

    Args:
        board: Board snapshot the reconciliation was computed against.
        data: Internally clean CSV data.
        reconciliation: Output of ``reconcile_with_board``.
        resolutions: Conflict name -> resolution; one per conflict.

    Returns:
        Board: The new snapshot.

    Raises:
        MissingResolutionError: If a conflict has no resolution.
        InvalidResolutionError: If a use_new target is not a category.
    """
    missing = [
        c.name for c in reconciliation.conflicts if lookup_resolution(resolutions, c.name) is None
    ]
    if missing:
        raise MissingResolutionError(missing)
    check_resolution_targets(board, reconciliation, resolutions)

    service = BoardService(board)
    categories = _CategoryResolver(service)

    for subcategory in data.subcategories:
        categories.id_for(subcategory)

    processed: set[str] = set()
    removed_excludes: set[str] = set()
    handled_terms: set[str] = set()

    for conflict in reconciliation.conflicts:
        key = normalize_key(conflict.name)
        if key in processed:
            continue
        processed.add(key)
        resolution = lookup_resolution(resolutions, conflict.name)
        use_new = resolution.action == BoardResolutionAction.USE_NEW

        if isinstance(conflict, ExcludedSubjectConflict):
            if use_new:
                service.remove_term(conflict.existing_term_id)
                removed_excludes.add(key)
                service.add_subject(
                    conflict.csv_subject.name,
                    categories.id_for(conflict.csv_subject.category),
                    source=DataSource.CSV,
                )
        elif isinstance(conflict, CategoryConflict):
            if use_new:
                target = categories.target_id(
                    resolution.target_category, conflict.csv_subject.category
                )
                service.move_subject(conflict.existing_subject_id, target)
        elif isinstance(conflict, ExcludeVsSubjectConflict):
            handled_terms.add(key)
            if use_new:
                service.remove_subjects_named(conflict.name)
                include = service.board.find_term(conflict.name, TermDirection.INCLUDE)
                if include is not None:
                    service.remove_term(include.id)
                service.add_term(conflict.name, TermDirection.EXCLUDE, source=DataSource.CSV)
        elif isinstance(conflict, TermDirectionConflict):
            handled_terms.add(key)
            if use_new:
                service.remove_term(conflict.existing_term_id)
                service.add_term(conflict.name, conflict.direction, source=DataSource.CSV)
        logger.debug(
            "Resolved %s conflict for %s: %s",
            conflict.kind.value,
            conflict.name,
            resolution.action.value,
        )

    for merge in reconciliation.auto_merges:
        key = normalize_key(merge.csv_subject.name)
        if key in processed:
            continue
        processed.add(key)
        if merge.move:
            service.move_subject(
                merge.existing_subject.id, categories.id_for(merge.csv_subject.category)
            )

    added = 0
    for csv_subject in reconciliation.additions:
        key = normalize_key(csv_subject.name)
        if key in processed:
            continue
        processed.add(key)
        if service.board.find_subject(csv_subject.name) is not None:
            logger.warning("Skipping %s: already on the board", csv_subject.name)
            continue
        service.add_subject(
            csv_subject.name, categories.id_for(csv_subject.category), source=DataSource.CSV
        )
        added += 1

    for direction, texts in (
        (TermDirection.INCLUDE, data.include_terms),
        (TermDirection.EXCLUDE, data.exclude_terms),
    ):
        for text in texts:
            key = normalize_key(text)
            if key in handled_terms:
                continue
            if direction == TermDirection.EXCLUDE and key in removed_excludes:
                continue
            if service.board.find_term(text) is not None:
                continue
            service.add_term(text, direction, source=DataSource.CSV)

    logger.info(
        "CSV import applied: %d conflicts resolved, %d auto-merges, %d subjects added",
        len(reconciliation.conflicts),
        len(reconciliation.auto_merges),
        added,
    )
    return service.board
