"""Build a board from a lab seed."""

import logging

from labboard.board.exceptions import (
    ExcludeTermConflictError,
    InvalidNameError,
    SubjectExistsError,
    TermExistsError,
)
from labboard.board.schemas import Board, DataSource, LabSeed, TermDirection
from labboard.board.service import BoardService

logger = logging.getLogger(__name__)


def board_from_lab_seed(seed: LabSeed) -> Board:
    """Create a fresh board populated from a lab seed.

    Seed subjects keep the seed subject id as their external reference and
    need no further processing. Categories are created on first use (matched
    case-insensitively). Entries that would break the board's identity rules
    are skipped, first occurrence wins. So are subjects whose category is a
    reserved name such as ``_exclude``.

    Args:
        seed: The lab seed to import.

    Returns:
        Board: New board snapshot.
    """
    service = BoardService()
    skipped = 0

    for seed_subject in seed.subjects:
        try:
            category = service.ensure_category(seed_subject.category)
            service.add_subject(
                seed_subject.name,
                category.id,
                source=DataSource.SEED,
                external_ref=seed_subject.id,
                slug=seed_subject.slug,
                summary=seed_subject.summary,
            )
        except SubjectExistsError as e:
            logger.warning("Lab seed %s: skipping duplicate subject %s", seed.id, e.name)
            skipped += 1
        except InvalidNameError as e:
            logger.warning("Lab seed %s: skipping subject %s: %s", seed.id, seed_subject.name, e)
            skipped += 1

    for direction, texts in (
        (TermDirection.INCLUDE, seed.include_terms),
        (TermDirection.EXCLUDE, seed.exclude_terms),
    ):
        for text in texts:
            if not text or not text.strip():
                continue
            try:
                service.add_term(text, direction, source=DataSource.SEED)
            except (TermExistsError, ExcludeTermConflictError) as e:
                logger.warning("Lab seed %s: skipping %s term: %s", seed.id, direction.value, e)
                skipped += 1

    board = service.board
    logger.info(
        "Lab seed %s imported: %d subjects, %d categories, %d terms (%d skipped)",
        seed.id,
        board.subject_count,
        len(board.custom_categories),
        len(board.include_terms) + len(board.exclude_terms),
        skipped,
    )
    return board
