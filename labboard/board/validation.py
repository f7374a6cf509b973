"""Board validation and processing estimates."""

from collections import Counter

from labboard.board.schemas import Board, ValidationResult, normalize_key

# Above this many new terms, processing gets a duration warning
LARGE_NEW_TERM_COUNT = 50

# Seconds per new term, with a 50% buffer, clamped to [30s, 10min]
SECONDS_PER_TERM = 3
PROCESSING_BUFFER = 1.5
MIN_PROCESSING_SECONDS = 30
MAX_PROCESSING_SECONDS = 600


def find_invariant_violations(board: Board) -> list[str]:
    """List every breach of the board identity rules.

    An empty list means no two subjects share a case-insensitive name, no text
    is both an include and an exclude term, and no exclude term equals a
    subject name.
    """
    violations = []

    subject_keys = Counter(s.key for s in board.iter_subjects())
    for key, count in subject_keys.items():
        if count > 1:
            violations.append(f'Subject "{key}" appears {count} times')

    include_keys = {t.key for t in board.include_terms}
    exclude_keys = {t.key for t in board.exclude_terms}
    for key in sorted(include_keys & exclude_keys):
        violations.append(f'Term "{key}" is both an include and an exclude term')
    for key in sorted(exclude_keys & set(subject_keys)):
        violations.append(f'Exclude term "{key}" matches a subject name')

    for category in board.categories:
        for subject in category.subjects:
            if subject.category_id != category.id:
                violations.append(
                    f'Subject "{subject.name}" is listed under {category.name} '
                    f"but points to {subject.category_id}"
                )
    return violations


def count_new_terms(board: Board) -> int:
    return sum(1 for s in board.iter_subjects() if s.is_new_term)


def estimate_processing_seconds(board: Board) -> int:
    """Rough processing time for the board's new terms, in seconds."""
    estimate = count_new_terms(board) * SECONDS_PER_TERM * PROCESSING_BUFFER
    return int(max(MIN_PROCESSING_SECONDS, min(MAX_PROCESSING_SECONDS, estimate)))


def validate_board(board: Board, process_terms: bool = True) -> ValidationResult:
    """Validate a board before it is handed off for creation.

    Args:
        board: Board snapshot.
        process_terms: Whether new terms will be processed downstream.

    Returns:
        ValidationResult: Errors block creation, warnings are informational.
    """
    errors: list[str] = []
    warnings: list[str] = []

    if board.subject_count == 0 and not board.include_terms and not board.exclude_terms:
        warnings.append("Your lab is empty. You can add subjects and terms later.")

    names = Counter(normalize_key(c.name) for c in board.custom_categories)
    duplicates = sorted(name for name, count in names.items() if count > 1)
    if duplicates:
        errors.append(f"Duplicate category names found: {', '.join(duplicates)}")

    errors.extend(find_invariant_violations(board))

    empty = [c for c in board.custom_categories if not c.subjects]
    if empty:
        warnings.append(f"{len(empty)} empty categories will be removed during creation")

    new_terms = count_new_terms(board)
    if process_terms and new_terms > LARGE_NEW_TERM_COUNT:
        warnings.append(f"Processing {new_terms} new terms may take several minutes")
    if new_terms and not process_terms:
        warnings.append(
            f"{new_terms} new terms will be added without processing - they may have "
            "limited functionality until processed later"
        )

    return ValidationResult(is_valid=not errors, errors=errors, warnings=warnings)
