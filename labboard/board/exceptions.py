"""Board errors.

Identity clashes are raised to the caller instead of silently inserting.
Precondition violations (``DefaultCategoryError``, ``DeleteStrategyRequiredError``)
are programmer errors and must not be swallowed.
"""

from labboard.board.schemas import ExcludeTermConflict, TermDirection


class BoardError(Exception):
    """Base class for board mutation errors."""


class InvalidNameError(BoardError, ValueError):
    """Empty or reserved name."""


class SubjectExistsError(BoardError):
    """A subject with the same case-insensitive name is already on the board."""

    def __init__(self, name: str, category_name: str):
        self.name = name
        self.category_name = category_name
        super().__init__(f'"{name}" already exists in {category_name}')


class TermExistsError(BoardError):
    """A term with the same case-insensitive text is already on the board."""

    def __init__(self, text: str, direction: TermDirection):
        self.text = text
        self.direction = direction
        super().__init__(f'"{text}" already exists as an {direction.value} term')


class CategoryNameTakenError(BoardError):
    """Another custom category already uses this name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f'A category named "{name}" already exists')


class CategoryNotFoundError(BoardError):
    """Unknown category id."""


class SubjectNotFoundError(BoardError):
    """Unknown subject id."""


class TermNotFoundError(BoardError):
    """Unknown term id."""


class ExcludeTermConflictError(BoardError):
    """An exclude term collides with subject names; the caller must resolve it."""

    def __init__(self, conflict: ExcludeTermConflict):
        self.conflict = conflict
        names = ", ".join(
            f"{c.subject.name} ({c.category_name})" for c in conflict.conflicting_subjects
        )
        super().__init__(f'Exclude term "{conflict.term_text}" conflicts with subjects: {names}')


class PreconditionError(BoardError):
    """Programmer error: the operation is never legal in this state."""


class DefaultCategoryError(PreconditionError):
    """The uncategorized category cannot be renamed or deleted."""


class DeleteStrategyRequiredError(PreconditionError):
    """Deleting a non-empty category needs an explicit strategy."""
