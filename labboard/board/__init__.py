"""Board module: categories, subjects and include/exclude terms."""

from labboard.board.router import router
from labboard.board.schemas import (
    UNCATEGORIZED_ID,
    UNCATEGORIZED_NAME,
    Board,
    Category,
    CategoryKind,
    DataSource,
    DeleteStrategy,
    ExcludeConflictAction,
    ExcludeTermConflict,
    LabSeed,
    LabSeedSubject,
    PendingChange,
    PendingChangeKind,
    Subject,
    Term,
    TermDirection,
    ValidationResult,
    normalize_key,
)
from labboard.board.exceptions import (
    BoardError,
    CategoryNameTakenError,
    CategoryNotFoundError,
    DefaultCategoryError,
    DeleteStrategyRequiredError,
    ExcludeTermConflictError,
    InvalidNameError,
    PreconditionError,
    SubjectExistsError,
    SubjectNotFoundError,
    TermExistsError,
    TermNotFoundError,
)
from labboard.board.service import BoardService, get_board_service
from labboard.board.seeds import board_from_lab_seed
from labboard.board.store import BoardStore, get_board_store
from labboard.board.validation import (
    estimate_processing_seconds,
    find_invariant_violations,
    validate_board,
)

__all__ = [
    "router",
    "UNCATEGORIZED_ID",
    "UNCATEGORIZED_NAME",
    "Board",
    "Category",
    "CategoryKind",
    "DataSource",
    "DeleteStrategy",
    "ExcludeConflictAction",
    "ExcludeTermConflict",
    "LabSeed",
    "LabSeedSubject",
    "PendingChange",
    "PendingChangeKind",
    "Subject",
    "Term",
    "TermDirection",
    "ValidationResult",
    "normalize_key",
    # Errors
    "BoardError",
    "CategoryNameTakenError",
    "CategoryNotFoundError",
    "DefaultCategoryError",
    "DeleteStrategyRequiredError",
    "ExcludeTermConflictError",
    "InvalidNameError",
    "PreconditionError",
    "SubjectExistsError",
    "SubjectNotFoundError",
    "TermExistsError",
    "TermNotFoundError",
    "BoardService",
    "get_board_service",
    "board_from_lab_seed",
    "BoardStore",
    "get_board_store",
    "estimate_processing_seconds",
    "find_invariant_violations",
    "validate_board",
]
