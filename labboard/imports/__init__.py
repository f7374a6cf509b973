"""Imports module for two-stage CSV import with conflict resolution."""

from labboard.imports.router import router
from labboard.imports.parsers import (
    CATEGORY_COLUMNS,
    SUBJECT_COLUMNS,
    normalize_header,
    normalize_rows,
)
from labboard.imports.upload import parse_csv, read_upload
from labboard.imports.schemas import (
    EXCLUDE_SENTINEL,
    INCLUDE_SENTINEL,
    AutoMerge,
    BoardConflict,
    BoardConflictKind,
    BoardResolution,
    BoardResolutionAction,
    CategoryConflict,
    CSVData,
    CSVSubject,
    DuplicateSubjectConflict,
    ExcludedSubjectConflict,
    ExcludeVsSubjectConflict,
    ImportProgress,
    ImportState,
    ImportStep,
    IncludeVsExcludeConflict,
    InternalConflict,
    InternalConflictKind,
    InternalValidationResult,
    ReconciliationResult,
    SubjectVsExcludeConflict,
    TermDirectionConflict,
)
from labboard.imports.exceptions import (
    CSVInputError,
    ImportStateError,
    InvalidResolutionError,
    MissingResolutionError,
)
from labboard.imports.validators import apply_internal_resolutions, validate_internally
from labboard.imports.reconciler import reconcile_with_board
from labboard.imports.applicator import apply_resolutions, check_resolution_targets
from labboard.imports.pipeline import CSVImportSession

__all__ = [
    "router",
    "CATEGORY_COLUMNS",
    "SUBJECT_COLUMNS",
    "normalize_header",
    "normalize_rows",
    "parse_csv",
    "read_upload",
    "EXCLUDE_SENTINEL",
    "INCLUDE_SENTINEL",
    "CSVData",
    "CSVSubject",
    # Stage 1
    "InternalConflictKind",
    "DuplicateSubjectConflict",
    "SubjectVsExcludeConflict",
    "IncludeVsExcludeConflict",
    "InternalConflict",
    "InternalValidationResult",
    "validate_internally",
    "apply_internal_resolutions",
    # Stage 2
    "BoardConflictKind",
    "ExcludedSubjectConflict",
    "CategoryConflict",
    "ExcludeVsSubjectConflict",
    "TermDirectionConflict",
    "BoardConflict",
    "AutoMerge",
    "ReconciliationResult",
    "BoardResolutionAction",
    "BoardResolution",
    "reconcile_with_board",
    "apply_resolutions",
    "check_resolution_targets",
    # Pipeline
    "ImportState",
    "ImportProgress",
    "ImportStep",
    "CSVImportSession",
    "CSVInputError",
    "ImportStateError",
    "InvalidResolutionError",
    "MissingResolutionError",
]
