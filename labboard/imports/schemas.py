"""Pydantic schemas for CSV import and conflict resolution."""

import enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

from labboard.board.schemas import Board, DataSource, Subject, TermDirection

INCLUDE_SENTINEL = "_include"
EXCLUDE_SENTINEL = "_exclude"


class CSVSubject(BaseModel):
    """A subject row from the CSV; ``category`` is None for uncategorized."""

    name: str
    category: Optional[str] = None


class CSVData(BaseModel):
    """Normalized CSV content, before or after internal validation."""

    subjects: list[CSVSubject] = Field(default_factory=list)
    include_terms: list[str] = Field(default_factory=list)
    exclude_terms: list[str] = Field(default_factory=list)
    subcategories: list[str] = Field(default_factory=list)
    row_count: int = 0


# ====================================================================
# Stage 1: internal conflicts
# ====================================================================


class InternalConflictKind(str, enum.Enum):
    """Types of conflicts inside a single CSV file."""

    DUPLICATE_SUBJECT = "duplicate_subject"  # Same subject in several categories
    SUBJECT_VS_EXCLUDE = "subject_vs_exclude"  # Subject also listed as _exclude
    INCLUDE_VS_EXCLUDE = "include_vs_exclude"  # Term listed as _include and _exclude


class DuplicateSubjectConflict(BaseModel):
    """Subject name found under more than one category."""

    kind: Literal[InternalConflictKind.DUPLICATE_SUBJECT] = InternalConflictKind.DUPLICATE_SUBJECT
    name: str
    categories: list[str]  # Distinct categories, original casing


class SubjectVsExcludeConflict(BaseModel):
    """Subject name also listed as an exclude term."""

    kind: Literal[InternalConflictKind.SUBJECT_VS_EXCLUDE] = InternalConflictKind.SUBJECT_VS_EXCLUDE
    name: str
    categories: list[str]  # [subject category, "_exclude"]


class IncludeVsExcludeConflict(BaseModel):
    """Term listed as both include and exclude."""

    kind: Literal[InternalConflictKind.INCLUDE_VS_EXCLUDE] = InternalConflictKind.INCLUDE_VS_EXCLUDE
    name: str
    categories: list[str] = Field(default_factory=lambda: [INCLUDE_SENTINEL, EXCLUDE_SENTINEL])


InternalConflict = Annotated[
    Union[DuplicateSubjectConflict, SubjectVsExcludeConflict, IncludeVsExcludeConflict],
    Field(discriminator="kind"),
]


class InternalValidationResult(BaseModel):
    """Result of validating a CSV against itself."""

    has_conflicts: bool
    conflicts: list[InternalConflict] = Field(default_factory=list)
    cleaned: CSVData  # Deduplicated data; conflicting names are left out


# ====================================================================
# Stage 2: board conflicts
# ====================================================================


class BoardConflictKind(str, enum.Enum):
    """Types of conflicts between the CSV and the existing board."""

    EXCLUDED_SUBJECT = "excluded_subject"  # CSV subject is a board exclude term
    CATEGORY_MISMATCH = "category_mismatch"  # CSV subject on the board in another category
    EXCLUDE_VS_SUBJECT = "exclude_vs_subject"  # CSV exclude term is a board subject
    TERM_DIRECTION = "term_direction"  # CSV term is a board term in the other direction


class _BoardConflictBase(BaseModel):
    name: str
    existing_category: str  # Display name, or "_include"/"_exclude" for terms
    new_category: str
    source: DataSource = DataSource.CSV
    existing_source: Optional[DataSource] = None


class ExcludedSubjectConflict(_BoardConflictBase):
    """CSV subject whose name is an exclude term on the board."""

    kind: Literal[BoardConflictKind.EXCLUDED_SUBJECT] = BoardConflictKind.EXCLUDED_SUBJECT
    is_exclude_conflict: Literal[True] = True
    existing_term_id: str
    csv_subject: CSVSubject


class CategoryConflict(_BoardConflictBase):
    """CSV subject already on the board under a different named category."""

    kind: Literal[BoardConflictKind.CATEGORY_MISMATCH] = BoardConflictKind.CATEGORY_MISMATCH
    is_exclude_conflict: Literal[False] = False
    existing_subject_id: str
    csv_subject: CSVSubject


class ExcludeVsSubjectConflict(_BoardConflictBase):
    """CSV exclude term whose text is a subject name on the board."""

    kind: Literal[BoardConflictKind.EXCLUDE_VS_SUBJECT] = BoardConflictKind.EXCLUDE_VS_SUBJECT
    is_exclude_conflict: Literal[True] = True
    existing_subject_id: str


class TermDirectionConflict(_BoardConflictBase):
    """CSV term present on the board in the opposite direction."""

    kind: Literal[BoardConflictKind.TERM_DIRECTION] = BoardConflictKind.TERM_DIRECTION
    is_exclude_conflict: Literal[False] = False
    existing_term_id: str
    direction: TermDirection  # Direction requested by the CSV


BoardConflict = Annotated[
    Union[
        ExcludedSubjectConflict,
        CategoryConflict,
        ExcludeVsSubjectConflict,
        TermDirectionConflict,
    ],
    Field(discriminator="kind"),
]


class AutoMerge(BaseModel):
    """CSV subject already consistent with the board."""

    csv_subject: CSVSubject
    existing_subject: Subject
    move: bool = False  # Existing uncategorized subject moves to the CSV category


class ReconciliationResult(BaseModel):
    """Classification of cleaned CSV data against a board."""

    has_conflicts: bool
    conflicts: list[BoardConflict] = Field(default_factory=list)
    auto_merges: list[AutoMerge] = Field(default_factory=list)
    additions: list[CSVSubject] = Field(default_factory=list)  # Inserted as new subjects


class BoardResolutionAction(str, enum.Enum):
    """Resolution options for board conflicts."""

    KEEP_EXISTING = "keep_existing"
    USE_NEW = "use_new"


class BoardResolution(BaseModel):
    """User decision for one board conflict."""

    action: BoardResolutionAction
    target_category: Optional[str] = None  # Category id or name for use_new moves


# ====================================================================
# Pipeline
# ====================================================================


class ImportState(str, enum.Enum):
    """Import pipeline states."""

    IDLE = "idle"
    STAGE1_CONFLICTS = "stage1_conflicts"
    STAGE2_CONFLICTS = "stage2_conflicts"
    APPLYING = "applying"


class ImportProgress(BaseModel):
    """Informational progress payload for the rendering layer."""

    message: str
    progress: int = Field(..., ge=0, le=100)


class ImportStep(BaseModel):
    """What the caller sees after each pipeline transition."""

    state: ImportState
    progress: ImportProgress
    internal_conflicts: list[InternalConflict] = Field(default_factory=list)
    board_conflicts: list[BoardConflict] = Field(default_factory=list)
    board: Optional[Board] = None  # Set once the import completed

    @property
    def completed(self) -> bool:
        return self.board is not None


# ====================================================================
# API payloads
# ====================================================================


class InternalResolutionRequest(BaseModel):
    """Stage 1 resolutions: conflict name -> category name or sentinel."""

    resolutions: dict[str, str]


class BoardResolutionRequest(BaseModel):
    """Stage 2 resolutions keyed by conflict name."""

    resolutions: dict[str, BoardResolution]


class ImportPhaseResult(BaseModel):
    """Response for every import endpoint."""

    session_id: str  # Empty once the import completed
    step: ImportStep
