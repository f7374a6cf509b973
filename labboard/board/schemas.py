"""Pydantic schemas for the subject board."""

import enum
from collections.abc import Iterator
from typing import Optional

from pydantic import BaseModel, Field

UNCATEGORIZED_ID = "uncategorized"
UNCATEGORIZED_NAME = "Uncategorized"


def normalize_key(value: str) -> str:
    """Return the identity key for a name: trimmed and lowercased.

    The key is only used for lookups, never for display.
    """
    return value.strip().lower()


class DataSource(str, enum.Enum):
    """Where a subject or term came from."""

    SEED = "seed"  # Lab seed import
    CSV = "csv"
    MANUAL = "manual"


class CategoryKind(str, enum.Enum):
    """Category kind enumeration."""

    DEFAULT = "default"  # Only the uncategorized column
    CUSTOM = "custom"


class TermDirection(str, enum.Enum):
    """Filter direction of a term."""

    INCLUDE = "include"
    EXCLUDE = "exclude"

    @property
    def opposite(self) -> "TermDirection":
        return TermDirection.EXCLUDE if self is TermDirection.INCLUDE else TermDirection.INCLUDE


class DeleteStrategy(str, enum.Enum):
    """What to do with the subjects of a category being deleted."""

    MOVE_TO_UNCATEGORIZED = "move_to_uncategorized"
    DELETE_SUBJECTS = "delete_subjects"


class ExcludeConflictAction(str, enum.Enum):
    """Resolution of an exclude term vs subject collision."""

    KEEP_EXCLUDE = "keep_exclude"  # Delete colliding subjects, keep the term
    KEEP_SUBJECTS = "keep_subjects"  # Abandon the term change


class Subject(BaseModel):
    """A named item of interest placed in exactly one category."""

    id: str
    name: str = Field(..., min_length=1)
    external_ref: Optional[str] = None  # Stable id from a prior catalog (seed only)
    slug: Optional[str] = None
    summary: Optional[str] = None
    category_id: str = UNCATEGORIZED_ID
    source: DataSource
    is_new_term: bool = True
    original_category: Optional[str] = None  # Category name before the first move

    @property
    def key(self) -> str:
        return normalize_key(self.name)


class Category(BaseModel):
    """A named bucket of subjects."""

    id: str
    name: str = Field(..., min_length=1)
    kind: CategoryKind = CategoryKind.CUSTOM
    subjects: list[Subject] = Field(default_factory=list)

    @property
    def is_default(self) -> bool:
        return self.kind == CategoryKind.DEFAULT


class Term(BaseModel):
    """An include/exclude filter directive."""

    id: str
    text: str = Field(..., min_length=1)
    direction: TermDirection
    source: DataSource

    @property
    def key(self) -> str:
        return normalize_key(self.text)


def uncategorized_category() -> Category:
    """Create the default uncategorized category."""
    return Category(id=UNCATEGORIZED_ID, name=UNCATEGORIZED_NAME, kind=CategoryKind.DEFAULT)


class Board(BaseModel):
    """Complete state of categories, subjects and terms.

    Boards are treated as immutable snapshots: every mutation in
    ``BoardService`` works on a deep copy and replaces the snapshot.
    """

    categories: list[Category] = Field(default_factory=lambda: [uncategorized_category()])
    include_terms: list[Term] = Field(default_factory=list)
    exclude_terms: list[Term] = Field(default_factory=list)

    def iter_subjects(self) -> Iterator[Subject]:
        for category in self.categories:
            yield from category.subjects

    @property
    def subject_count(self) -> int:
        return sum(len(c.subjects) for c in self.categories)

    @property
    def custom_categories(self) -> list[Category]:
        return [c for c in self.categories if not c.is_default]

    def get_category(self, category_id: str) -> Optional[Category]:
        for category in self.categories:
            if category.id == category_id:
                return category
        return None

    def find_category_by_name(self, name: str) -> Optional[Category]:
        """Find a category by case-insensitive name."""
        key = normalize_key(name)
        for category in self.categories:
            if normalize_key(category.name) == key:
                return category
        return None

    def category_name(self, category_id: str) -> str:
        """Display name for a category id (falls back to the id itself)."""
        if category_id == UNCATEGORIZED_ID:
            return UNCATEGORIZED_NAME
        category = self.get_category(category_id)
        return category.name if category else category_id

    def get_subject(self, subject_id: str) -> Optional[Subject]:
        for subject in self.iter_subjects():
            if subject.id == subject_id:
                return subject
        return None

    def find_subject(self, name: str) -> Optional[Subject]:
        """Find a subject by case-insensitive name."""
        key = normalize_key(name)
        for subject in self.iter_subjects():
            if subject.key == key:
                return subject
        return None

    def terms(self, direction: TermDirection) -> list[Term]:
        return self.include_terms if direction == TermDirection.INCLUDE else self.exclude_terms

    def get_term(self, term_id: str) -> Optional[Term]:
        for term in [*self.include_terms, *self.exclude_terms]:
            if term.id == term_id:
                return term
        return None

    def find_term(self, text: str, direction: Optional[TermDirection] = None) -> Optional[Term]:
        """Find a term by case-insensitive text, optionally in one direction only."""
        key = normalize_key(text)
        directions = [direction] if direction else list(TermDirection)
        for d in directions:
            for term in self.terms(d):
                if term.key == key:
                    return term
        return None


class ConflictingSubject(BaseModel):
    """A board subject that collides with an exclude term."""

    subject: Subject
    category_name: str


class PendingChangeKind(str, enum.Enum):
    """The change blocked by an exclude term conflict."""

    ADD_TERM = "add_term"  # Adding a new exclude term
    TOGGLE_TERM = "toggle_term"  # Flipping an include term to exclude
    ADD_SUBJECT = "add_subject"  # Adding a subject named like an exclude term


class PendingChange(BaseModel):
    """Description of the blocked change, replayed on resolution."""

    kind: PendingChangeKind
    text: str
    source: DataSource = DataSource.MANUAL
    term_id: Optional[str] = None  # For toggle_term
    category_id: Optional[str] = None  # For add_subject


class ExcludeTermConflict(BaseModel):
    """Exclude term text colliding with one or more subject names."""

    term_text: str
    conflicting_subjects: list[ConflictingSubject]
    pending: PendingChange


# --- Lab seed ---


class LabSeedSubject(BaseModel):
    """Subject entry of a lab seed."""

    id: str
    name: str = Field(..., min_length=1)
    slug: Optional[str] = None
    summary: Optional[str] = None
    category: Optional[str] = None


class LabSeed(BaseModel):
    """Previously curated set of subjects and terms used to seed a board."""

    id: str
    name: str
    description: str = ""
    subjects: list[LabSeedSubject] = Field(default_factory=list)
    include_terms: list[str] = Field(default_factory=list)
    exclude_terms: list[str] = Field(default_factory=list)


# --- Validation ---


class ValidationResult(BaseModel):
    """Outcome of a board validation pass."""

    is_valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


# --- API payloads ---


class BoardCreate(BaseModel):
    """Schema for creating a board, optionally from a lab seed."""

    seed: Optional[LabSeed] = None


class BoardResponse(BaseModel):
    """Schema for board response."""

    board_id: str
    board: Board


class SubjectCreate(BaseModel):
    """Schema for manually adding a subject."""

    name: str = Field(..., min_length=1, max_length=255)
    category_id: str = UNCATEGORIZED_ID


class SubjectMove(BaseModel):
    """Schema for moving a subject (drag-and-drop)."""

    to_category_id: str


class CategoryCreate(BaseModel):
    """Schema for creating a category."""

    name: str = Field(..., min_length=1, max_length=100)


class CategoryRename(BaseModel):
    """Schema for renaming a category."""

    name: str = Field(..., min_length=1, max_length=100)


class TermCreate(BaseModel):
    """Schema for adding a term."""

    text: str = Field(..., min_length=1, max_length=255)
    direction: TermDirection


class ExcludeConflictResolve(BaseModel):
    """Schema for resolving an exclude term conflict."""

    pending: PendingChange
    action: ExcludeConflictAction
