"""Board mutation primitives.

Every change to a board goes through ``BoardService`` so the identity rules
are enforced in one place:

- at most one subject per case-insensitive name across the whole board;
- a text is never both an include and an exclude term;
- an exclude term never equals a subject name (blocked with
  ``ExcludeTermConflictError`` until resolved).

Each operation works on a deep copy of the current snapshot and replaces
``self.board`` only when it succeeds, so a failed operation leaves the board
untouched and earlier snapshots held by callers never change.
"""

import logging
from typing import Optional
from uuid import uuid4

from labboard.board.exceptions import (
    CategoryNameTakenError,
    CategoryNotFoundError,
    DefaultCategoryError,
    DeleteStrategyRequiredError,
    ExcludeTermConflictError,
    InvalidNameError,
    SubjectExistsError,
    SubjectNotFoundError,
    TermExistsError,
    TermNotFoundError,
)
from labboard.board.schemas import (
    UNCATEGORIZED_ID,
    Board,
    Category,
    CategoryKind,
    ConflictingSubject,
    DataSource,
    DeleteStrategy,
    ExcludeConflictAction,
    ExcludeTermConflict,
    PendingChange,
    PendingChangeKind,
    Subject,
    Term,
    TermDirection,
    normalize_key,
)

logger = logging.getLogger(__name__)

# Names a custom category may never take
RESERVED_CATEGORY_NAMES = frozenset({UNCATEGORIZED_ID, "_include", "_exclude"})


def generate_id(prefix: str) -> str:
    """Generate an opaque id such as ``subj-3f9a1c2b7d4e``."""
    return f"{prefix}-{uuid4().hex[:12]}"


def _clean_name(value: str, what: str) -> str:
    cleaned = value.strip() if value else ""
    if not cleaned:
        raise InvalidNameError(f"{what} cannot be empty")
    return cleaned


class BoardService:
    """Mutates a board snapshot while preserving its identity invariants.

    Args:
        board: Starting snapshot. A fresh board with only the uncategorized
            category is used when omitted.
    """

    def __init__(self, board: Optional[Board] = None):
        self.board = board if board is not None else Board()

    def _copy(self) -> Board:
        return self.board.model_copy(deep=True)

    def _commit(self, board: Board) -> Board:
        self.board = board
        return board

    # --- Checks shared with the import reconciler ---

    def check_subject_exists(self, name: str) -> Optional[tuple[Subject, str]]:
        """Return the existing subject and its category name, if the name is taken."""
        existing = self.board.find_subject(name)
        if existing is None:
            return None
        return existing, self.board.category_name(existing.category_id)

    def check_exclude_term_conflict(self, pending: PendingChange) -> Optional[ExcludeTermConflict]:
        """Check a pending exclude-related change against the board.

        For term changes the colliding subjects are the board subjects named
        like the term. For a subject addition the collision is with an existing
        exclude term, and the conflicting subject is the one being added.
        """
        key = normalize_key(pending.text)
        if pending.kind == PendingChangeKind.ADD_SUBJECT:
            if self.board.find_term(pending.text, TermDirection.EXCLUDE) is None:
                return None
            category_id = pending.category_id or UNCATEGORIZED_ID
            candidate = Subject(
                id=generate_id("subj"),
                name=pending.text.strip(),
                category_id=category_id,
                source=pending.source,
            )
            return ExcludeTermConflict(
                term_text=pending.text.strip(),
                conflicting_subjects=[
                    ConflictingSubject(
                        subject=candidate,
                        category_name=self.board.category_name(category_id),
                    )
                ],
                pending=pending,
            )

        colliding = [s for s in self.board.iter_subjects() if s.key == key]
        if not colliding:
            return None
        return ExcludeTermConflict(
            term_text=pending.text.strip(),
            conflicting_subjects=[
                ConflictingSubject(
                    subject=s, category_name=self.board.category_name(s.category_id)
                )
                for s in colliding
            ],
            pending=pending,
        )

    # --- Categories ---

    def _check_category_name(self, board: Board, name: str, exclude_id: Optional[str] = None):
        if normalize_key(name) in RESERVED_CATEGORY_NAMES:
            raise InvalidNameError(f'"{name}" is a reserved category name')
        for category in board.custom_categories:
            if category.id != exclude_id and normalize_key(category.name) == normalize_key(name):
                raise CategoryNameTakenError(name)

    def add_category(self, name: str) -> Category:
        """Add an empty custom category.

        Raises:
            InvalidNameError: If the name is empty or reserved.
            CategoryNameTakenError: If a custom category already has this name.
        """
        name = _clean_name(name, "Category name")
        board = self._copy()
        self._check_category_name(board, name)
        category = Category(id=generate_id("cat"), name=name, kind=CategoryKind.CUSTOM)
        board.categories.append(category)
        self._commit(board)
        logger.debug("Category added: %s (%s)", name, category.id)
        return category

    def ensure_category(self, name: Optional[str]) -> Category:
        """Return the category matching ``name`` case-insensitively, creating it if needed.

        ``None``, empty and "uncategorized" all map to the uncategorized category.
        """
        if not name or not name.strip() or normalize_key(name) == UNCATEGORIZED_ID:
            return self.board.get_category(UNCATEGORIZED_ID)
        existing = self.board.find_category_by_name(name)
        if existing is not None:
            return existing
        return self.add_category(name)

    def rename_category(self, category_id: str, new_name: str) -> Category:
        """Rename a custom category.

        Raises:
            DefaultCategoryError: For the uncategorized category.
            CategoryNotFoundError: If the id is unknown.
            CategoryNameTakenError: If another custom category has this name.
        """
        if category_id == UNCATEGORIZED_ID:
            raise DefaultCategoryError("The uncategorized category cannot be renamed")
        new_name = _clean_name(new_name, "Category name")
        board = self._copy()
        category = board.get_category(category_id)
        if category is None:
            raise CategoryNotFoundError(f"Category {category_id} not found")
        self._check_category_name(board, new_name, exclude_id=category_id)
        category.name = new_name
        self._commit(board)
        return category

    def delete_category(
        self, category_id: str, strategy: Optional[DeleteStrategy] = None
    ) -> list[Subject]:
        """Delete a custom category.

        Empty categories are removed immediately. A non-empty category needs a
        strategy: move its subjects to uncategorized, or delete them with it.

        Returns:
            list[Subject]: Subjects that were moved or deleted.

        Raises:
            DefaultCategoryError: For the uncategorized category.
            CategoryNotFoundError: If the id is unknown.
            DeleteStrategyRequiredError: Non-empty category without a strategy.
        """
        if category_id == UNCATEGORIZED_ID:
            raise DefaultCategoryError("The uncategorized category cannot be deleted")
        board = self._copy()
        category = board.get_category(category_id)
        if category is None:
            raise CategoryNotFoundError(f"Category {category_id} not found")

        affected = list(category.subjects)
        if affected and strategy is None:
            raise DeleteStrategyRequiredError(
                f'Category "{category.name}" has {len(affected)} subjects; '
                "choose move_to_uncategorized or delete_subjects"
            )

        board.categories = [c for c in board.categories if c.id != category_id]
        if affected and strategy == DeleteStrategy.MOVE_TO_UNCATEGORIZED:
            uncategorized = board.get_category(UNCATEGORIZED_ID)
            for subject in affected:
                subject.category_id = UNCATEGORIZED_ID
                if subject.original_category is None:
                    subject.original_category = category.name
                uncategorized.subjects.append(subject)

        self._commit(board)
        logger.info(
            "Category %s deleted (%d subjects, strategy=%s)",
            category.name,
            len(affected),
            strategy.value if strategy else None,
        )
        return affected

    # --- Subjects ---

    def add_subject(
        self,
        name: str,
        category_id: str = UNCATEGORIZED_ID,
        source: DataSource = DataSource.MANUAL,
        external_ref: Optional[str] = None,
        slug: Optional[str] = None,
        summary: Optional[str] = None,
    ) -> Subject:
        """Add a subject, rejecting any name already on the board.

        Raises:
            SubjectExistsError: With the existing subject's category name.
            ExcludeTermConflictError: If an exclude term has the same text.
            CategoryNotFoundError: If the category id is unknown.
        """
        name = _clean_name(name, "Subject name")
        found = self.check_subject_exists(name)
        if found is not None:
            existing, category_name = found
            raise SubjectExistsError(existing.name, category_name)

        conflict = self.check_exclude_term_conflict(
            PendingChange(
                kind=PendingChangeKind.ADD_SUBJECT,
                text=name,
                source=source,
                category_id=category_id,
            )
        )
        if conflict is not None:
            raise ExcludeTermConflictError(conflict)

        board = self._copy()
        category = board.get_category(category_id)
        if category is None:
            raise CategoryNotFoundError(f"Category {category_id} not found")
        subject = Subject(
            id=generate_id("subj"),
            name=name,
            external_ref=external_ref,
            slug=slug,
            summary=summary,
            category_id=category.id,
            source=source,
            # Subjects without a catalog reference still need processing
            is_new_term=external_ref is None,
        )
        category.subjects.append(subject)
        self._commit(board)
        return subject

    def move_subject(self, subject_id: str, to_category_id: str) -> Subject:
        """Reassign a subject to another category.

        Raises:
            SubjectNotFoundError: If the subject id is unknown.
            CategoryNotFoundError: If the target category id is unknown.
        """
        board = self._copy()
        subject = board.get_subject(subject_id)
        if subject is None:
            raise SubjectNotFoundError(f"Subject {subject_id} not found")
        target = board.get_category(to_category_id)
        if target is None:
            raise CategoryNotFoundError(f"Category {to_category_id} not found")
        if subject.category_id == to_category_id:
            return subject

        source = board.get_category(subject.category_id)
        source.subjects = [s for s in source.subjects if s.id != subject_id]
        if subject.original_category is None:
            subject.original_category = source.name
        subject.category_id = target.id
        target.subjects.append(subject)
        self._commit(board)
        logger.debug("Subject %s moved %s -> %s", subject.name, source.name, target.name)
        return subject

    def remove_subject(self, subject_id: str) -> Subject:
        """Remove a subject from the board.

        Raises:
            SubjectNotFoundError: If the subject id is unknown.
        """
        board = self._copy()
        subject = board.get_subject(subject_id)
        if subject is None:
            raise SubjectNotFoundError(f"Subject {subject_id} not found")
        category = board.get_category(subject.category_id)
        category.subjects = [s for s in category.subjects if s.id != subject_id]
        self._commit(board)
        return subject

    def remove_subjects_named(self, name: str) -> list[Subject]:
        """Remove every subject with this case-insensitive name."""
        key = normalize_key(name)
        board = self._copy()
        removed = []
        for category in board.categories:
            removed.extend(s for s in category.subjects if s.key == key)
            category.subjects = [s for s in category.subjects if s.key != key]
        self._commit(board)
        return removed

    # --- Terms ---

    def add_term(
        self, text: str, direction: TermDirection, source: DataSource = DataSource.MANUAL
    ) -> Term:
        """Add an include or exclude term.

        Raises:
            TermExistsError: If the text is already a term in either direction.
            ExcludeTermConflictError: For an exclude term named like a subject.
        """
        text = _clean_name(text, "Term")
        existing = self.board.find_term(text)
        if existing is not None:
            raise TermExistsError(existing.text, existing.direction)

        if direction == TermDirection.EXCLUDE:
            conflict = self.check_exclude_term_conflict(
                PendingChange(kind=PendingChangeKind.ADD_TERM, text=text, source=source)
            )
            if conflict is not None:
                raise ExcludeTermConflictError(conflict)

        board = self._copy()
        term = Term(id=generate_id("term"), text=text, direction=direction, source=source)
        board.terms(direction).append(term)
        self._commit(board)
        return term

    def remove_term(self, term_id: str) -> Term:
        """Remove a term by id.

        Raises:
            TermNotFoundError: If the term id is unknown.
        """
        board = self._copy()
        term = board.get_term(term_id)
        if term is None:
            raise TermNotFoundError(f"Term {term_id} not found")
        board.include_terms = [t for t in board.include_terms if t.id != term_id]
        board.exclude_terms = [t for t in board.exclude_terms if t.id != term_id]
        self._commit(board)
        return term

    def toggle_term(self, term_id: str) -> Term:
        """Flip a term between include and exclude.

        Raises:
            TermNotFoundError: If the term id is unknown.
            ExcludeTermConflictError: When flipping to exclude collides with subjects.
        """
        term = self.board.get_term(term_id)
        if term is None:
            raise TermNotFoundError(f"Term {term_id} not found")

        if term.direction == TermDirection.INCLUDE:
            conflict = self.check_exclude_term_conflict(
                PendingChange(
                    kind=PendingChangeKind.TOGGLE_TERM,
                    text=term.text,
                    source=term.source,
                    term_id=term.id,
                )
            )
            if conflict is not None:
                raise ExcludeTermConflictError(conflict)

        return self._flip_term(term_id)

    def _flip_term(self, term_id: str) -> Term:
        board = self._copy()
        term = board.get_term(term_id)
        board.terms(term.direction).remove(term)
        term.direction = term.direction.opposite
        board.terms(term.direction).append(term)
        self._commit(board)
        return term

    def resolve_exclude_conflict(
        self, pending: PendingChange, action: ExcludeConflictAction
    ) -> Board:
        """Replay a blocked change with the user's decision.

        ``keep_exclude``: the exclude term wins. Colliding subjects are deleted
        and the term change goes through; a blocked subject addition is dropped.

        ``keep_subjects``: the subjects win. A blocked term change is abandoned;
        a blocked subject addition removes the exclude term and adds the subject.
        """
        # Steps run on a scratch service so a failure leaves self.board as it was
        scratch = BoardService(self.board)
        if action == ExcludeConflictAction.KEEP_EXCLUDE:
            if pending.kind == PendingChangeKind.ADD_SUBJECT:
                return self.board
            removed = scratch.remove_subjects_named(pending.text)
            if pending.kind == PendingChangeKind.ADD_TERM:
                scratch.add_term(pending.text, TermDirection.EXCLUDE, pending.source)
            else:
                term = scratch.board.get_term(pending.term_id) if pending.term_id else None
                if term is None:
                    raise TermNotFoundError(f"Term {pending.term_id} not found")
                if term.direction == TermDirection.INCLUDE:
                    scratch._flip_term(term.id)
            logger.info(
                'Exclude term "%s" kept; removed %d subjects', pending.text, len(removed)
            )
            return self._commit(scratch.board)

        if pending.kind == PendingChangeKind.ADD_SUBJECT:
            term = scratch.board.find_term(pending.text, TermDirection.EXCLUDE)
            if term is not None:
                scratch.remove_term(term.id)
            scratch.add_subject(
                pending.text, pending.category_id or UNCATEGORIZED_ID, pending.source
            )
            logger.info('Exclude term "%s" replaced by a subject', pending.text)
        return self._commit(scratch.board)


def get_board_service(board: Optional[Board] = None) -> BoardService:
    """Factory function for BoardService."""
    return BoardService(board)
