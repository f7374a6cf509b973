"""Tests for classifying CSV data against the board (stage 2)."""

from labboard.board.schemas import DataSource, TermDirection
from labboard.imports.reconciler import category_display_name, reconcile_with_board
from labboard.imports.schemas import (
    BoardConflictKind,
    CategoryConflict,
    CSVData,
    CSVSubject,
    ExcludedSubjectConflict,
    ExcludeVsSubjectConflict,
    TermDirectionConflict,
)


def _data(*subjects, include=(), exclude=()) -> CSVData:
    return CSVData(
        subjects=[CSVSubject(name=n, category=c) for n, c in subjects],
        include_terms=list(include),
        exclude_terms=list(exclude),
    )


class TestCategoryDisplayName:
    def test_display(self):
        assert category_display_name("Genetics") == "Genetics"
        assert category_display_name(None) == "Uncategorized"


class TestSubjectClassification:
    """Tests for per-subject classification."""

    def test_new_subject_is_addition(self, board):
        result = reconcile_with_board(_data(("Proteomics", "Omics")), board)

        assert not result.has_conflicts
        assert [s.name for s in result.additions] == ["Proteomics"]
        assert result.auto_merges == []

    def test_same_category_auto_merge(self, board):
        """Scenario: existing subject in the same category is left alone."""
        result = reconcile_with_board(_data(("crispr", "GENETICS")), board)

        assert not result.has_conflicts
        assert len(result.auto_merges) == 1
        merge = result.auto_merges[0]
        assert merge.existing_subject.name == "CRISPR"
        assert merge.move is False
        assert result.additions == []

    def test_no_csv_category_auto_merge(self, board):
        result = reconcile_with_board(_data(("Microscopy", None)), board)

        assert not result.has_conflicts
        assert result.auto_merges[0].move is False

    def test_uncategorized_existing_moves(self, board_service):
        board_service.add_subject("Proteomics")

        result = reconcile_with_board(_data(("Proteomics", "Omics")), board_service.board)

        assert not result.has_conflicts
        assert result.auto_merges[0].move is True

    def test_category_mismatch(self, board):
        result = reconcile_with_board(_data(("CRISPR", "Imaging")), board)

        assert result.has_conflicts
        conflict = result.conflicts[0]
        assert isinstance(conflict, CategoryConflict)
        assert conflict.kind == BoardConflictKind.CATEGORY_MISMATCH
        assert conflict.is_exclude_conflict is False
        assert conflict.existing_category == "Genetics"
        assert conflict.new_category == "Imaging"
        assert conflict.existing_source == DataSource.SEED
        assert conflict.existing_subject_id == board.find_subject("CRISPR").id

    def test_excluded_subject(self, board):
        """Scenario: a CSV subject named like a board exclude term."""
        result = reconcile_with_board(_data(("Plants", "Botany")), board)

        conflict = result.conflicts[0]
        assert isinstance(conflict, ExcludedSubjectConflict)
        assert conflict.is_exclude_conflict is True
        assert conflict.existing_category == "_exclude"
        assert conflict.new_category == "Botany"
        assert conflict.existing_term_id == board.find_term("plants").id
        assert result.additions == []

    def test_include_term_does_not_block(self, board):
        result = reconcile_with_board(_data(("Zebrafish", "Models")), board)

        assert not result.has_conflicts
        assert [s.name for s in result.additions] == ["Zebrafish"]

    def test_each_name_classified_once(self, board):
        data = _data(("Proteomics", "Omics"), ("proteomics", "Omics"))
        result = reconcile_with_board(data, board)
        assert len(result.additions) == 1

    def test_board_not_mutated(self, board):
        before = board.model_dump()
        reconcile_with_board(_data(("CRISPR", "Imaging"), ("Plants", None)), board)
        assert board.model_dump() == before


class TestTermClassification:
    """Tests for CSV terms checked against the board."""

    def test_exclude_term_vs_subject(self, board):
        result = reconcile_with_board(_data(exclude=["Mendel"]), board)

        conflict = result.conflicts[0]
        assert isinstance(conflict, ExcludeVsSubjectConflict)
        assert conflict.is_exclude_conflict is True
        assert conflict.existing_category == "Genetics"
        assert conflict.new_category == "_exclude"

    def test_include_term_vs_board_exclude(self, board):
        result = reconcile_with_board(_data(include=["Plants"]), board)

        conflict = result.conflicts[0]
        assert isinstance(conflict, TermDirectionConflict)
        assert conflict.direction == TermDirection.INCLUDE
        assert conflict.existing_category == "_exclude"
        assert conflict.new_category == "_include"

    def test_exclude_term_vs_board_include(self, board):
        result = reconcile_with_board(_data(exclude=["zebrafish"]), board)

        conflict = result.conflicts[0]
        assert isinstance(conflict, TermDirectionConflict)
        assert conflict.direction == TermDirection.EXCLUDE

    def test_same_direction_terms_not_conflicts(self, board):
        result = reconcile_with_board(_data(include=["ZEBRAFISH"], exclude=["plants"]), board)
        assert not result.has_conflicts

    def test_include_term_named_like_subject_allowed(self, board):
        result = reconcile_with_board(_data(include=["CRISPR"]), board)
        assert not result.has_conflicts

    def test_conflicts_serialize_with_flag(self, board):
        result = reconcile_with_board(_data(("Plants", "Botany"), ("CRISPR", "Imaging")), board)

        dumped = result.model_dump(mode="json")["conflicts"]
        assert [(c["kind"], c["is_exclude_conflict"]) for c in dumped] == [
            ("excluded_subject", True),
            ("category_mismatch", False),
        ]
