"""Tests for the two-stage CSV import state machine.

Covers:
- Progress payloads and state transitions
- Stage ordering (stage 2 only after stage 1 is clean)
- Illegal transitions and missing resolutions
- Cancellation
- End-to-end scenarios on realistic CSV rows
"""

import pytest

from labboard.board.schemas import DataSource, DeleteStrategy, TermDirection
from labboard.board.service import BoardService
from labboard.board.validation import find_invariant_violations
from labboard.imports.exceptions import (
    CSVInputError,
    ImportStateError,
    InvalidResolutionError,
    MissingResolutionError,
)
from labboard.imports.pipeline import CSVImportSession
from labboard.imports.schemas import (
    BoardConflictKind,
    BoardResolution,
    BoardResolutionAction,
    ImportState,
    InternalConflictKind,
)

USE_NEW = BoardResolution(action=BoardResolutionAction.USE_NEW)
KEEP = BoardResolution(action=BoardResolutionAction.KEEP_EXISTING)


def _rows(*pairs):
    return [{"Subject Name": name, "Subcategory Name": category} for name, category in pairs]


class TestHappyPath:
    """Imports without conflicts complete in one call."""

    def test_completes_with_progress(self, board):
        progress = []
        session = CSVImportSession(board, progress_callback=progress.append)

        step = session.start(_rows(("Proteomics", "Omics"), ("mice", "_include")))

        assert step.completed
        assert step.state == ImportState.IDLE
        assert step.progress.progress == 100
        assert step.progress.message == "CSV imported successfully!"
        assert [(p.progress, p.message) for p in progress] == [
            (25, "Checking CSV file for internal conflicts..."),
            (60, "Checking for conflicts with existing data..."),
            (90, "Applying changes..."),
            (100, "CSV imported successfully!"),
        ]
        assert step.board.find_subject("Proteomics") is not None
        assert step.board.find_term("mice").direction == TermDirection.INCLUDE
        assert session.result is step.board

    def test_starting_board_untouched(self, board):
        before = board.model_dump()
        CSVImportSession(board).start(_rows(("Proteomics", "Omics")))
        assert board.model_dump() == before

    def test_session_single_use(self, board):
        session = CSVImportSession(board)
        session.start(_rows(("Proteomics", "Omics")))

        with pytest.raises(ImportStateError):
            session.start(_rows(("Laser", "Optics")))


class TestStageTransitions:
    """Tests for the stage 1 / stage 2 state machine."""

    def test_stage1_conflicts_pause(self, board):
        progress = []
        session = CSVImportSession(board, progress_callback=progress.append)

        step = session.start(_rows(("Quantum", "Hardware"), ("Quantum", "Software")))

        assert session.state == ImportState.STAGE1_CONFLICTS
        assert step.state == ImportState.STAGE1_CONFLICTS
        assert step.progress.message == "CSV file issues found"
        assert step.progress.progress == 30
        assert step.internal_conflicts[0].kind == InternalConflictKind.DUPLICATE_SUBJECT
        assert step.board_conflicts == []
        # Stage 2 never ran
        assert [p.progress for p in progress] == [25, 30]
        assert session.pending_conflicts == step.internal_conflicts

    def test_stage2_conflicts_pause(self, board):
        step = CSVImportSession(board).start(_rows(("CRISPR", "Imaging")))

        assert step.state == ImportState.STAGE2_CONFLICTS
        assert step.progress.message == "Data conflicts found"
        assert step.progress.progress == 70
        assert step.board_conflicts[0].kind == BoardConflictKind.CATEGORY_MISMATCH
        assert not step.completed

    def test_stage1_then_stage2(self, board):
        """Stage 2 is computed only from the resolved stage 1 data."""
        session = CSVImportSession(board)
        session.start(_rows(("CRISPR", "Imaging"), ("CRISPR", "Tools")))

        step = session.resolve_internal({"CRISPR": "Imaging"})

        assert step.state == ImportState.STAGE2_CONFLICTS
        conflict = step.board_conflicts[0]
        assert conflict.name == "CRISPR"
        assert conflict.new_category == "Imaging"

        step = session.resolve_board({"CRISPR": USE_NEW})

        assert step.completed
        crispr = step.board.find_subject("CRISPR")
        assert step.board.category_name(crispr.category_id) == "Imaging"
        # The losing category from stage 1 is not created
        assert step.board.find_category_by_name("Tools") is None

    def test_resolve_board_before_stage1_clears(self, board):
        session = CSVImportSession(board)
        session.start(_rows(("Quantum", "Hardware"), ("Quantum", "Software")))

        with pytest.raises(ImportStateError):
            session.resolve_board({})
        assert session.state == ImportState.STAGE1_CONFLICTS

    def test_resolve_internal_when_idle(self, board):
        with pytest.raises(ImportStateError):
            CSVImportSession(board).resolve_internal({})

    def test_missing_internal_resolution_keeps_state(self, board):
        session = CSVImportSession(board)
        session.start(_rows(("Quantum", "Hardware"), ("Quantum", "Software")))

        with pytest.raises(MissingResolutionError):
            session.resolve_internal({})

        assert session.state == ImportState.STAGE1_CONFLICTS
        assert session.resolve_internal({"Quantum": "Hardware"}).completed

    def test_missing_board_resolution_keeps_state(self, board):
        session = CSVImportSession(board)
        session.start(_rows(("CRISPR", "Imaging"), ("Plants", "Botany")))

        with pytest.raises(MissingResolutionError) as exc_info:
            session.resolve_board({"CRISPR": KEEP})

        assert exc_info.value.names == ["Plants"]
        assert session.state == ImportState.STAGE2_CONFLICTS

    def test_reserved_target_keeps_state(self, board):
        """A use_new target that is not a category can be corrected and retried."""
        session = CSVImportSession(board)
        session.start(_rows(("CRISPR", "Imaging")))
        bad = BoardResolution(action=BoardResolutionAction.USE_NEW, target_category="_exclude")

        with pytest.raises(InvalidResolutionError):
            session.resolve_board({"CRISPR": bad})

        assert session.state == ImportState.STAGE2_CONFLICTS
        assert len(session.pending_conflicts) == 1

        good = BoardResolution(action=BoardResolutionAction.USE_NEW, target_category="Tools")
        step = session.resolve_board({"CRISPR": good})

        assert step.completed
        crispr = step.board.find_subject("CRISPR")
        assert step.board.category_name(crispr.category_id) == "Tools"


class TestInputErrors:
    """Malformed input is terminal and leaves the session idle."""

    def test_no_rows(self, board):
        session = CSVImportSession(board)

        with pytest.raises(CSVInputError):
            session.start([])

        assert session.state == ImportState.IDLE

    def test_row_limit(self, board):
        session = CSVImportSession(board, max_rows=1)
        with pytest.raises(CSVInputError):
            session.start(_rows(("A", ""), ("B", "")))


class TestCancel:
    """Tests for abandoning an import."""

    def test_cancel_in_stage2(self, board):
        progress = []
        session = CSVImportSession(board, progress_callback=progress.append)
        session.start(_rows(("CRISPR", "Imaging")))

        restored = session.cancel()

        assert restored is board
        assert session.state == ImportState.IDLE
        assert session.pending_conflicts == []
        assert progress[-1].progress == 0

    def test_cancel_in_stage1(self, board):
        session = CSVImportSession(board)
        session.start(_rows(("Quantum", "Hardware"), ("Quantum", "Software")))

        assert session.cancel() is board
        with pytest.raises(ImportStateError):
            session.resolve_internal({"Quantum": "Hardware"})


class TestScenarios:
    """End-to-end scenarios."""

    def test_duplicate_subject_resolved(self, board):
        """Quantum in Hardware and Software ends up once, in Hardware."""
        session = CSVImportSession(board)
        step = session.start(_rows(("Quantum", "Hardware"), ("Quantum", "Software")))

        conflict = step.internal_conflicts[0]
        assert conflict.name == "Quantum"
        assert conflict.categories == ["Hardware", "Software"]

        step = session.resolve_internal({"Quantum": "Hardware"})

        assert step.completed
        quantum = [s for s in step.board.iter_subjects() if s.key == "quantum"]
        assert len(quantum) == 1
        assert step.board.category_name(quantum[0].category_id) == "Hardware"

    def test_auto_merge_leaves_board_unchanged(self, board_service):
        """Graphene already in Materials merges silently."""
        materials = board_service.add_category("Materials")
        board_service.add_subject("Graphene", materials.id)
        board = board_service.board

        step = CSVImportSession(board).start(_rows(("Graphene", "Materials")))

        assert step.completed
        assert step.board.model_dump() == board.model_dump()

    def test_excluded_subject_use_new(self, board_service):
        """Silicon replaces its exclude term and is added to Chips."""
        board_service.add_term("Silicon", TermDirection.EXCLUDE)
        session = CSVImportSession(board_service.board)

        step = session.start(_rows(("Silicon", "Chips")))

        conflict = step.board_conflicts[0]
        assert conflict.is_exclude_conflict is True

        step = session.resolve_board({"Silicon": USE_NEW})

        assert step.board.find_term("Silicon") is None
        silicon = step.board.find_subject("Silicon")
        assert step.board.category_name(silicon.category_id) == "Chips"
        assert silicon.source == DataSource.CSV

    def test_include_vs_exclude_resolved_to_exclude(self, board):
        """Battery listed both ways ends up only as an exclude term."""
        session = CSVImportSession(board)
        step = session.start(_rows(("Battery", "_exclude"), ("Battery", "_include")))

        assert step.internal_conflicts[0].kind == InternalConflictKind.INCLUDE_VS_EXCLUDE

        step = session.resolve_internal({"Battery": "_exclude"})

        assert step.completed
        assert step.board.find_term("battery").direction == TermDirection.EXCLUDE
        assert step.board.find_term("battery", TermDirection.INCLUDE) is None

    def test_delete_category_after_import(self, board):
        """Legacy with 3 subjects moves them all to uncategorized."""
        step = CSVImportSession(board).start(
            _rows(("Fortran", "Legacy"), ("COBOL", "Legacy"), ("Punch cards", "Legacy"))
        )
        service = BoardService(step.board)
        legacy = service.board.find_category_by_name("Legacy")

        moved = service.delete_category(legacy.id, DeleteStrategy.MOVE_TO_UNCATEGORIZED)

        assert len(moved) == 3
        assert service.board.find_category_by_name("Legacy") is None
        uncategorized = [s.name for s in service.board.get_category("uncategorized").subjects]
        assert uncategorized == ["Fortran", "COBOL", "Punch cards"]

    def test_reimport_is_idempotent(self, board):
        rows = _rows(
            ("Proteomics", "Omics"),
            ("CRISPR", "Genetics"),
            ("mice", "_include"),
            ("fungi", "_exclude"),
        )
        first = CSVImportSession(board).start(rows)

        second = CSVImportSession(first.board).start(rows)

        assert second.completed
        assert second.board.model_dump() == first.board.model_dump()

    def test_mixed_import_keeps_invariants(self, board):
        session = CSVImportSession(board)
        step = session.start(
            _rows(
                ("Quantum", "Hardware"),
                ("quantum", "Software"),
                ("Plants", "Botany"),
                ("CRISPR", "Imaging"),
                ("Mendel", "_exclude"),
                ("zebrafish", "_exclude"),
                ("Proteomics", ""),
            )
        )
        step = session.resolve_internal({"Quantum": "Software"})

        names = {c.name for c in step.board_conflicts}
        assert names == {"Plants", "CRISPR", "Mendel", "zebrafish"}

        step = session.resolve_board(
            {"Plants": USE_NEW, "CRISPR": KEEP, "Mendel": USE_NEW, "zebrafish": USE_NEW}
        )

        result = step.board
        assert find_invariant_violations(result) == []
        assert result.find_subject("Plants") is not None
        assert result.find_subject("Mendel") is None
        assert result.find_term("mendel").direction == TermDirection.EXCLUDE
        assert result.find_term("zebrafish").direction == TermDirection.EXCLUDE
        assert result.category_name(result.find_subject("CRISPR").category_id) == "Genetics"
        assert result.category_name(result.find_subject("Quantum").category_id) == "Software"
