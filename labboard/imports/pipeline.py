"""Two-stage CSV import state machine.

    idle -> stage1_conflicts -> stage2_conflicts -> applying -> idle

Stage 2 never starts while stage 1 has unresolved conflicts, and nothing is
applied until every stage 2 conflict has a resolution. Cancelling before the
apply step returns the untouched starting board.
"""

import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any, Optional

from labboard.board.schemas import Board
from labboard.imports.applicator import apply_resolutions, check_resolution_targets
from labboard.imports.exceptions import ImportStateError, MissingResolutionError
from labboard.imports.parsers import normalize_rows
from labboard.imports.reconciler import reconcile_with_board
from labboard.imports.schemas import (
    BoardResolution,
    CSVData,
    ImportProgress,
    ImportState,
    ImportStep,
    InternalConflict,
    ReconciliationResult,
)
from labboard.imports.validators import (
    apply_internal_resolutions,
    lookup_resolution,
    validate_internally,
)

logger = logging.getLogger(__name__)

# Progress payloads shown to the user at each transition
STAGE1_CHECKING = ImportProgress(message="Checking CSV file for internal conflicts...", progress=25)
STAGE1_CONFLICTS = ImportProgress(message="CSV file issues found", progress=30)
STAGE2_CHECKING = ImportProgress(
    message="Checking for conflicts with existing data...", progress=60
)
STAGE2_CONFLICTS = ImportProgress(message="Data conflicts found", progress=70)
APPLYING = ImportProgress(message="Applying changes...", progress=90)
COMPLETED = ImportProgress(message="CSV imported successfully!", progress=100)
CANCELLED = ImportProgress(message="Import cancelled", progress=0)

ProgressCallback = Callable[[ImportProgress], None]


class CSVImportSession:
    """Drives one CSV import against a board snapshot.

    Args:
        board: Board snapshot at the start of the import. It is never mutated.
        progress_callback: Optional receiver for progress payloads.
        max_rows: Optional row limit passed to the normalizer.
    """

    def __init__(
        self,
        board: Board,
        progress_callback: Optional[ProgressCallback] = None,
        max_rows: Optional[int] = None,
    ):
        self.board = board
        self.progress_callback = progress_callback
        self.max_rows = max_rows
        self.state = ImportState.IDLE
        self.result: Optional[Board] = None
        self._started = False
        self._pending: Optional[CSVData] = None
        self._internal_conflicts: list[InternalConflict] = []
        self._reconciliation: Optional[ReconciliationResult] = None

    def _emit(self, progress: ImportProgress) -> ImportProgress:
        if self.progress_callback is not None:
            self.progress_callback(progress)
        return progress

    def _require(self, state: ImportState, action: str) -> None:
        if self.state != state:
            raise ImportStateError(f"Cannot {action} while import is {self.state.value}")

    def _reset(self) -> None:
        self._pending = None
        self._internal_conflicts = []
        self._reconciliation = None

    def start(self, rows: Iterable[Mapping[str, Any]]) -> ImportStep:
        """Normalize and validate CSV rows, then continue as far as possible.

        Raises:
            CSVInputError: For malformed input; the session stays idle.
            ImportStateError: If this session already ran an import.
        """
        self._require(ImportState.IDLE, "start an import")
        if self._started:
            raise ImportStateError("This import session has already been used")

        self._emit(STAGE1_CHECKING)
        data = normalize_rows(rows, max_rows=self.max_rows)
        self._started = True
        logger.info(
            "CSV import started: %d rows, %d subjects, %d include, %d exclude terms",
            data.row_count,
            len(data.subjects),
            len(data.include_terms),
            len(data.exclude_terms),
        )
        return self._run_stage1(data)

    def _run_stage1(self, data: CSVData) -> ImportStep:
        validation = validate_internally(data)
        if validation.has_conflicts:
            self._pending = data
            self._internal_conflicts = list(validation.conflicts)
            self.state = ImportState.STAGE1_CONFLICTS
            return ImportStep(
                state=self.state,
                progress=self._emit(STAGE1_CONFLICTS),
                internal_conflicts=self._internal_conflicts,
            )
        return self._run_stage2(validation.cleaned)

    def _run_stage2(self, data: CSVData) -> ImportStep:
        self._emit(STAGE2_CHECKING)
        reconciliation = reconcile_with_board(data, self.board)
        self._pending = data
        self._reconciliation = reconciliation
        if reconciliation.has_conflicts:
            self.state = ImportState.STAGE2_CONFLICTS
            return ImportStep(
                state=self.state,
                progress=self._emit(STAGE2_CONFLICTS),
                board_conflicts=list(reconciliation.conflicts),
            )
        return self._apply({})

    def resolve_internal(self, resolutions: Mapping[str, str]) -> ImportStep:
        """Apply stage 1 resolutions and re-run validation.

        Raises:
            ImportStateError: Unless the session is in stage1_conflicts.
            MissingResolutionError: If any conflict has no resolution.
        """
        self._require(ImportState.STAGE1_CONFLICTS, "resolve CSV conflicts")
        cleaned = apply_internal_resolutions(
            self._pending, self._internal_conflicts, resolutions
        )
        self._internal_conflicts = []
        return self._run_stage1(cleaned)

    def resolve_board(self, resolutions: Mapping[str, BoardResolution]) -> ImportStep:
        """Apply stage 2 resolutions and complete the import.

        Raises:
            ImportStateError: Unless the session is in stage2_conflicts.
            MissingResolutionError: If any conflict has no resolution.
            InvalidResolutionError: If a use_new target is not a category.
                The session stays in stage2_conflicts.
        """
        self._require(ImportState.STAGE2_CONFLICTS, "resolve board conflicts")
        missing = [
            c.name
            for c in self._reconciliation.conflicts
            if lookup_resolution(resolutions, c.name) is None
        ]
        if missing:
            raise MissingResolutionError(missing)
        check_resolution_targets(self.board, self._reconciliation, resolutions)
        return self._apply(resolutions)

    def _apply(self, resolutions: Mapping[str, BoardResolution]) -> ImportStep:
        self.state = ImportState.APPLYING
        self._emit(APPLYING)
        try:
            board = apply_resolutions(self.board, self._pending, self._reconciliation, resolutions)
        except Exception:
            # The input snapshot is untouched; leave the session unusable
            self.state = ImportState.IDLE
            self._reset()
            raise
        self.result = board
        self.state = ImportState.IDLE
        self._reset()
        return ImportStep(state=self.state, progress=self._emit(COMPLETED), board=board)

    @property
    def pending_conflicts(self) -> list:
        """Conflicts currently waiting for resolutions."""
        if self.state == ImportState.STAGE1_CONFLICTS:
            return list(self._internal_conflicts)
        if self.state == ImportState.STAGE2_CONFLICTS:
            return list(self._reconciliation.conflicts)
        return []

    def cancel(self) -> Board:
        """Abandon the import and return the untouched starting board.

        Raises:
            ImportStateError: While the apply step is running.
        """
        if self.state == ImportState.APPLYING:
            raise ImportStateError("Cannot cancel while changes are being applied")
        self._reset()
        self.state = ImportState.IDLE
        self._emit(CANCELLED)
        logger.info("CSV import cancelled")
        return self.board
