"""CSV import API routes.

Phase 1 uploads the file and runs the pipeline as far as it can go. When
conflicts need user input, the running ``CSVImportSession`` is parked in an
in-memory session map and the caller continues with the resolution endpoints.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Annotated, Optional
from uuid import uuid4

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from labboard.board.exceptions import InvalidNameError, PreconditionError
from labboard.board.store import BoardStore, get_board_store
from labboard.config import Settings, get_settings
from labboard.imports.exceptions import CSVInputError, InvalidResolutionError
from labboard.imports.pipeline import CSVImportSession
from labboard.imports.schemas import (
    BoardResolutionRequest,
    ImportPhaseResult,
    ImportStep,
    InternalResolutionRequest,
)
from labboard.imports.upload import read_upload

logger = logging.getLogger(__name__)

router = APIRouter()

# In-memory storage for imports waiting on resolutions
_import_sessions: dict[str, dict] = {}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _create_import_session(
    board_id: str, session: CSVImportSession, ttl_minutes: Optional[int] = None
) -> str:
    """Park a running import and return its session id."""
    _cleanup_expired_sessions()
    if ttl_minutes is None:
        ttl_minutes = get_settings().import_session_ttl_minutes
    session_id = str(uuid4())
    _import_sessions[session_id] = {
        "board_id": board_id,
        "session": session,
        "created_at": _utcnow(),
        "expires_at": _utcnow() + timedelta(minutes=ttl_minutes),
    }
    return session_id


def _get_import_session(session_id: str, board_id: Optional[str] = None) -> Optional[dict]:
    """Return a parked import, or None if unknown, expired or for another board."""
    entry = _import_sessions.get(session_id)
    if entry is None:
        return None
    if entry["expires_at"] < _utcnow():
        _delete_import_session(session_id)
        return None
    if board_id is not None and entry["board_id"] != board_id:
        return None
    return entry


def _delete_import_session(session_id: str) -> None:
    _import_sessions.pop(session_id, None)


def _cleanup_expired_sessions() -> None:
    """Drop every expired session."""
    now = _utcnow()
    expired = [sid for sid, entry in _import_sessions.items() if entry["expires_at"] < now]
    for sid in expired:
        del _import_sessions[sid]
    if expired:
        logger.debug("Removed %d expired import sessions", len(expired))


def _require_session(session_id: str) -> dict:
    entry = _get_import_session(session_id)
    if entry is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Import session not found or expired",
        )
    return entry


def _finish_step(
    session_id: str, entry: dict, step: ImportStep, store: BoardStore
) -> ImportPhaseResult:
    """Commit a completed import to the store, or keep the session parked."""
    if not step.completed:
        return ImportPhaseResult(session_id=session_id, step=step)

    _delete_import_session(session_id)
    board_id = entry["board_id"]
    if store.get(board_id) is not entry["session"].board:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Board changed while the import was pending; please import again",
        )
    store.replace(board_id, step.board)
    logger.info("CSV import committed to board %s", board_id)
    return ImportPhaseResult(session_id="", step=step)


@router.post("/{board_id}/phase1", response_model=ImportPhaseResult)
async def import_phase1(
    board_id: str,
    store: Annotated[BoardStore, Depends(get_board_store)],
    settings: Annotated[Settings, Depends(get_settings)],
    file: UploadFile = File(...),
):
    """Upload a CSV and run validation and reconciliation.

    Returns the completed board when there is nothing to resolve; otherwise a
    session id plus the conflicts of the current stage.
    """
    board = store.get(board_id)
    if board is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Board not found")

    content = await file.read()
    try:
        rows = read_upload(file.filename, content, settings)
        session = CSVImportSession(board, max_rows=settings.max_import_rows)
        step = session.start(rows)
    except CSVInputError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if step.completed:
        store.replace(board_id, step.board)
        logger.info("CSV import committed to board %s without conflicts", board_id)
        return ImportPhaseResult(session_id="", step=step)

    session_id = _create_import_session(board_id, session, settings.import_session_ttl_minutes)
    return ImportPhaseResult(session_id=session_id, step=step)


@router.post("/sessions/{session_id}/internal-resolutions", response_model=ImportPhaseResult)
async def resolve_internal_conflicts(
    session_id: str,
    data: InternalResolutionRequest,
    store: Annotated[BoardStore, Depends(get_board_store)],
):
    """Resolve conflicts inside the CSV (stage 1)."""
    entry = _require_session(session_id)
    try:
        step = entry["session"].resolve_internal(data.resolutions)
    except PreconditionError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return _finish_step(session_id, entry, step, store)


@router.post("/sessions/{session_id}/board-resolutions", response_model=ImportPhaseResult)
async def resolve_board_conflicts(
    session_id: str,
    data: BoardResolutionRequest,
    store: Annotated[BoardStore, Depends(get_board_store)],
):
    """Resolve conflicts with the existing board (stage 2) and apply the import."""
    entry = _require_session(session_id)
    try:
        step = entry["session"].resolve_board(data.resolutions)
    except (InvalidResolutionError, InvalidNameError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except PreconditionError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return _finish_step(session_id, entry, step, store)


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_import(session_id: str):
    """Cancel a pending import; the board is left untouched."""
    entry = _require_session(session_id)
    entry["session"].cancel()
    _delete_import_session(session_id)
