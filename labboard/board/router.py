"""Board API routes.

Each request runs one ``BoardService`` operation against the stored snapshot
and stores the resulting snapshot; a failed operation stores nothing.
"""

from collections.abc import Callable
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from labboard.board.exceptions import (
    CategoryNameTakenError,
    CategoryNotFoundError,
    ExcludeTermConflictError,
    InvalidNameError,
    PreconditionError,
    SubjectExistsError,
    SubjectNotFoundError,
    TermExistsError,
    TermNotFoundError,
)
from labboard.board.schemas import (
    Board,
    BoardCreate,
    BoardResponse,
    Category,
    CategoryCreate,
    CategoryRename,
    DeleteStrategy,
    ExcludeConflictResolve,
    Subject,
    SubjectCreate,
    SubjectMove,
    Term,
    TermCreate,
    ValidationResult,
)
from labboard.board.seeds import board_from_lab_seed
from labboard.board.service import BoardService, get_board_service
from labboard.board.store import BoardStore, get_board_store
from labboard.board.validation import estimate_processing_seconds, validate_board

router = APIRouter()


def _load_board(board_id: str, store: BoardStore) -> Board:
    board = store.get(board_id)
    if board is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Board not found")
    return board


def _run(board_id: str, store: BoardStore, operation: Callable[[BoardService], Any]) -> Any:
    """Apply one service operation and store the new snapshot on success."""
    service = get_board_service(_load_board(board_id, store))
    try:
        result = operation(service)
    except InvalidNameError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except (CategoryNotFoundError, SubjectNotFoundError, TermNotFoundError) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ExcludeTermConflictError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": str(e), "conflict": e.conflict.model_dump(mode="json")},
        )
    except (SubjectExistsError, TermExistsError, CategoryNameTakenError) as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except PreconditionError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    store.replace(board_id, service.board)
    return result


@router.post("", response_model=BoardResponse, status_code=status.HTTP_201_CREATED)
async def create_board(
    data: BoardCreate,
    store: Annotated[BoardStore, Depends(get_board_store)],
):
    """Create an empty board, or one populated from a lab seed."""
    board = board_from_lab_seed(data.seed) if data.seed else Board()
    board_id = store.create(board)
    return BoardResponse(board_id=board_id, board=board)


@router.get("/{board_id}", response_model=BoardResponse)
async def get_board(
    board_id: str,
    store: Annotated[BoardStore, Depends(get_board_store)],
):
    return BoardResponse(board_id=board_id, board=_load_board(board_id, store))


@router.delete("/{board_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_board(
    board_id: str,
    store: Annotated[BoardStore, Depends(get_board_store)],
):
    if not store.delete(board_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Board not found")


@router.get("/{board_id}/validate", response_model=ValidationResult)
async def validate(
    board_id: str,
    store: Annotated[BoardStore, Depends(get_board_store)],
    process_terms: bool = Query(True),
):
    return validate_board(_load_board(board_id, store), process_terms=process_terms)


@router.get("/{board_id}/processing-estimate")
async def processing_estimate(
    board_id: str,
    store: Annotated[BoardStore, Depends(get_board_store)],
):
    """Estimated processing time for the board's new terms."""
    return {"seconds": estimate_processing_seconds(_load_board(board_id, store))}


# --- Subjects ---


@router.post("/{board_id}/subjects", response_model=Subject, status_code=status.HTTP_201_CREATED)
async def add_subject(
    board_id: str,
    data: SubjectCreate,
    store: Annotated[BoardStore, Depends(get_board_store)],
):
    return _run(board_id, store, lambda s: s.add_subject(data.name, data.category_id))


@router.post("/{board_id}/subjects/{subject_id}/move", response_model=Subject)
async def move_subject(
    board_id: str,
    subject_id: str,
    data: SubjectMove,
    store: Annotated[BoardStore, Depends(get_board_store)],
):
    return _run(board_id, store, lambda s: s.move_subject(subject_id, data.to_category_id))


@router.delete("/{board_id}/subjects/{subject_id}", response_model=Subject)
async def remove_subject(
    board_id: str,
    subject_id: str,
    store: Annotated[BoardStore, Depends(get_board_store)],
):
    return _run(board_id, store, lambda s: s.remove_subject(subject_id))


# --- Categories ---


@router.post(
    "/{board_id}/categories", response_model=Category, status_code=status.HTTP_201_CREATED
)
async def add_category(
    board_id: str,
    data: CategoryCreate,
    store: Annotated[BoardStore, Depends(get_board_store)],
):
    return _run(board_id, store, lambda s: s.add_category(data.name))


@router.patch("/{board_id}/categories/{category_id}", response_model=Category)
async def rename_category(
    board_id: str,
    category_id: str,
    data: CategoryRename,
    store: Annotated[BoardStore, Depends(get_board_store)],
):
    return _run(board_id, store, lambda s: s.rename_category(category_id, data.name))


@router.delete("/{board_id}/categories/{category_id}", response_model=list[Subject])
async def delete_category(
    board_id: str,
    category_id: str,
    store: Annotated[BoardStore, Depends(get_board_store)],
    strategy: Optional[DeleteStrategy] = Query(None),
):
    """Delete a category; non-empty categories need a strategy."""
    return _run(board_id, store, lambda s: s.delete_category(category_id, strategy))


# --- Terms ---


@router.post("/{board_id}/terms", response_model=Term, status_code=status.HTTP_201_CREATED)
async def add_term(
    board_id: str,
    data: TermCreate,
    store: Annotated[BoardStore, Depends(get_board_store)],
):
    return _run(board_id, store, lambda s: s.add_term(data.text, data.direction))


@router.post("/{board_id}/terms/{term_id}/toggle", response_model=Term)
async def toggle_term(
    board_id: str,
    term_id: str,
    store: Annotated[BoardStore, Depends(get_board_store)],
):
    return _run(board_id, store, lambda s: s.toggle_term(term_id))


@router.delete("/{board_id}/terms/{term_id}", response_model=Term)
async def remove_term(
    board_id: str,
    term_id: str,
    store: Annotated[BoardStore, Depends(get_board_store)],
):
    return _run(board_id, store, lambda s: s.remove_term(term_id))


@router.post("/{board_id}/exclude-conflicts/resolve", response_model=BoardResponse)
async def resolve_exclude_conflict(
    board_id: str,
    data: ExcludeConflictResolve,
    store: Annotated[BoardStore, Depends(get_board_store)],
):
    """Replay a change blocked by an exclude term conflict."""
    board = _run(
        board_id, store, lambda s: s.resolve_exclude_conflict(data.pending, data.action)
    )
    return BoardResponse(board_id=board_id, board=board)
