"""Shared test fixtures."""

import pytest
from fastapi.testclient import TestClient

from labboard.board.schemas import Board, DataSource, TermDirection
from labboard.board.service import BoardService
from labboard.board.store import get_board_store
from labboard.imports.router import _import_sessions
from labboard.main import create_app


@pytest.fixture(autouse=True)
def reset_state():
    """Clear the board store and pending imports around each test."""
    get_board_store().reset()
    _import_sessions.clear()
    yield
    get_board_store().reset()
    _import_sessions.clear()


@pytest.fixture
def client():
    """Test client for the API."""
    with TestClient(create_app()) as test_client:
        yield test_client


@pytest.fixture
def board_service():
    """Service over a board with two categories, three subjects and two terms.

    - Genetics: CRISPR, Mendel
    - Imaging: Microscopy
    - include term "zebrafish", exclude term "plants"
    """
    service = BoardService()
    genetics = service.add_category("Genetics")
    imaging = service.add_category("Imaging")
    service.add_subject("CRISPR", genetics.id, source=DataSource.SEED, external_ref="s-1")
    service.add_subject("Mendel", genetics.id, source=DataSource.MANUAL)
    service.add_subject("Microscopy", imaging.id, source=DataSource.SEED, external_ref="s-2")
    service.add_term("zebrafish", TermDirection.INCLUDE)
    service.add_term("plants", TermDirection.EXCLUDE)
    return service


@pytest.fixture
def board(board_service) -> Board:
    """Snapshot of the ``board_service`` board."""
    return board_service.board

