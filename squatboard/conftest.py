# squatboard/conftest.py
import pytest

from squatboard.core.metrics import METRICS
from squatboard.features.store.base import get_store, reset_store, set_store
from squatboard.features.store.memory import InMemoryLedgerStore
from squatboard.realtime.hub import hub


@pytest.fixture
def store():
    """The in-memory store installed for the current test."""
    return get_store()


@pytest.fixture(scope="function", autouse=True)
def isolated_state():
    """
    Give every test a fresh in-memory ledger store, zeroed metrics and an
    empty board hub, so no state leaks between tests.
    """
    set_store(InMemoryLedgerStore())
    METRICS.reset()
    hub.reset()
    yield
    hub.reset()
    reset_store()
