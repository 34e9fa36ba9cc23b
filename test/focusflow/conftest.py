"""
Shared fixtures for the FocusFlow test suite.

Provides an in-memory backend that records writes and can be told to fail,
an opened FocusFlowService on top of it, and a small seeded board.
"""

import sys
from pathlib import Path
from typing import List, Optional

import pytest

project_root = Path(__file__).parent.parent.parent / "src"
sys.path.insert(0, str(project_root))

from focusflow.events import ChangeEvent
from focusflow.service import FocusFlowService
from focusflow.storage import DATA_KEY, MemoryStorageBackend


class RecordingBackend(MemoryStorageBackend):
    """Memory backend that counts writes and can simulate failures."""

    def __init__(self, initial=None):
        super().__init__(initial)
        self.writes: List[str] = []
        self.fail_writes = False
        self.fail_reads = False

    async def read(self, key: str) -> Optional[str]:
        if self.fail_reads:
            raise OSError("storage unavailable")
        return await super().read(key)

    async def write(self, key: str, text: str) -> bool:
        if self.fail_writes:
            return False
        self.writes.append(key)
        return await super().write(key, text)

    def data_writes(self) -> int:
        return self.writes.count(DATA_KEY)


@pytest.fixture
def backend():
    return RecordingBackend()


@pytest.fixture
async def service(backend):
    service = FocusFlowService(backend, app_version="test")
    await service.open()
    return service


@pytest.fixture
def events(service):
    received: List[ChangeEvent] = []
    service.subscribe(received.append)
    return received


@pytest.fixture
async def board(service):
    """
    One board with columns "Todo" (tasks A, B, C, D) and "Done" (tasks X, Y).

    Returns a dict of ids keyed by name.
    """
    ids = {"board": await service.boards.add(title="Work")}
    ids["todo"] = await service.columns.add(board_id=ids["board"], title="Todo")
    ids["done"] = await service.columns.add(board_id=ids["board"], title="Done")
    for title in ("A", "B", "C", "D"):
        ids[title] = await service.tasks.add(column_id=ids["todo"], title=title)
    for title in ("X", "Y"):
        ids[title] = await service.tasks.add(column_id=ids["done"], title=title)
    return ids
