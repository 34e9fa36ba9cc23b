"""
Reorder Engine

Turns a drag-and-drop outcome into dense ``order`` updates. Planning is
pure: ``plan_reorder`` and ``plan_move`` take the ordered sibling sequences
and return OrderChange rows. ReorderEngine reads siblings from the
repositories and applies each plan as a single bulk update, so observers
never see a half-reordered board.

Races between two rapid drags are not detected; the last flush wins.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, TypeVar

from .models import FocusFlowModel

if TYPE_CHECKING:
    from .repositories import BoardRepository, ColumnRepository, TaskRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ReorderError(ValueError):
    """Raised for drag indices outside the sibling sequence."""


@dataclass(frozen=True)
class OrderChange:
    """New position of one entity; column/board set only for a moved task."""
    id: int
    order: int
    column_id: Optional[int] = None
    board_id: Optional[int] = None

    @property
    def changes(self) -> Dict[str, Any]:
        changes: Dict[str, Any] = {"order": self.order}
        if self.column_id is not None:
            changes["column_id"] = self.column_id
        if self.board_id is not None:
            changes["board_id"] = self.board_id
        return changes


def _check_index(index: int, upper: int, what: str) -> None:
    if not 0 <= index <= upper:
        raise ReorderError(f"{what} index {index} out of range 0..{upper}")


def move_item(items: Sequence[T], source_index: int, destination_index: int) -> List[T]:
    """Return a copy of ``items`` with one element moved to a new index."""
    _check_index(source_index, len(items) - 1, "Source")
    _check_index(destination_index, len(items) - 1, "Destination")
    result = list(items)
    moved = result.pop(source_index)
    result.insert(destination_index, moved)
    return result


def plan_reorder(items: Sequence[Any], source_index: int, destination_index: int) -> List[OrderChange]:
    """
    Plan a reorder within one container.

    Args:
        items: Siblings in their current display order
        source_index: Position the entity was dragged from
        destination_index: Position it was dropped at

    Returns:
        OrderChange for every sibling whose order differs from its new
        position; empty when nothing moves
    """
    sequence = move_item(items, source_index, destination_index)
    return [
        OrderChange(id=item.id, order=position)
        for position, item in enumerate(sequence)
        if item.order != position
    ]


def plan_move(
    source_items: Sequence[Any],
    destination_items: Sequence[Any],
    source_index: int,
    destination_index: int,
    destination_column_id: int,
    destination_board_id: int,
) -> List[OrderChange]:
    """
    Plan a task move from one column into another.

    The source column is closed up, the task is inserted into the
    destination at ``destination_index``, and the destination is renumbered.
    The moved task's change always carries its new column, board and order
    together.
    """
    _check_index(source_index, len(source_items) - 1, "Source")
    _check_index(destination_index, len(destination_items), "Destination")

    remaining = list(source_items)
    moved = remaining.pop(source_index)
    changes = [
        OrderChange(id=item.id, order=position)
        for position, item in enumerate(remaining)
        if item.order != position
    ]

    destination = list(destination_items)
    destination.insert(destination_index, moved)
    for position, item in enumerate(destination):
        if item is moved:
            changes.append(OrderChange(
                id=item.id,
                order=position,
                column_id=destination_column_id,
                board_id=destination_board_id,
            ))
        elif item.order != position:
            changes.append(OrderChange(id=item.id, order=position))
    return changes


class DropLocation(FocusFlowModel):
    droppable_id: str
    index: int


class DropResult(FocusFlowModel):
    """Outcome of a drag-and-drop gesture as reported by the UI."""

    type: str = "task"
    draggable_id: Optional[str] = None
    source: DropLocation
    destination: Optional[DropLocation] = None


class ReorderEngine:
    """
    Applies reorder plans through the column and task repositories.

    Each entry point issues at most one bulk update and returns True only
    when that update was committed. A missing board or column is "not
    found": nothing is written and False is returned.
    """

    def __init__(self, boards: "BoardRepository", columns: "ColumnRepository", tasks: "TaskRepository"):
        self.boards = boards
        self.columns = columns
        self.tasks = tasks

    async def reorder_columns(self, board_id: int, source_index: int, destination_index: int) -> bool:
        if self.boards.get(board_id) is None:
            logger.warning(f"Reorder board {board_id} not found")
            return False
        plan = plan_reorder(self.columns.ordered(board_id), source_index, destination_index)
        if not plan:
            return False
        return await self.columns.bulk_update(plan)

    async def reorder_tasks(self, column_id: int, source_index: int, destination_index: int) -> bool:
        if self.columns.get(column_id) is None:
            logger.warning(f"Reorder column {column_id} not found")
            return False
        plan = plan_reorder(self.tasks.ordered(column_id), source_index, destination_index)
        if not plan:
            return False
        return await self.tasks.bulk_update(plan)

    async def move_task(
        self,
        source_column_id: int,
        source_index: int,
        destination_column_id: int,
        destination_index: int,
    ) -> bool:
        """Move the task at ``source_index`` of one column into another column."""
        if source_column_id == destination_column_id:
            return await self.reorder_tasks(source_column_id, source_index, destination_index)

        if self.columns.get(source_column_id) is None:
            logger.warning(f"Move source column {source_column_id} not found")
            return False
        destination = self.columns.get(destination_column_id)
        if destination is None:
            logger.warning(f"Move target column {destination_column_id} not found")
            return False

        plan = plan_move(
            self.tasks.ordered(source_column_id),
            self.tasks.ordered(destination_column_id),
            source_index,
            destination_index,
            destination.id,
            destination.board_id,
        )
        return await self.tasks.bulk_update(plan)

    async def apply_drop(self, drop: DropResult, board_id: Optional[int] = None) -> bool:
        """
        Apply a drag-and-drop result.

        Column drops need ``board_id`` (the column strip's droppable id is
        not an entity id); task drops use the column ids carried in the
        droppable ids.
        """
        destination = drop.destination
        if destination is None:
            return False
        if destination.droppable_id == drop.source.droppable_id and destination.index == drop.source.index:
            return False

        if drop.type == "column":
            if board_id is None:
                raise ReorderError("Column drops require a board id")
            return await self.reorder_columns(board_id, drop.source.index, destination.index)

        try:
            source_column_id = int(drop.source.droppable_id)
            destination_column_id = int(destination.droppable_id)
        except ValueError:
            raise ReorderError(
                f"Task drop between non-column containers: {drop.source.droppable_id} -> {destination.droppable_id}"
            )

        if drop.draggable_id is not None:
            siblings = self.tasks.ordered(source_column_id)
            if drop.source.index < len(siblings) and str(siblings[drop.source.index].id) != drop.draggable_id:
                logger.warning(
                    f"Stale drop ignored: task {drop.draggable_id} is no longer at index {drop.source.index}"
                )
                return False

        return await self.move_task(source_column_id, drop.source.index, destination_column_id, destination.index)
