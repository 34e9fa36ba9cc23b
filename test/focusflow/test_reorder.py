"""
Tests for reorder planning and the ReorderEngine.
"""

from types import SimpleNamespace

import pytest

from focusflow.reorder import (
    DropLocation, DropResult, OrderChange, ReorderError, move_item, plan_move, plan_reorder,
)


def rows(*names, start=1):
    return [SimpleNamespace(id=start + i, title=name, order=i) for i, name in enumerate(names)]


def titles(items):
    return [item.title for item in items]


class TestPlanning:

    def test_move_item(self):
        assert move_item(["A", "B", "C", "D"], 2, 0) == ["C", "A", "B", "D"]
        assert move_item(["A", "B", "C"], 0, 2) == ["B", "C", "A"]

    def test_move_item_out_of_range(self):
        with pytest.raises(ReorderError):
            move_item(["A", "B"], 2, 0)
        with pytest.raises(ReorderError):
            move_item(["A", "B"], 0, -1)

    def test_plan_reorder_only_changed_rows(self):
        a, b, c, d = rows("A", "B", "C", "D")
        plan = plan_reorder([a, b, c, d], 2, 0)
        assert plan == [
            OrderChange(id=c.id, order=0),
            OrderChange(id=a.id, order=1),
            OrderChange(id=b.id, order=2),
        ]

    def test_plan_reorder_same_index_is_empty(self):
        assert plan_reorder(rows("A", "B", "C"), 1, 1) == []

    def test_plan_move_between_columns(self):
        source = rows("A", "B", "C")
        destination = rows("X", "Y", start=10)
        plan = plan_move(source, destination, 0, 1, destination_column_id=2, destination_board_id=1)

        by_id = {change.id: change for change in plan}
        assert by_id[1] == OrderChange(id=1, order=1, column_id=2, board_id=1)
        assert by_id[2].order == 0 and by_id[3].order == 1
        assert by_id[11].order == 2
        assert 10 not in by_id

    def test_plan_move_to_empty_column(self):
        plan = plan_move(rows("A"), [], 0, 0, destination_column_id=5, destination_board_id=1)
        assert plan == [OrderChange(id=1, order=0, column_id=5, board_id=1)]

    def test_plan_move_destination_range(self):
        with pytest.raises(ReorderError):
            plan_move(rows("A"), rows("X", start=10), 0, 2, destination_column_id=2, destination_board_id=1)

    def test_order_change_payload(self):
        assert OrderChange(id=1, order=3).changes == {"order": 3}
        assert OrderChange(id=1, order=0, column_id=4, board_id=2).changes == {
            "order": 0, "column_id": 4, "board_id": 2,
        }


class TestReorderEngine:

    @pytest.mark.asyncio
    async def test_reorder_tasks_within_column(self, service, backend, board, events):
        events.clear()
        before = backend.data_writes()

        assert await service.reorder.reorder_tasks(board["todo"], 2, 0)

        tasks = service.tasks.ordered(board["todo"])
        assert titles(tasks) == ["C", "A", "B", "D"]
        assert [t.order for t in tasks] == [0, 1, 2, 3]
        assert backend.data_writes() == before + 1
        assert len(events) == 1 and events[0].type == "bulk_updated"

    @pytest.mark.asyncio
    async def test_same_position_writes_nothing(self, service, backend, board, events):
        events.clear()
        before = backend.data_writes()
        assert await service.reorder.reorder_tasks(board["todo"], 1, 1) is False
        assert await service.reorder.reorder_columns(board["board"], 0, 0) is False
        assert backend.data_writes() == before
        assert events == []

    @pytest.mark.asyncio
    async def test_reorder_columns(self, service, board):
        assert await service.reorder.reorder_columns(board["board"], 1, 0)
        columns = service.columns.ordered(board["board"])
        assert titles(columns) == ["Done", "Todo"]
        assert [c.order for c in columns] == [0, 1]

    @pytest.mark.asyncio
    async def test_move_task_between_columns(self, service, backend, board):
        before = backend.data_writes()

        assert await service.reorder.move_task(board["todo"], 0, board["done"], 1)

        assert titles(service.tasks.ordered(board["todo"])) == ["B", "C", "D"]
        assert [t.order for t in service.tasks.ordered(board["todo"])] == [0, 1, 2]
        done = service.tasks.ordered(board["done"])
        assert titles(done) == ["X", "A", "Y"]
        assert [t.order for t in done] == [0, 1, 2]
        assert service.tasks.get(board["A"]).column_id == board["done"]
        assert backend.data_writes() == before + 1

    @pytest.mark.asyncio
    async def test_move_middle_task_between_columns(self, service, board):
        await service.tasks.delete(board["D"])

        assert await service.reorder.move_task(board["todo"], 1, board["done"], 1)

        source = service.tasks.ordered(board["todo"])
        destination = service.tasks.ordered(board["done"])
        assert (titles(source), [t.order for t in source]) == (["A", "C"], [0, 1])
        assert (titles(destination), [t.order for t in destination]) == (["X", "B", "Y"], [0, 1, 2])
        assert service.tasks.get(board["B"]).column_id == board["done"]

    @pytest.mark.asyncio
    async def test_move_task_across_boards_updates_board(self, service, board):
        other = await service.boards.add(title="Other")
        other_column = await service.columns.add(board_id=other, title="Inbox")

        assert await service.reorder.move_task(board["todo"], 3, other_column, 0)

        moved = service.tasks.get(board["D"])
        assert (moved.column_id, moved.board_id, moved.order) == (other_column, other, 0)

    @pytest.mark.asyncio
    async def test_move_task_to_missing_column(self, service, backend, board):
        before = backend.data_writes()
        assert await service.reorder.move_task(board["todo"], 0, 999, 0) is False
        assert backend.data_writes() == before

    @pytest.mark.asyncio
    async def test_missing_parents_are_noops(self, service, backend, board, events):
        events.clear()
        before = backend.data_writes()

        assert await service.reorder.reorder_tasks(999, 0, 1) is False
        assert await service.reorder.reorder_columns(999, 0, 1) is False
        assert await service.reorder.move_task(999, 0, board["done"], 0) is False

        assert backend.data_writes() == before
        assert events == []
        assert titles(service.tasks.ordered(board["done"])) == ["X", "Y"]

    @pytest.mark.asyncio
    async def test_column_drop_on_missing_board(self, service, board):
        drop = DropResult(
            type="column",
            source=DropLocation(droppable_id="board", index=1),
            destination=DropLocation(droppable_id="board", index=0),
        )
        assert await service.reorder.apply_drop(drop, board_id=999) is False

    @pytest.mark.asyncio
    async def test_out_of_range_raises(self, service, board):
        with pytest.raises(ReorderError):
            await service.reorder.reorder_tasks(board["todo"], 9, 0)


class TestApplyDrop:

    @staticmethod
    def drop(source, destination, draggable=None, type="task"):
        return DropResult(
            type=type,
            draggable_id=draggable,
            source=DropLocation(droppable_id=str(source[0]), index=source[1]),
            destination=DropLocation(droppable_id=str(destination[0]), index=destination[1]) if destination else None,
        )

    @pytest.mark.asyncio
    async def test_cancelled_drop(self, service, backend, board):
        before = backend.data_writes()
        assert await service.reorder.apply_drop(self.drop((board["todo"], 0), None)) is False
        assert await service.reorder.apply_drop(self.drop((board["todo"], 1), (board["todo"], 1))) is False
        assert backend.data_writes() == before

    @pytest.mark.asyncio
    async def test_task_drop_between_columns(self, service, board):
        drop = self.drop((board["todo"], 0), (board["done"], 1), draggable=str(board["A"]))
        assert await service.reorder.apply_drop(drop)
        assert titles(service.tasks.ordered(board["done"])) == ["X", "A", "Y"]

    @pytest.mark.asyncio
    async def test_column_drop_requires_board(self, service, board):
        drop = self.drop(("board", 1), ("board", 0), type="column")
        with pytest.raises(ReorderError):
            await service.reorder.apply_drop(drop)
        assert await service.reorder.apply_drop(drop, board_id=board["board"])
        assert titles(service.columns.ordered(board["board"])) == ["Done", "Todo"]

    @pytest.mark.asyncio
    async def test_stale_draggable_ignored(self, service, backend, board):
        before = backend.data_writes()
        drop = self.drop((board["todo"], 0), (board["done"], 0), draggable=str(board["C"]))
        assert await service.reorder.apply_drop(drop) is False
        assert backend.data_writes() == before

    @pytest.mark.asyncio
    async def test_non_column_droppable(self, service, board):
        with pytest.raises(ReorderError):
            await service.reorder.apply_drop(self.drop(("matrix", 0), (board["done"], 0)))

    def test_drop_result_from_ui_payload(self):
        drop = DropResult.model_validate({
            "type": "task",
            "draggableId": "3",
            "source": {"droppableId": "1", "index": 2},
            "destination": {"droppableId": "1", "index": 0},
        })
        assert drop.draggable_id == "3"
        assert drop.destination.index == 0
