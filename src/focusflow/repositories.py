"""
Entity repositories over the shared DatasetStore.

Each repository offers the same contract (list/get/add/update/delete/
bulk_update) and enforces its entity's invariants:

- Column ``order`` is dense and zero-based within a board, task ``order``
  within a column; adds append (or insert and shift), deletes close gaps
- A task's ``board_id`` always follows its column
- Deleting a board removes its columns and tasks, deleting a column its
  tasks, deleting a label scrubs it from every task

Every logical mutation commits through one store transaction: exactly one
flush and one ChangeEvent, or nothing at all. Missing ids and missing
parents are "not found": the call returns False/None and nothing is written.
"""

import logging
from abc import ABC
from typing import (
    Any, Callable, Dict, Generic, Iterable, List, Mapping, NamedTuple, Optional, Type, TypeVar, Union,
)

from .events import ChangeBus, ChangeEvent
from .models import (
    Attachment, Board, ChecklistItem, Column, Comment, Dataset, Label, Task, merge, resolve_changes, utc_now,
)
from .reorder import move_item
from .store import DatasetStore

logger = logging.getLogger(__name__)

E = TypeVar("E", Board, Column, Label, Task)


class EntityChange(NamedTuple):
    id: int
    changes: Mapping[str, Any]


UpdateLike = Union[EntityChange, Mapping[str, Any], Any]


def next_id(items: Iterable[Any]) -> int:
    """max(existing ids) + 1, or 1 for an empty collection."""
    return max((item.id for item in items), default=0) + 1


def sort_by_order(items: Iterable[E]) -> List[E]:
    """Sort by ``order``; ties keep insertion order."""
    return sorted(items, key=lambda item: item.order)


def _as_entity_change(update: UpdateLike) -> EntityChange:
    if isinstance(update, Mapping):
        return EntityChange(update["id"], update.get("changes", {}))
    return EntityChange(update.id, update.changes)


def _compact(siblings: Iterable[Any]) -> None:
    """Renumber ``siblings`` to 0..n-1 in their current order."""
    for position, item in enumerate(sort_by_order(siblings)):
        if item.order != position:
            item.order = position


def _insertion_order(siblings: List[Any], requested: Optional[int]) -> int:
    """
    Resolve the order of a new sibling.

    None (or past the end) appends; otherwise later siblings shift up one.
    """
    count = len(siblings)
    if requested is None or requested >= count:
        return count
    for item in siblings:
        if item.order >= requested:
            item.order += 1
    return requested


def _place(siblings: Iterable[Any], requested: int) -> int:
    """
    Renumber ``siblings`` densely around a free slot at ``requested``.

    The slot is clamped to 0..len(siblings). Returns the slot's order.
    """
    ordered = sort_by_order(siblings)
    position = min(max(requested, 0), len(ordered))
    for index, item in enumerate(ordered):
        item.order = index if index < position else index + 1
    return position


class BaseRepository(ABC, Generic[E]):
    """
    Shared CRUD implementation; subclasses fill in the entity hooks.

    Hooks:
        _prepare_new: validate parents / resolve order for a new entity,
            returning None to reject it
        _apply_update: produce the updated entity, None to reject; with
            ``reposition`` an explicit ``order`` moves it among its siblings
        _cascade_delete: remove or fix dependents of a deleted entity
    """

    model: Type[E]
    collection: str
    entity_name: str

    def __init__(self, store: DatasetStore, bus: ChangeBus):
        self.store = store
        self.bus = bus
        # Highest id handed out this session; deleted ids are not reissued
        self._last_issued_id = 0

    def _items(self, data: Optional[Dataset] = None) -> List[E]:
        return getattr(data if data is not None else self.store.data, self.collection)

    def list(self) -> List[E]:
        return list(self._items())

    def get(self, entity_id: int) -> Optional[E]:
        for item in self._items():
            if item.id == entity_id:
                return item
        return None

    @staticmethod
    def _index(items: List[E], entity_id: int) -> int:
        for index, item in enumerate(items):
            if item.id == entity_id:
                return index
        return -1

    async def _commit(self, mutate: Callable[[Dataset], Optional[ChangeEvent]]) -> Optional[ChangeEvent]:
        """
        Run ``mutate`` inside a store transaction and publish its event.

        ``mutate`` returns the ChangeEvent describing what it changed, or
        None when there was nothing to do (no flush, no notification).
        """
        event = None
        async with self.store.transaction() as txn:
            event = mutate(txn.data)
            if event is not None:
                txn.mark_dirty()
        if event is None or not txn.committed:
            return None
        logger.debug(f"Committed {event.entity}.{event.type} {list(event.ids)}")
        self.bus.publish(event)
        return event

    def _prepare_new(self, data: Dataset, values: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return values

    def _apply_update(
        self, data: Dataset, entity: E, changes: Dict[str, Any], reposition: bool = False
    ) -> Optional[E]:
        return merge(entity, changes)

    def _cascade_delete(self, data: Dataset, entity: E) -> None:
        pass

    async def add(self, **fields: Any) -> Optional[int]:
        """
        Create an entity from ``fields`` (any ``id`` is ignored).

        Returns:
            The new id, or None if the entity was rejected or the flush failed
        """
        def mutate(data: Dataset) -> Optional[ChangeEvent]:
            items = self._items(data)
            values = self._prepare_new(data, resolve_changes(self.model, fields))
            if values is None:
                return None
            entity_id = max(next_id(items), self._last_issued_id + 1)
            items.append(self.model.model_validate({**values, "id": entity_id}))
            return ChangeEvent("created", self.entity_name, (entity_id,))

        event = await self._commit(mutate)
        if event is None:
            return None
        self._last_issued_id = event.ids[0]
        return event.ids[0]

    async def update(self, entity_id: int, **changes: Any) -> bool:
        """
        Merge ``changes`` into an entity.

        Returns:
            True if committed; False for a missing id, a rejected change or
            a failed flush

        Raises:
            ValueError: Unknown field name
            pydantic.ValidationError: Invalid field value (nothing written)
        """
        def mutate(data: Dataset) -> Optional[ChangeEvent]:
            items = self._items(data)
            index = self._index(items, entity_id)
            resolved = resolve_changes(self.model, changes)
            if index < 0 or not resolved:
                return None
            updated = self._apply_update(data, items[index], resolved, reposition=True)
            if updated is None:
                return None
            items[index] = updated
            return ChangeEvent("updated", self.entity_name, (entity_id,))

        return await self._commit(mutate) is not None

    async def delete(self, entity_id: int) -> bool:
        """Delete an entity and its dependents in one flush."""
        def mutate(data: Dataset) -> Optional[ChangeEvent]:
            items = self._items(data)
            index = self._index(items, entity_id)
            if index < 0:
                return None
            entity = items.pop(index)
            self._cascade_delete(data, entity)
            return ChangeEvent("deleted", self.entity_name, (entity_id,))

        return await self._commit(mutate) is not None

    async def bulk_update(self, updates: Iterable[UpdateLike]) -> bool:
        """
        Apply many partial updates as one atomic batch.

        Args:
            updates: EntityChange tuples, ``{"id": ..., "changes": {...}}``
                mappings, or objects exposing ``id`` and ``changes``
                (e.g. reorder OrderChange rows). Unknown ids are skipped.

        Returns:
            True if at least one entity changed and the batch was committed
        """
        batch = [_as_entity_change(update) for update in updates]

        def mutate(data: Dataset) -> Optional[ChangeEvent]:
            items = self._items(data)
            positions = {item.id: index for index, item in enumerate(items)}
            touched = []
            for change in batch:
                index = positions.get(change.id)
                resolved = resolve_changes(self.model, change.changes)
                if index is None or not resolved:
                    continue
                updated = self._apply_update(data, items[index], resolved)
                if updated is None:
                    continue
                items[index] = updated
                touched.append(change.id)
            if not touched:
                return None
            return ChangeEvent("bulk_updated", self.entity_name, tuple(touched))

        if not batch:
            return False
        return await self._commit(mutate) is not None


class BoardRepository(BaseRepository[Board]):
    model = Board
    collection = "boards"
    entity_name = "board"

    def _cascade_delete(self, data: Dataset, entity: Board) -> None:
        data.columns = [c for c in data.columns if c.board_id != entity.id]
        data.tasks = [t for t in data.tasks if t.board_id != entity.id]


class ColumnRepository(BaseRepository[Column]):
    model = Column
    collection = "columns"
    entity_name = "column"

    def list(self, board_id: Optional[int] = None) -> List[Column]:
        if board_id is None:
            return super().list()
        return [c for c in self._items() if c.board_id == board_id]

    def ordered(self, board_id: int) -> List[Column]:
        return sort_by_order(self.list(board_id))

    def _prepare_new(self, data: Dataset, values: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        board_id = values.get("board_id")
        if not any(b.id == board_id for b in data.boards):
            logger.warning(f"Cannot add column: board {board_id} not found")
            return None
        siblings = [c for c in data.columns if c.board_id == board_id]
        values["order"] = _insertion_order(siblings, values.get("order"))
        return values

    def _apply_update(
        self, data: Dataset, entity: Column, changes: Dict[str, Any], reposition: bool = False
    ) -> Optional[Column]:
        updated = merge(entity, changes)
        moved = updated.board_id != entity.board_id
        if moved and not any(b.id == updated.board_id for b in data.boards):
            logger.warning(f"Cannot move column {entity.id}: board {updated.board_id} not found")
            return None
        others = [c for c in data.columns if c.id != entity.id]
        if reposition and "order" in changes:
            updated.order = _place((c for c in others if c.board_id == updated.board_id), updated.order)
        elif moved and "order" not in changes:
            updated.order = sum(1 for c in others if c.board_id == updated.board_id)
        if moved:
            # Re-home: close the gap in the old board and carry the tasks along.
            if reposition or "order" not in changes:
                _compact(c for c in others if c.board_id == entity.board_id)
            for task in data.tasks:
                if task.column_id == entity.id:
                    task.board_id = updated.board_id
        return updated

    def _cascade_delete(self, data: Dataset, entity: Column) -> None:
        data.tasks = [t for t in data.tasks if t.column_id != entity.id]
        _compact(c for c in data.columns if c.board_id == entity.board_id)


class LabelRepository(BaseRepository[Label]):
    model = Label
    collection = "labels"
    entity_name = "label"

    def _cascade_delete(self, data: Dataset, entity: Label) -> None:
        for task in data.tasks:
            if entity.id in task.label_ids:
                task.label_ids = [label_id for label_id in task.label_ids if label_id != entity.id]


class TaskRepository(BaseRepository[Task]):
    model = Task
    collection = "tasks"
    entity_name = "task"

    def list(
        self,
        board_id: Optional[int] = None,
        column_id: Optional[int] = None,
        label_id: Optional[int] = None,
    ) -> List[Task]:
        tasks = self._items()
        if board_id is not None:
            tasks = [t for t in tasks if t.board_id == board_id]
        if column_id is not None:
            tasks = [t for t in tasks if t.column_id == column_id]
        if label_id is not None:
            tasks = [t for t in tasks if label_id in t.label_ids]
        return list(tasks)

    def ordered(self, column_id: int) -> List[Task]:
        return sort_by_order(self.list(column_id=column_id))

    @staticmethod
    def _find_column(data: Dataset, column_id: Any) -> Optional[Column]:
        for column in data.columns:
            if column.id == column_id:
                return column
        return None

    def _prepare_new(self, data: Dataset, values: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        column = self._find_column(data, values.get("column_id"))
        if column is None:
            logger.warning(f"Cannot add task: column {values.get('column_id')} not found")
            return None
        board_id = values.get("board_id")
        if board_id is not None and board_id != column.board_id:
            logger.warning(
                f"Cannot add task: column {column.id} belongs to board {column.board_id}, not {board_id}"
            )
            return None
        values["board_id"] = column.board_id
        siblings = [t for t in data.tasks if t.column_id == column.id]
        values["order"] = _insertion_order(siblings, values.get("order"))
        return values

    def _apply_update(
        self, data: Dataset, entity: Task, changes: Dict[str, Any], reposition: bool = False
    ) -> Optional[Task]:
        updated = merge(entity, changes)
        column = self._find_column(data, updated.column_id)
        if column is None:
            logger.warning(f"Cannot update task {entity.id}: column {updated.column_id} not found")
            return None
        updated.board_id = column.board_id
        moved = updated.column_id != entity.column_id
        others = [t for t in data.tasks if t.id != entity.id]
        if reposition and "order" in changes:
            updated.order = _place((t for t in others if t.column_id == column.id), updated.order)
        elif moved and "order" not in changes:
            # Plain column change: append to the destination.
            updated.order = sum(1 for t in others if t.column_id == column.id)
        if moved and (reposition or "order" not in changes):
            _compact(t for t in others if t.column_id == entity.column_id)
        return updated

    def _cascade_delete(self, data: Dataset, entity: Task) -> None:
        _compact(t for t in data.tasks if t.column_id == entity.column_id)

    async def _modify(self, task_id: int, transform: Callable[[Task], Optional[Dict[str, Any]]]) -> bool:
        task = self.get(task_id)
        if task is None:
            return False
        changes = transform(task)
        if changes is None:
            return False
        return await self.update(task_id, **changes)

    async def toggle_label(self, task_id: int, label_id: int) -> bool:
        def transform(task: Task) -> Dict[str, Any]:
            if label_id in task.label_ids:
                return {"label_ids": [i for i in task.label_ids if i != label_id]}
            return {"label_ids": [*task.label_ids, label_id]}
        return await self._modify(task_id, transform)

    async def add_checklist_item(self, task_id: int, text: str) -> Optional[str]:
        """Append a checklist item; blank text is ignored. Returns the item id."""
        text = text.strip()
        if not text:
            return None
        item = ChecklistItem(text=text)
        ok = await self._modify(task_id, lambda task: {"checklist": [*task.checklist, item]})
        return item.id if ok else None

    async def toggle_checklist_item(self, task_id: int, item_id: str) -> bool:
        def transform(task: Task) -> Optional[Dict[str, Any]]:
            if not any(i.id == item_id for i in task.checklist):
                return None
            return {"checklist": [
                i.model_copy(update={"done": not i.done}) if i.id == item_id else i for i in task.checklist
            ]}
        return await self._modify(task_id, transform)

    async def update_checklist_item(self, task_id: int, item_id: str, text: str) -> bool:
        def transform(task: Task) -> Optional[Dict[str, Any]]:
            if not any(i.id == item_id for i in task.checklist):
                return None
            return {"checklist": [
                i.model_copy(update={"text": text}) if i.id == item_id else i for i in task.checklist
            ]}
        return await self._modify(task_id, transform)

    async def remove_checklist_item(self, task_id: int, item_id: str) -> bool:
        def transform(task: Task) -> Optional[Dict[str, Any]]:
            remaining = [i for i in task.checklist if i.id != item_id]
            if len(remaining) == len(task.checklist):
                return None
            return {"checklist": remaining}
        return await self._modify(task_id, transform)

    async def move_checklist_item(self, task_id: int, source_index: int, destination_index: int) -> bool:
        """Reorder the checklist; raises ReorderError for out-of-range indices."""
        def transform(task: Task) -> Optional[Dict[str, Any]]:
            if source_index == destination_index:
                return None
            return {"checklist": move_item(task.checklist, source_index, destination_index)}
        return await self._modify(task_id, transform)

    async def add_comment(self, task_id: int, text: str) -> Optional[str]:
        text = text.strip()
        if not text:
            return None
        comment = Comment(text=text)
        ok = await self._modify(task_id, lambda task: {"comments": [*task.comments, comment]})
        return comment.id if ok else None

    async def remove_comment(self, task_id: int, comment_id: str) -> bool:
        def transform(task: Task) -> Optional[Dict[str, Any]]:
            remaining = [c for c in task.comments if c.id != comment_id]
            if len(remaining) == len(task.comments):
                return None
            return {"comments": remaining}
        return await self._modify(task_id, transform)

    async def add_attachment(self, task_id: int, name: str, data: bytes, type: str = "") -> Optional[str]:
        """Attach a file to a task. Returns the attachment id."""
        attachment = Attachment(name=name, type=type, size=len(data), uploaded_at=utc_now(), data=data)
        ok = await self._modify(task_id, lambda task: {"attachments": [*task.attachments, attachment]})
        return attachment.id if ok else None

    async def remove_attachment(self, task_id: int, attachment_id: str) -> bool:
        def transform(task: Task) -> Optional[Dict[str, Any]]:
            remaining = [a for a in task.attachments if a.id != attachment_id]
            if len(remaining) == len(task.attachments):
                return None
            return {"attachments": remaining}
        return await self._modify(task_id, transform)
