"""
Application facade for the FocusFlow data layer.

FocusFlowService wires one DatasetStore, SettingsStore and ChangeBus to the
four repositories and the reorder engine, and exposes the operations the UI
calls: CRUD, drag-and-drop, subscribe/unsubscribe, import/export, settings
and clear-all.
"""

import logging
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel

from . import __version__
from .codec import (
    build_app_export, build_export_document, export_to_file, normalize_import_document, read_import_file,
)
from .events import ChangeBus, ChangeEvent, Listener
from .models import COLLECTIONS, Dataset, Settings
from .reorder import ReorderEngine
from .repositories import BoardRepository, ColumnRepository, LabelRepository, TaskRepository
from .storage import StorageBackend
from .store import DatasetStore, SettingsStore

logger = logging.getLogger(__name__)


class ImportResult(BaseModel):
    """Outcome of an import; counts are those of the imported dataset."""

    success: bool
    boards: int = 0
    columns: int = 0
    labels: int = 0
    tasks: int = 0
    settings_imported: bool = False
    error: Optional[str] = None


class FocusFlowService:
    """
    Entry point used by the UI layer.

    Args:
        backend: StorageBackend for the dataset and settings documents
        app_version: Version string written into app-level exports
    """

    def __init__(self, backend: StorageBackend, app_version: str = __version__):
        self.backend = backend
        self.app_version = app_version
        self.store = DatasetStore(backend)
        self.settings_store = SettingsStore(backend)
        self.bus = ChangeBus()
        self.boards = BoardRepository(self.store, self.bus)
        self.columns = ColumnRepository(self.store, self.bus)
        self.labels = LabelRepository(self.store, self.bus)
        self.tasks = TaskRepository(self.store, self.bus)
        self.reorder = ReorderEngine(self.boards, self.columns, self.tasks)

    async def open(self) -> Dataset:
        """Load dataset and settings; synchronous reads work afterwards."""
        dataset = await self.store.load()
        await self.settings_store.load()
        return dataset

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self.bus.subscribe(listener)

    # Import / export

    async def export_dataset(self) -> Dict[str, Any]:
        """Backup document: collections, exportDate and format version."""
        return build_export_document(await self.store.load())

    async def export_all(self) -> Dict[str, Any]:
        """App-level document: dataset, settings, exportDate, appVersion."""
        dataset = await self.store.load()
        settings = await self.settings_store.load()
        return build_app_export(dataset, settings, self.app_version)

    async def import_document(self, document: Any, include_settings: bool = True) -> ImportResult:
        """
        Replace the whole dataset with the contents of ``document``.

        Raises:
            ImportValidationError: Before any mutation, for an invalid document

        Returns:
            ImportResult; ``success`` is False if the flush failed, in which
            case the previous dataset is still in place
        """
        payload = normalize_import_document(document)

        async with self.store.transaction() as txn:
            self.store.replace(txn, payload.dataset)
        if not txn.committed:
            return ImportResult(success=False, error="Failed to write imported data")

        counts = {name: len(getattr(payload.dataset, name)) for name in COLLECTIONS}
        settings_imported = False
        if include_settings and payload.settings is not None:
            settings_imported = await self.settings_store.replace(payload.settings)
            if not settings_imported:
                logger.warning("Imported dataset committed but settings could not be written")

        logger.info(
            f"Imported {counts['boards']} boards, {counts['columns']} columns, "
            f"{counts['labels']} labels, {counts['tasks']} tasks"
        )
        self.bus.publish(ChangeEvent("imported", "dataset"))
        return ImportResult(success=True, settings_imported=settings_imported, **counts)

    async def export_to_file(self, path, full: bool = False) -> Path:
        document = await (self.export_all() if full else self.export_dataset())
        return export_to_file(path, document)

    async def import_from_file(self, path, include_settings: bool = True) -> ImportResult:
        return await self.import_document(read_import_file(path), include_settings=include_settings)

    async def clear_all_data(self) -> bool:
        """Replace the dataset with an empty one in a single flush."""
        async with self.store.transaction() as txn:
            self.store.replace(txn, Dataset())
        if txn.committed:
            self.bus.publish(ChangeEvent("cleared", "dataset"))
        return txn.committed

    # Settings

    async def get_settings(self) -> Settings:
        return await self.settings_store.load()

    async def update_settings(self, **changes: Any) -> bool:
        return await self.settings_store.update(**changes)
