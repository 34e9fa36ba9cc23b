"""
Dataset and settings stores.

DatasetStore holds the single authoritative in-memory copy of the dataset,
loaded lazily from a StorageBackend and flushed back after every committed
mutation. Repositories share the store by reference, so a write through one
repository is immediately visible to the others.

Concurrency model: one logical writer. ``load()`` is single-flight, but
mutations are not serialized against each other; two interleaved
transactions race on the shared copy and the last flush wins.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from pydantic import ValidationError

from .models import COLLECTIONS, Dataset, Settings, now_iso, resolve_changes
from .storage import DATA_KEY, SETTINGS_KEY, StorageBackend

logger = logging.getLogger(__name__)


class DatasetNotLoadedError(RuntimeError):
    """Raised when the dataset is read before ``DatasetStore.load()``."""


class Transaction:
    """Handle yielded by ``DatasetStore.transaction()``."""

    def __init__(self, data: Dataset):
        self.data = data
        self.dirty = False
        self.committed = False

    def mark_dirty(self) -> None:
        self.dirty = True


class DatasetStore:
    """
    In-memory cache of the full dataset with transactional flush.

    Args:
        backend: StorageBackend holding the dataset document
    """

    def __init__(self, backend: StorageBackend):
        self.backend = backend
        self._data: Optional[Dataset] = None
        self._load_lock = asyncio.Lock()

    @property
    def is_loaded(self) -> bool:
        return self._data is not None

    @property
    def data(self) -> Dataset:
        """The loaded dataset. Synchronous; never touches the backend."""
        if self._data is None:
            raise DatasetNotLoadedError("Dataset not loaded; await DatasetStore.load() first")
        return self._data

    async def load(self) -> Dataset:
        """
        Return the cached dataset, reading it from the backend on first use.

        Never raises: read or parse failures are logged and an empty default
        dataset is used instead.
        """
        if self._data is not None:
            return self._data
        async with self._load_lock:
            if self._data is None:
                self._data = await self._read_dataset()
        return self._data

    async def _read_dataset(self) -> Dataset:
        try:
            text = await self.backend.read(DATA_KEY)
        except Exception as e:
            logger.error(f"Failed to read dataset, starting empty: {e}")
            return Dataset()
        if not text:
            logger.info("No stored dataset found, starting empty")
            return Dataset()
        try:
            dataset = Dataset.model_validate_json(text)
        except ValidationError as e:
            logger.error(f"Stored dataset is invalid, starting empty: {e}")
            return Dataset()
        logger.debug(
            f"Loaded dataset: {len(dataset.boards)} boards, {len(dataset.columns)} columns, "
            f"{len(dataset.labels)} labels, {len(dataset.tasks)} tasks"
        )
        return dataset

    async def flush(self) -> bool:
        """
        Stamp ``last_modified`` and write the dataset to the backend.

        Returns:
            True if the backend accepted the write, False otherwise
        """
        data = self.data
        data.last_modified = now_iso()
        try:
            text = data.model_dump_json(by_alias=True, indent=2)
            ok = await self.backend.write(DATA_KEY, text)
        except Exception as e:
            logger.error(f"Failed to flush dataset: {e}")
            return False
        if not ok:
            logger.error("Storage backend rejected dataset flush")
        return ok

    def _restore(self, snapshot: Dataset) -> None:
        data = self.data
        for name in Dataset.model_fields:
            setattr(data, name, getattr(snapshot, name))

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Transaction]:
        """
        Group in-memory mutations into one flush.

        The body mutates ``txn.data`` and calls ``txn.mark_dirty()`` when
        something changed. On exit a dirty transaction is flushed once. If
        the body raises or the flush fails, the dataset is restored to its
        state at the start of the transaction; body exceptions propagate,
        flush failures leave ``txn.committed`` False.
        """
        data = await self.load()
        snapshot = data.model_copy(deep=True)
        txn = Transaction(data)
        try:
            yield txn
        except BaseException:
            self._restore(snapshot)
            raise
        if not txn.dirty:
            return
        if await self.flush():
            txn.committed = True
        else:
            self._restore(snapshot)
            logger.warning("Flush failed, in-memory dataset rolled back")

    def replace(self, txn: Transaction, dataset: Dataset) -> None:
        """Swap all four collections for those of ``dataset`` inside ``txn``."""
        for name in COLLECTIONS:
            setattr(txn.data, name, list(getattr(dataset, name)))
        txn.data.version = dataset.version
        txn.mark_dirty()


class SettingsStore:
    """Cached settings document with defaults on absence or corruption."""

    def __init__(self, backend: StorageBackend):
        self.backend = backend
        self._settings: Optional[Settings] = None

    async def load(self) -> Settings:
        if self._settings is not None:
            return self._settings
        try:
            text = await self.backend.read(SETTINGS_KEY)
            self._settings = Settings.model_validate_json(text) if text else Settings()
        except Exception as e:
            logger.warning(f"Failed to load settings, using defaults: {e}")
            self._settings = Settings()
        return self._settings

    async def replace(self, settings: Settings) -> bool:
        """Write ``settings``; the cache only changes if the write succeeds."""
        try:
            ok = await self.backend.write(SETTINGS_KEY, settings.model_dump_json(by_alias=True, indent=2))
        except Exception as e:
            logger.error(f"Failed to save settings: {e}")
            return False
        if ok:
            self._settings = settings
        else:
            logger.error("Storage backend rejected settings write")
        return ok

    async def update(self, **changes: Any) -> bool:
        current = await self.load()
        fields = current.model_dump()
        fields.update(resolve_changes(Settings, changes))
        return await self.replace(Settings.model_validate(fields))
