"""
Change notification bus.

Observers subscribe to learn that the dataset changed and should be re-read.
Every committed logical operation publishes exactly one ChangeEvent;
delivery is synchronous, in registration order, and a failing listener never
prevents delivery to the others.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Tuple

from .models import now_iso

logger = logging.getLogger(__name__)

Listener = Callable[["ChangeEvent"], None]


@dataclass(frozen=True)
class ChangeEvent:
    """
    One committed change to the dataset.

    Attributes:
        type: created, updated, deleted, bulk_updated, imported or cleared
        entity: board, column, label, task or dataset
        ids: Ids of the entities directly touched (cascaded rows excluded)
    """
    type: str
    entity: str
    ids: Tuple[int, ...] = ()
    timestamp: str = field(default_factory=now_iso)


class ChangeBus:
    """Publish/subscribe registry for dataset change listeners."""

    def __init__(self):
        self._listeners: List[Listener] = []

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register ``listener`` and return a function that unregisters it.

        The returned unsubscribe function is idempotent.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def publish(self, event: ChangeEvent) -> None:
        """Deliver ``event`` to every listener registered at call time."""
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(f"Change listener failed for {event.entity}.{event.type}")
