"""
Pydantic models for the FocusFlow dataset, settings and export documents.

Attributes are snake_case in Python and camelCase in JSON (boardId,
labelIds, lastModified, ...); both spellings are accepted on input.
Attachment payloads are bytes in memory and data URLs in JSON.
"""

import time
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_serializer
from pydantic.alias_generators import to_camel

from .encoding import decode_data_url, encode_data_url

DATASET_VERSION = 1
EXPORT_FORMAT_VERSION = 1

M = TypeVar("M", bound="FocusFlowModel")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def now_iso() -> str:
    return utc_now().isoformat()


def _new_item_id() -> str:
    return str(uuid.uuid4())


def _epoch_ms() -> int:
    return int(time.time() * 1000)


class FocusFlowModel(BaseModel):
    """Base model: camelCase aliases, population by either name."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Board(FocusFlowModel):
    id: int
    title: str = "New Board"
    created_at: datetime = Field(default_factory=utc_now)


class Column(FocusFlowModel):
    id: int
    board_id: int
    title: str = "New Column"
    order: int = Field(0, ge=0)


class Label(FocusFlowModel):
    id: int
    name: str
    color: str = "#6366f1"


class ChecklistItem(FocusFlowModel):
    id: str = Field(default_factory=_new_item_id)
    text: str
    done: bool = False


class Comment(FocusFlowModel):
    id: str = Field(default_factory=_new_item_id)
    text: str
    created_at: int = Field(default_factory=_epoch_ms, description="Epoch milliseconds")


class Attachment(FocusFlowModel):
    """File attached to a task; ``data`` holds the raw bytes."""

    id: str = Field(default_factory=_new_item_id)
    name: str
    type: str = ""
    size: int = Field(0, ge=0)
    uploaded_at: datetime = Field(default_factory=utc_now)
    data: bytes = b""

    @field_validator("data", mode="before")
    @classmethod
    def decode_text_payload(cls, v):
        """Text payloads are data URLs; everything else must already be binary."""
        if v is None:
            return b""
        if isinstance(v, str):
            return decode_data_url(v).data
        if isinstance(v, (bytearray, memoryview)):
            return bytes(v)
        return v

    @field_serializer("data", when_used="json")
    def encode_payload(self, v: bytes) -> str:
        return encode_data_url(v, self.type)


class Task(FocusFlowModel):
    id: int
    board_id: int
    column_id: int
    title: str = "New Task"
    description: str = ""
    urgency: int = Field(0, ge=0, le=10)
    importance: int = Field(0, ge=0, le=10)
    label_ids: List[int] = Field(default_factory=list)
    checklist: List[ChecklistItem] = Field(default_factory=list)
    comments: List[Comment] = Field(default_factory=list)
    attachments: List[Attachment] = Field(default_factory=list)
    order: int = Field(0, ge=0)


class Dataset(FocusFlowModel):
    """The whole persisted document: four collections plus metadata."""

    boards: List[Board] = Field(default_factory=list)
    columns: List[Column] = Field(default_factory=list)
    labels: List[Label] = Field(default_factory=list)
    tasks: List[Task] = Field(default_factory=list)
    version: int = DATASET_VERSION
    last_modified: str = Field(default_factory=now_iso)


COLLECTIONS = ("boards", "columns", "labels", "tasks")


class Theme(str, Enum):
    DARK = "dark"
    LIGHT = "light"


class WindowBounds(FocusFlowModel):
    width: int = 1200
    height: int = 800
    x: Optional[int] = None
    y: Optional[int] = None

    @model_serializer(mode="wrap")
    def omit_unset_position(self, handler):
        data = handler(self)
        return {k: v for k, v in data.items() if not (k in ("x", "y") and v is None)}


class Settings(FocusFlowModel):
    window_bounds: WindowBounds = Field(default_factory=WindowBounds)
    last_opened_board_id: Optional[int] = None
    theme: Theme = Theme.DARK


def resolve_changes(model: Type[BaseModel], changes: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Map a partial-update mapping onto model field names.

    Accepts both attribute names and JSON aliases. ``id`` is never updatable
    and is dropped.

    Raises:
        ValueError: If a key names no field of the model
    """
    by_alias = {info.alias: name for name, info in model.model_fields.items() if info.alias}
    resolved: Dict[str, Any] = {}
    for key, value in changes.items():
        name = key if key in model.model_fields else by_alias.get(key)
        if name is None:
            raise ValueError(f"Unknown {model.__name__} field: {key}")
        if name == "id":
            continue
        resolved[name] = value
    return resolved


def merge(entity: M, changes: Mapping[str, Any]) -> M:
    """Return a validated copy of ``entity`` with ``changes`` applied."""
    fields = entity.model_dump()
    fields.update(resolve_changes(type(entity), changes))
    return type(entity).model_validate(fields)
