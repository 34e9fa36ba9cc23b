"""
Import/Export Codec

Builds the portable JSON backup documents and turns imported documents back
into a validated Dataset. Three shapes are accepted on import:

- backup export:   {boards, columns, labels, tasks, exportDate, version}
- app-level export: {data: <dataset>, settings: <settings>, exportDate, appVersion}
- legacy:           bare boards/columns/tasks/labels arrays at the root

Validation is fail-fast and happens before anything touches the store; an
invalid document raises ImportValidationError and nothing is applied.
"""

import json
from pathlib import Path
from typing import Any, Dict, NamedTuple, Optional

from pydantic import ValidationError

from .models import COLLECTIONS, DATASET_VERSION, EXPORT_FORMAT_VERSION, Dataset, Settings, now_iso


class ImportValidationError(ValueError):
    """Raised when an import document has the wrong shape or content."""


class ImportPayload(NamedTuple):
    dataset: Dataset
    settings: Optional[Settings]


def _dump(model) -> Any:
    return model.model_dump(mode="json", by_alias=True)


def build_export_document(dataset: Dataset, export_date: Optional[str] = None) -> Dict[str, Any]:
    """Backup document with attachment payloads encoded as data URLs."""
    document = {name: [_dump(item) for item in getattr(dataset, name)] for name in COLLECTIONS}
    document["exportDate"] = export_date or now_iso()
    document["version"] = EXPORT_FORMAT_VERSION
    return document


def build_app_export(
    dataset: Dataset,
    settings: Settings,
    app_version: str,
    export_date: Optional[str] = None,
) -> Dict[str, Any]:
    """Application-level export: dataset and settings in one envelope."""
    return {
        "data": _dump(dataset),
        "settings": _dump(settings),
        "exportDate": export_date or now_iso(),
        "appVersion": app_version,
    }


def _check_unique_ids(dataset: Dataset) -> None:
    for name in COLLECTIONS:
        seen = set()
        for item in getattr(dataset, name):
            if item.id in seen:
                raise ImportValidationError(f"Invalid data format: duplicate id {item.id} in {name}")
            seen.add(item.id)


def normalize_import_document(document: Any) -> ImportPayload:
    """
    Validate an import document and convert it to the current shape.

    Args:
        document: Parsed JSON document in any accepted shape

    Returns:
        ImportPayload with the decoded Dataset and optional Settings

    Raises:
        ImportValidationError: For any structural or content problem
    """
    if not isinstance(document, dict):
        raise ImportValidationError("Invalid data format: expected an object")

    settings_raw = None
    version = DATASET_VERSION
    if document.get("data") is not None:
        payload = document["data"]
        settings_raw = document.get("settings")
        if not isinstance(payload, dict):
            raise ImportValidationError("Invalid data format: data must be an object")
        version = payload.get("version", DATASET_VERSION)
    elif any(document.get(name) is not None for name in COLLECTIONS):
        # Root-level "version" is the export format version, not the dataset's
        payload = document
    else:
        raise ImportValidationError("No valid data found in import file")

    for name in COLLECTIONS:
        value = payload.get(name)
        if value is not None and not isinstance(value, list):
            raise ImportValidationError(f"Invalid data format: {name} must be an array")

    normalized = {name: payload.get(name) or [] for name in COLLECTIONS}
    normalized["version"] = version
    try:
        dataset = Dataset.model_validate(normalized)
    except ValidationError as e:
        raise ImportValidationError(f"Invalid data format: {e}")
    _check_unique_ids(dataset)

    settings = None
    if settings_raw is not None:
        try:
            settings = Settings.model_validate(settings_raw)
        except ValidationError as e:
            raise ImportValidationError(f"Invalid settings: {e}")
    return ImportPayload(dataset=dataset, settings=settings)


def dumps_export(document: Dict[str, Any]) -> str:
    return json.dumps(document, indent=2)


def loads_import(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ImportValidationError(f"Import file is not valid JSON: {e}")


def export_to_file(path, document: Dict[str, Any]) -> Path:
    """Write an export document to ``path``, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(dumps_export(document), encoding="utf-8")
    return path


def read_import_file(path) -> Any:
    """
    Read and parse an import file.

    Raises:
        FileNotFoundError: If the file does not exist
        ImportValidationError: If the file is not valid JSON
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Import file not found: {path}")
    return loads_import(path.read_text(encoding="utf-8"))
