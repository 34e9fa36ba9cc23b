"""
FocusFlow - personal kanban board data layer.

Boards contain ordered columns, columns contain ordered tasks. This package
stores the whole dataset as one JSON document, keeps the dense ``order``
invariants across reorders and moves, cascades deletes, and imports/exports
portable backups.

Components:
    models.py       - Pydantic entity and document models
    encoding.py     - Attachment payload text encoding (data URLs)
    storage.py      - Key/value storage backends (file, memory)
    store.py        - In-memory dataset cache with transactional flush
    events.py       - Change notification bus
    repositories.py - Board/Column/Label/Task repositories
    reorder.py      - Drag-and-drop reorder planning and application
    codec.py        - Import/export document handling
    matrix.py       - Urgency/importance quadrant grouping
    service.py      - Application facade used by the UI
    config.py       - Configuration loading (YAML + environment)
    cli.py          - Click command line
"""

__version__ = "1.0.0"
