"""
FolioScan Backend — Application Package Initializer
====================================================

What: Marks the `folioscan` directory as a Python package.
Who:  Used by uvicorn (`folioscan.main:app`), Alembic and pytest.

Architecture Note:
    The backend is layered:

    ┌─────────────────────────────────────┐
    │        Routes (API Layer)           │  ← HTTP decoding, auth header
    ├─────────────────────────────────────┤
    │  Folder / Note / Search services    │  ← operation surface, deadlines
    ├─────────────────────────────────────┤
    │  Cascade engine │ Blob store        │  ← tree walk, binary backends
    ├─────────────────────────────────────┤
    │       Resource repository           │  ← owner-scoped CRUD
    ├─────────────────────────────────────┤
    │   Database (async SQLAlchemy)       │  ← folders / notes tables
    └─────────────────────────────────────┘

    Everything below the routes is constructed once at startup and passed
    down explicitly (see services/container.py).
"""

__version__ = "1.0.0"
