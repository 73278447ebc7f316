"""
EggTrack Backend — Application Package Initializer
===================================================

What: Marks the `eggtrack` directory as a Python package.
Who:  Imported by uvicorn (`eggtrack.main:app`), pytest, and every submodule.

Architecture Note:
    The backend is layered the same way top to bottom:

    ┌─────────────────────────────────────┐
    │     Routes + Pages (API Layer)      │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │  Services (store, allocator, ingest,│  ← Business rules
    │  renderers)                         │
    ├─────────────────────────────────────┤
    │        Schemas (Pydantic)           │  ← Entry model + API contracts
    ├─────────────────────────────────────┤
    │   Storage backends (blob / local)   │  ← One JSON document
    └─────────────────────────────────────┘

    The entire durable state is a single JSON array held by one backend.
    Every mutation reads the whole array, changes it in memory, and writes
    the whole array back.
"""

__version__ = "1.0.0"
