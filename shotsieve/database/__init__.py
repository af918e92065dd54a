"""
SQLite persistence layer for ShotSieve.

Provides a versioned, migrated store for per-asset analysis results,
duplicate groups and scanner metadata, enabling:
- Incremental scans resumable from a persisted cursor
- Lazy invalidation by file signature and algorithm version
- Atomic multi-statement updates via transactions

Public API:
- ScanDatabase: Facade owning the connection and repositories
- ConnectionManager: Single shared connection with transactions
- run_migrations(): Bring a database to the current schema
"""

from __future__ import annotations

from .assets import AssetRepository
from .connection import ConnectionManager
from .core import ScanDatabase
from .faces import FaceRepository
from .groups import DupGroupRepository
from .meta import MetaRepository
from .migrations import run_migrations, get_schema_version


__all__ = [
    'ScanDatabase',
    'ConnectionManager',
    'AssetRepository',
    'DupGroupRepository',
    'MetaRepository',
    'FaceRepository',
    'run_migrations',
    'get_schema_version',
]
