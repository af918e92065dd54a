"""
Versioned schema migrations.

Each migration brings the schema up by exactly one version inside its own
transaction. Startup applies only the migrations between the stored version
and SCHEMA_VERSION.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Callable

from ..config import GLOBAL_ALGO_VERSION, SCHEMA_VERSION
from ..exceptions import MigrationFailure, PersistenceFailure
from .connection import ConnectionManager
from . import schema


logger = logging.getLogger(__name__)


def get_schema_version(conn: sqlite3.Connection) -> int:
    """
    Read the stored schema version.

    Returns:
        Stored version, or 0 for a fresh database
    """
    table = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name='meta'"
    ).fetchone()
    if not table:
        return 0

    row = conn.execute(
        "SELECT value FROM meta WHERE key = ?", (schema.META_SCHEMA_VERSION,)
    ).fetchone()
    return int(row['value']) if row else 0


def _set_schema_version(conn: sqlite3.Connection, version: int) -> None:
    conn.execute(
        "INSERT OR REPLACE INTO meta (key, value) VALUES (?, ?)",
        (schema.META_SCHEMA_VERSION, str(version)),
    )


def _migrate_to_v1(conn: sqlite3.Connection) -> None:
    """Initial schema: meta, assets and duplicate groups."""
    conn.execute(schema.SQL_CREATE_META)
    conn.execute(schema.SQL_CREATE_ASSETS)
    conn.execute(schema.SQL_CREATE_DUP_GROUPS)
    conn.execute(schema.SQL_CREATE_DUP_MEMBERS)

    for index_sql in schema.SQL_CREATE_ASSETS_INDEXES:
        conn.execute(index_sql)
    for index_sql in schema.SQL_CREATE_DUP_MEMBERS_INDEXES:
        conn.execute(index_sql)

    conn.execute(
        "INSERT OR IGNORE INTO meta (key, value) VALUES (?, ?)",
        (schema.META_GLOBAL_ALGO_VERSION, str(GLOBAL_ALGO_VERSION)),
    )


def _migrate_to_v2(conn: sqlite3.Connection) -> None:
    """Enrichment support: face_count column and face tables."""
    try:
        conn.execute(schema.SQL_ADD_FACE_COUNT)
    except sqlite3.OperationalError as e:
        if 'duplicate column' not in str(e).lower():
            raise
        logger.debug("face_count column already exists")

    conn.execute(schema.SQL_CREATE_FACE_GROUPS)
    conn.execute(schema.SQL_CREATE_FACE_INSTANCES)
    for index_sql in schema.SQL_CREATE_FACE_INSTANCES_INDEXES:
        conn.execute(index_sql)


# Index i migrates from version i to version i + 1
MIGRATIONS: list[Callable[[sqlite3.Connection], None]] = [
    _migrate_to_v1,
    _migrate_to_v2,
]


def run_migrations(conn_mgr: ConnectionManager, target_version: int = SCHEMA_VERSION) -> int:
    """
    Bring the database to target_version.

    Args:
        conn_mgr: Connection manager of the database to migrate
        target_version: Version to migrate to (defaults to SCHEMA_VERSION)

    Returns:
        Number of migrations applied

    Raises:
        MigrationFailure: If a migration fails or the stored schema is newer
            than this code understands
    """
    try:
        with conn_mgr.connection() as conn:
            current = get_schema_version(conn)
    except (PersistenceFailure, sqlite3.Error, ValueError) as e:
        raise MigrationFailure(f"Could not read schema version: {e}") from e

    if current > SCHEMA_VERSION:
        raise MigrationFailure(
            f"Database schema version {current} is newer than supported version {SCHEMA_VERSION}"
        )

    applied = 0
    for version in range(current, target_version):
        migration = MIGRATIONS[version]
        logger.info(f"Running migration to V{version + 1}...")
        try:
            with conn_mgr.transaction() as conn:
                migration(conn)
                _set_schema_version(conn, version + 1)
        except (PersistenceFailure, sqlite3.Error) as e:
            raise MigrationFailure(f"Migration to V{version + 1} failed: {e}") from e
        applied += 1
        logger.info(f"Migration to V{version + 1} complete.")

    return applied


__all__ = ['MIGRATIONS', 'get_schema_version', 'run_migrations']
