"""Schema evolution guard for the sensor_data table.

ensure_schema() is the single entry point.  Stores written by this build
carry an explicit version marker (SQLite ``PRAGMA user_version``).  Stores
without one are sniffed column by column and brought up to date:

    1. obsolete single-value layout → dropped and recreated (destructive)
    2. missing additive columns     → ALTER TABLE ... ADD COLUMN with defaults
    3. no table                     → created fresh
    4. current                      → left alone

Anything else fails loudly with SchemaMismatchUnrecoverable.  Revisions after
the single destructive cut are strictly additive.
"""

from __future__ import annotations

import logging
import sqlite3
from enum import Enum

from leakwatch.domain.errors import SchemaMismatchUnrecoverable

logger = logging.getLogger(__name__)

TABLE_NAME = "sensor_data"

# 1: single-value layout, 2: three-sensor layout, 3: burst columns added.
SCHEMA_VERSION = 3

CREATE_TABLE_SQL = f"""
CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    sensor1 REAL NOT NULL,
    sensor2 REAL NOT NULL,
    sensor3 REAL NOT NULL,
    leak_confirmed INTEGER DEFAULT 0,
    burst_confirmed INTEGER DEFAULT 0,
    leak_location TEXT,
    confidence REAL DEFAULT 0,
    correlation_score REAL DEFAULT 0,
    stability_score REAL DEFAULT 0,
    environmental_noise INTEGER DEFAULT 0,
    active_sensors INTEGER DEFAULT 0,
    burst_type TEXT DEFAULT 'NORMAL FLOW',
    burst_intensity REAL DEFAULT 0,
    burst_dismissed INTEGER DEFAULT 0,
    timestamp DATETIME DEFAULT CURRENT_TIMESTAMP
)
"""

# Columns that identify the superseded single-value layout.
LEGACY_VALUE_COLUMNS = frozenset({"value", "sensor_value"})

BASE_COLUMNS = frozenset({
    "id",
    "sensor1",
    "sensor2",
    "sensor3",
    "leak_confirmed",
    "burst_confirmed",
    "leak_location",
    "confidence",
    "correlation_score",
    "stability_score",
    "environmental_noise",
    "active_sensors",
    "timestamp",
})

# Added after the three-sensor cut, in the order they were introduced.
ADDITIVE_COLUMNS: tuple[tuple[str, str], ...] = (
    ("burst_type", "TEXT DEFAULT 'NORMAL FLOW'"),
    ("burst_intensity", "REAL DEFAULT 0"),
    ("burst_dismissed", "INTEGER DEFAULT 0"),
)

CURRENT_COLUMNS = BASE_COLUMNS | {name for name, _ in ADDITIVE_COLUMNS}


class SchemaAction(str, Enum):
    """What ensure_schema() did to the store."""

    CREATED = "created"
    REBUILT = "rebuilt"
    EXTENDED = "extended"
    CURRENT = "current"


# ── Inspection ───────────────────────────────────────────────────────────────

def table_columns(conn: sqlite3.Connection) -> set[str]:
    """Column names of sensor_data; empty when the table does not exist."""
    rows = conn.execute(f"PRAGMA table_info({TABLE_NAME})").fetchall()
    return {row[1] for row in rows}


def schema_version(conn: sqlite3.Connection) -> int:
    return conn.execute("PRAGMA user_version").fetchone()[0]


def is_legacy_layout(columns: set[str]) -> bool:
    return bool(columns & LEGACY_VALUE_COLUMNS) and "sensor1" not in columns


# ── Entry point ──────────────────────────────────────────────────────────────

def ensure_schema(conn: sqlite3.Connection) -> SchemaAction:
    """Bring the store to the current layout, or raise.

    Runs in a single transaction so a failed migration leaves the store
    exactly as it was.
    """
    with conn:
        conn.execute("BEGIN")
        action = _migrate(conn)
        conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")

    if action == SchemaAction.CURRENT:
        logger.debug("Schema v%d already current", SCHEMA_VERSION)
    else:
        logger.info("Schema %s at v%d", action.value, SCHEMA_VERSION)
    return action


def _migrate(conn: sqlite3.Connection) -> SchemaAction:
    """Must be called inside the ensure_schema() transaction."""
    version = schema_version(conn)
    columns = table_columns(conn)

    if version > SCHEMA_VERSION:
        raise SchemaMismatchUnrecoverable(
            f"store is at schema v{version}, this build only knows v{SCHEMA_VERSION}",
            columns,
        )

    if is_legacy_layout(columns):
        logger.warning(
            "Detected obsolete single-value layout; dropping %s and its rows",
            TABLE_NAME,
        )
        conn.execute(f"DROP TABLE {TABLE_NAME}")
        conn.execute(CREATE_TABLE_SQL)
        return SchemaAction.REBUILT

    if not columns:
        logger.info("No %s table found, creating it", TABLE_NAME)
        conn.execute(CREATE_TABLE_SQL)
        return SchemaAction.CREATED

    missing_base = BASE_COLUMNS - columns
    if missing_base:
        raise SchemaMismatchUnrecoverable(
            f"{TABLE_NAME} is missing base columns {sorted(missing_base)}",
            columns,
        )

    added = []
    for name, definition in ADDITIVE_COLUMNS:
        if name not in columns:
            conn.execute(f"ALTER TABLE {TABLE_NAME} ADD COLUMN {name} {definition}")
            added.append(name)

    if added:
        logger.info("Added column(s) %s to %s", ", ".join(added), TABLE_NAME)
        return SchemaAction.EXTENDED
    return SchemaAction.CURRENT
