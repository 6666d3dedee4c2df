"""SQLite-backed, append-only store of sensor observations.

Design notes:
    - An asyncio.Lock guards the single connection so concurrent request
      handlers and the alert poller never interleave on it.
    - sqlite3 calls run directly on the event loop.  Statements are
      single-row or bounded by a small LIMIT against a local file, so each
      one blocks the loop only briefly, and reads queue behind appends.
    - Every append runs in its own transaction; readers observe either the
      state before or after it, never a partial row.
    - Rows are immutable except burst_dismissed, which is only ever set on
      the row with the highest id.
    - The store does NOT decide what a reading means.  Status and alerting
      live in leakwatch.core.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from collections.abc import Callable, Mapping
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from leakwatch.domain.enums import BurstType
from leakwatch.domain.errors import InvalidInput, StorageFailure
from leakwatch.domain.observation import Observation, ObservationInput
from leakwatch.foundation.clock import ensure_utc, utc_now
from leakwatch.store.schema import TABLE_NAME, SchemaAction, ensure_schema

logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"

_INSERT_SQL = f"""
INSERT INTO {TABLE_NAME} (
    sensor1, sensor2, sensor3,
    leak_confirmed, burst_confirmed,
    leak_location, confidence,
    correlation_score, stability_score,
    environmental_noise, active_sensors,
    burst_type, burst_intensity, burst_dismissed,
    timestamp
) VALUES (
    :sensor1, :sensor2, :sensor3,
    :leak_confirmed, :burst_confirmed,
    :leak_location, :confidence,
    :correlation_score, :stability_score,
    :environmental_noise, :active_sensors,
    :burst_type, :burst_intensity, 0,
    :timestamp
)
"""


class ReadingStore:
    """Async-safe append-only log of observations.

    Args:
        path: SQLite database file, or ``":memory:"``.
        clock: Source of insert timestamps; injectable for tests.
    """

    def __init__(
        self,
        path: str | Path = MEMORY_PATH,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._path = str(path)
        self._clock = clock
        self._lock = asyncio.Lock()
        self._conn: sqlite3.Connection | None = None

    # ── Lifecycle ────────────────────────────────────────────────────────

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def open(self) -> SchemaAction | None:
        """Connect and run the schema guard.  Idempotent.

        Raises SchemaMismatchUnrecoverable if the store cannot be used.
        """
        if self._conn is not None:
            return None

        if self._path != MEMORY_PATH:
            Path(self._path).parent.mkdir(parents=True, exist_ok=True)
        try:
            conn = sqlite3.connect(self._path, check_same_thread=False)
        except sqlite3.Error as exc:
            raise StorageFailure(f"cannot open store at {self._path}: {exc}") from exc
        conn.row_factory = sqlite3.Row

        try:
            if self._path != MEMORY_PATH:
                conn.execute("PRAGMA journal_mode=WAL")
            action = ensure_schema(conn)
        except sqlite3.Error as exc:
            conn.close()
            raise StorageFailure(f"cannot prepare store at {self._path}: {exc}") from exc
        except Exception:
            conn.close()
            raise

        self._conn = conn
        logger.info("Reading store open at %s (schema %s)", self._path, action.value)
        return action

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.info("Reading store at %s closed", self._path)

    # ── Public API ───────────────────────────────────────────────────────

    async def append(self, reading: ObservationInput | Mapping[str, Any]) -> int:
        """Validate *reading*, insert it, and return its assigned id."""
        if not isinstance(reading, ObservationInput):
            try:
                reading = ObservationInput.model_validate(reading)
            except ValidationError as exc:
                raise InvalidInput(_describe(exc)) from exc

        params = _to_row_params(reading, self._clock())
        async with self._lock:
            conn = self._require_conn()
            try:
                with conn:
                    cur = conn.execute(_INSERT_SQL, params)
            except sqlite3.Error as exc:
                logger.error("Insert into %s failed: %s", TABLE_NAME, exc)
                raise StorageFailure(f"insert failed: {exc}") from exc
            row_id = cur.lastrowid

        logger.debug("Appended observation %d (burst_type=%s)", row_id, reading.burst_type.value)
        return row_id

    async def latest(self) -> Observation | None:
        rows = await self._query(
            f"SELECT * FROM {TABLE_NAME} ORDER BY id DESC LIMIT 1",
        )
        return _row_to_observation(rows[0]) if rows else None

    async def recent(self, n: int) -> list[Observation]:
        """Up to *n* most recent observations, oldest first."""
        if n <= 0:
            return []
        rows = await self._query(
            f"SELECT * FROM {TABLE_NAME} ORDER BY id DESC LIMIT ?",
            (n,),
        )
        # The scan runs newest-first; callers want chronological order.
        return [_row_to_observation(row) for row in reversed(rows)]

    async def count(self) -> int:
        rows = await self._query(f"SELECT COUNT(*) FROM {TABLE_NAME}")
        return int(rows[0][0])

    async def mark_latest_dismissed(self) -> bool:
        """Flag the newest row as dismissed.

        Returns True if a row was flagged, False if the store is empty.
        """
        async with self._lock:
            conn = self._require_conn()
            try:
                with conn:
                    cur = conn.execute(
                        f"UPDATE {TABLE_NAME} SET burst_dismissed = 1 "
                        f"WHERE id = (SELECT MAX(id) FROM {TABLE_NAME})"
                    )
            except sqlite3.Error as exc:
                logger.error("Dismissal update on %s failed: %s", TABLE_NAME, exc)
                raise StorageFailure(f"dismissal update failed: {exc}") from exc
            return cur.rowcount > 0

    # ── Internals ────────────────────────────────────────────────────────

    async def _query(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        async with self._lock:
            conn = self._require_conn()
            try:
                return conn.execute(sql, params).fetchall()
            except sqlite3.Error as exc:
                logger.error("Query on %s failed: %s", TABLE_NAME, exc)
                raise StorageFailure(f"query failed: {exc}") from exc

    def _require_conn(self) -> sqlite3.Connection:
        """Must be called while holding self._lock."""
        if self._conn is None:
            raise StorageFailure("reading store is not open")
        return self._conn


# ── Row mapping ──────────────────────────────────────────────────────────────

def _describe(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "payload"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


def _to_row_params(reading: ObservationInput, now: datetime) -> dict[str, Any]:
    sensor1, sensor2, sensor3 = reading.sensor_values
    return {
        "sensor1": sensor1,
        "sensor2": sensor2,
        "sensor3": sensor3,
        "leak_confirmed": int(reading.leak_confirmed),
        "burst_confirmed": int(reading.burst_confirmed),
        "leak_location": reading.leak_location,
        "confidence": reading.confidence,
        "correlation_score": reading.correlation_score,
        "stability_score": reading.stability_score,
        "environmental_noise": int(reading.environmental_noise),
        "active_sensors": reading.active_sensors,
        "burst_type": reading.burst_type.value,
        "burst_intensity": reading.burst_intensity,
        # Same textual layout as SQLite's CURRENT_TIMESTAMP, with milliseconds.
        "timestamp": ensure_utc(now).strftime("%Y-%m-%d %H:%M:%S.%f")[:-3],
    }


def _parse_burst_type(raw: Any) -> BurstType:
    if not raw:
        return BurstType.NORMAL_FLOW
    label = BurstType.from_label(raw)
    if label is None:
        logger.warning("Unknown stored burst_type %r, reading it as NORMAL FLOW", raw)
        return BurstType.NORMAL_FLOW
    return label


def _parse_timestamp(raw: Any) -> datetime:
    if isinstance(raw, datetime):
        return ensure_utc(raw)
    # Stored timestamps are UTC without an offset.
    return ensure_utc(datetime.fromisoformat(str(raw)))


def _sensor(raw: Any) -> int | float:
    if isinstance(raw, float) and raw.is_integer():
        return int(raw)
    if not isinstance(raw, (int, float)) or isinstance(raw, bool):
        raise TypeError(f"sensor value {raw!r} is not numeric")
    return raw


def _row_to_observation(row: sqlite3.Row) -> Observation:
    """Rebuild a stored row without re-applying uplink constraints.

    Rows written by older builds may hold values the uplink no longer
    accepts (long locations, negative intensities); they are read back as
    stored.  A row that cannot be decoded at all raises StorageFailure.
    """
    try:
        fields = {
            "id": row["id"],
            "sensor_values": (_sensor(row["sensor1"]), _sensor(row["sensor2"]), _sensor(row["sensor3"])),
            "leak_confirmed": bool(row["leak_confirmed"]),
            "burst_confirmed": bool(row["burst_confirmed"]),
            "leak_location": row["leak_location"] or None,
            "confidence": float(row["confidence"] or 0.0),
            "correlation_score": float(row["correlation_score"] or 0.0),
            "stability_score": float(row["stability_score"] or 0.0),
            "environmental_noise": bool(row["environmental_noise"]),
            "active_sensors": int(row["active_sensors"] or 0),
            "burst_type": _parse_burst_type(row["burst_type"]),
            "burst_intensity": float(row["burst_intensity"] or 0.0),
            "burst_dismissed": bool(row["burst_dismissed"]),
            "timestamp": _parse_timestamp(row["timestamp"]),
        }
    except (TypeError, ValueError) as exc:
        logger.error("Undecodable row %s in %s: %s", row["id"], TABLE_NAME, exc)
        raise StorageFailure(f"row {row['id']} cannot be decoded: {exc}") from exc
    return Observation.model_construct(**fields)
