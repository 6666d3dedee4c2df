"""Database reset tool.

Deletes the SQLite file, recreates the current layout and optionally seeds
one normal-flow sample reading so the dashboard has something to show.

Usage:
    leakwatch-reset-db [--path data/leakwatch.db] [--seed]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path

from leakwatch.config import settings
from leakwatch.domain.observation import ObservationInput
from leakwatch.store.reading_store import ReadingStore

logger = logging.getLogger(__name__)

SAMPLE_READING = ObservationInput(
    sensor_values=(150, 180, 120),
    leak_location="No leak detected",
    confidence=85.5,
    correlation_score=92,
    stability_score=88,
)


def reset_database(path: str | Path, seed: bool = False) -> int | None:
    """Recreate the store at *path*.  Returns the seeded row id, if any."""
    path = Path(path)
    for suffix in ("", "-wal", "-shm"):
        stale = path.with_name(path.name + suffix)
        if stale.exists():
            stale.unlink()
            logger.info("Deleted %s", stale)

    store = ReadingStore(path)
    store.open()
    try:
        if not seed:
            return None
        row_id = asyncio.run(store.append(SAMPLE_READING))
        logger.info("Seeded sample reading %d", row_id)
        return row_id
    finally:
        store.close()


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Recreate the leakwatch database")
    parser.add_argument("--path", default=settings.database_path, help="SQLite database file")
    parser.add_argument("--seed", action="store_true", help="insert one sample reading")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )
    reset_database(args.path, seed=args.seed)
    logger.info("Database at %s reset", args.path)


if __name__ == "__main__":
    main()
