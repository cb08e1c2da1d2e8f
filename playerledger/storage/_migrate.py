import logging
import time

import aiosqlite

from ._schema import SCHEMA_SQL, SCHEMA_VERSION

logger = logging.getLogger("storage")

# Statements that bring a database at version N-1 up to N. Fresh databases get
# the full SCHEMA_SQL and skip these.
_UPGRADES = {
    2: [
        "ALTER TABLE accounts ADD COLUMN username_chosen INTEGER NOT NULL DEFAULT 0",
        # v1 marked unset names only by the Player_ prefix
        "UPDATE accounts SET username_chosen = 1 "
        "WHERE username NOT LIKE 'Player\\_%' ESCAPE '\\'",
    ],
}


async def _schema_version(db: aiosqlite.Connection, log: logging.Logger) -> int:
    try:
        async with db.execute("SELECT MAX(version) FROM schema_version") as cursor:
            row = await cursor.fetchone()
    except aiosqlite.OperationalError:
        log.debug("No schema_version table yet; treating database as empty")
        return 0
    return row[0] if row and row[0] is not None else 0


async def run_migrations(db: aiosqlite.Connection, logger_override=None):
    log = logger_override or logger
    found = await _schema_version(db, log)
    if found >= SCHEMA_VERSION:
        log.debug("Database schema up to date (v%d)", found)
        return

    log.info("Migrating database from v%d to v%d", found, SCHEMA_VERSION)
    if found:
        for version in range(found + 1, SCHEMA_VERSION + 1):
            for stmt in _UPGRADES.get(version, []):
                try:
                    await db.execute(stmt)
                except aiosqlite.OperationalError:
                    # Step already applied by an interrupted earlier run
                    log.warning("v%d step skipped: %s", version, stmt.split(" WHERE")[0])
    # Creates missing tables and indexes; existing ones are left alone.
    await db.executescript(SCHEMA_SQL)

    await db.execute(
        "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
        (SCHEMA_VERSION, time.time()),
    )
    await db.commit()
    log.info("Migration complete (v%d)", SCHEMA_VERSION)
