import logging
from typing import Optional

import aiosqlite

from ._migrate import run_migrations
from ._tx import Transactor
from .accounts import AccountRepo
from .scores import ScoreRepo

logger = logging.getLogger("storage")

DEFAULT_BUSY_TIMEOUT = 5.0


class StorageManager:
    """Owns the ledger database connection, its migrations and the account/score repos."""

    def __init__(self, db_path: str = "ledger.db", busy_timeout: float = DEFAULT_BUSY_TIMEOUT):
        self.db_path = db_path
        self.busy_timeout = busy_timeout
        self._db: Optional[aiosqlite.Connection] = None
        self.tx: Optional[Transactor] = None
        self.accounts: Optional[AccountRepo] = None
        self.scores: Optional[ScoreRepo] = None

    async def initialize(self):
        # busy_timeout bounds how long a write waits on another process's lock
        self._db = await aiosqlite.connect(self.db_path, timeout=self.busy_timeout)
        await self._db.execute("PRAGMA journal_mode=WAL")
        await self._db.execute("PRAGMA foreign_keys=ON")
        await run_migrations(self._db, logger)

        self.tx = Transactor(self._db)
        self.accounts = AccountRepo(self._db, self.tx)
        self.scores = ScoreRepo(self._db, self.tx)

        logger.info("Storage initialized: %s", self.db_path)

    def transaction(self):
        """Scope a multi-statement write; see Transactor.transaction."""
        return self.tx.transaction()

    async def close(self):
        if self._db:
            await self._db.close()
            self._db = None
            logger.info("Storage closed")
