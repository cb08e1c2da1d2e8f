import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import aiosqlite

from playerledger.errors import StoreUnavailableError

logger = logging.getLogger("storage")


class Transactor:
    """Owns the transaction scope on the shared connection.

    An sqlite connection carries a single transaction state, so concurrent
    coroutines take turns on it. Write scopes open with BEGIN IMMEDIATE, which
    also takes the database write lock against other processes using the same
    file. Driver failures leave as StoreUnavailableError.
    """

    def __init__(self, db: aiosqlite.Connection, lock: Optional[asyncio.Lock] = None):
        self._db = db
        self._lock = lock or asyncio.Lock()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        async with self._lock:
            try:
                await self._db.execute("BEGIN IMMEDIATE")
            except aiosqlite.Error as e:
                logger.exception("Could not open write transaction")
                raise StoreUnavailableError(f"Store unavailable: {e}") from e
            try:
                yield self._db
            except aiosqlite.Error as e:
                await self._rollback()
                logger.exception("Transaction failed")
                raise StoreUnavailableError(f"Store unavailable: {e}") from e
            except BaseException:
                await self._rollback()
                raise
            try:
                await self._db.commit()
            except aiosqlite.Error as e:
                await self._rollback()
                logger.exception("Commit failed")
                raise StoreUnavailableError(f"Store unavailable: {e}") from e

    @asynccontextmanager
    async def reading(self) -> AsyncIterator[aiosqlite.Connection]:
        async with self._lock:
            try:
                yield self._db
            except aiosqlite.Error as e:
                logger.exception("Read failed")
                raise StoreUnavailableError(f"Store unavailable: {e}") from e

    async def _rollback(self):
        try:
            await self._db.rollback()
        except aiosqlite.Error:
            logger.exception("Rollback failed")
