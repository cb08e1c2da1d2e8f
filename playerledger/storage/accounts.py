import logging
import time
from typing import List, Optional

import aiosqlite

from ._tx import Transactor

logger = logging.getLogger("storage")

_COLUMNS = (
    "wallet_address, parent_wallet_address, username, username_chosen, personal_best_score, "
    "current_allowance_limit_eth, current_allowance_period_seconds, allowance_period_start, "
    "allowance_spent_this_period_eth, created_at, updated_at"
)


def _row_to_account(row) -> dict:
    return {
        "wallet_address": row[0],
        "parent_wallet_address": row[1],
        "username": row[2],
        "username_chosen": bool(row[3]),
        "personal_best_score": row[4],
        "current_allowance_limit_eth": row[5],
        "current_allowance_period_seconds": row[6],
        "allowance_period_start": row[7],
        "allowance_spent_this_period_eth": row[8],
        "created_at": row[9],
        "updated_at": row[10],
    }


# Statement helpers run on a connection the caller has already scoped with
# Transactor.transaction() / reading().

async def fetch_account(db: aiosqlite.Connection, wallet_address: str) -> Optional[dict]:
    async with db.execute(
        f"SELECT {_COLUMNS} FROM accounts WHERE wallet_address = ?",
        (wallet_address,),
    ) as cursor:
        row = await cursor.fetchone()
    if row is None:
        return None
    return _row_to_account(row)


async def write_window(
    db: aiosqlite.Connection,
    wallet_address: str,
    period_start: float,
    spent_eth: float,
    limit_eth: float,
    period_seconds: int,
    now: float,
):
    await db.execute(
        "UPDATE accounts SET allowance_period_start = ?, allowance_spent_this_period_eth = ?, "
        "current_allowance_limit_eth = ?, current_allowance_period_seconds = ?, updated_at = ? "
        "WHERE wallet_address = ?",
        (period_start, spent_eth, limit_eth, period_seconds, now, wallet_address),
    )


async def write_spent(
    db: aiosqlite.Connection,
    wallet_address: str,
    new_total_eth: float,
    epsilon: float,
    now: float,
) -> bool:
    """Set the period total; refuses (returns False) a total above limit + epsilon."""
    cursor = await db.execute(
        "UPDATE accounts SET allowance_spent_this_period_eth = ?, updated_at = ? "
        "WHERE wallet_address = ? AND ? <= current_allowance_limit_eth + ?",
        (new_total_eth, now, wallet_address, new_total_eth, epsilon),
    )
    return cursor.rowcount == 1


async def raise_personal_best(
    db: aiosqlite.Connection, wallet_address: str, score: int, now: float
) -> bool:
    """Raise personal_best_score to ``score`` if it is higher. Never lowers it."""
    cursor = await db.execute(
        "UPDATE accounts SET personal_best_score = ?, updated_at = ? "
        "WHERE wallet_address = ? AND personal_best_score < ?",
        (score, now, wallet_address, score),
    )
    return cursor.rowcount == 1


class AccountRepo:
    """CRUD operations for the accounts table."""

    def __init__(self, db: aiosqlite.Connection, tx: Optional[Transactor] = None):
        self._db = db
        self._tx = tx or Transactor(db)

    async def get(self, wallet_address: str) -> Optional[dict]:
        async with self._tx.reading() as db:
            return await fetch_account(db, wallet_address)

    async def list_by_parent(self, parent_wallet_address: str) -> List[dict]:
        results = []
        async with self._tx.reading() as db:
            async with db.execute(
                f"SELECT {_COLUMNS} FROM accounts WHERE parent_wallet_address = ? "
                "ORDER BY created_at, rowid",
                (parent_wallet_address,),
            ) as cursor:
                async for row in cursor:
                    results.append(_row_to_account(row))
        return results

    async def upsert_provisioned(
        self,
        wallet_address: str,
        parent_wallet_address: Optional[str],
        username: str,
        limit_eth: float,
        period_seconds: int,
        now: Optional[float] = None,
    ) -> dict:
        """Create the account, or update name/parent and restart its allowance window."""
        now = time.time() if now is None else now
        async with self._tx.transaction() as db:
            await db.execute(
                "INSERT INTO accounts (wallet_address, parent_wallet_address, username, username_chosen, "
                "personal_best_score, current_allowance_limit_eth, current_allowance_period_seconds, "
                "allowance_period_start, allowance_spent_this_period_eth, created_at, updated_at) "
                "VALUES (?, ?, ?, 1, 0, ?, ?, ?, 0.0, ?, ?) "
                "ON CONFLICT(wallet_address) DO UPDATE SET "
                "parent_wallet_address = excluded.parent_wallet_address, "
                "username = excluded.username, "
                "username_chosen = 1, "
                "current_allowance_limit_eth = excluded.current_allowance_limit_eth, "
                "current_allowance_period_seconds = excluded.current_allowance_period_seconds, "
                "allowance_period_start = excluded.allowance_period_start, "
                "allowance_spent_this_period_eth = 0.0, "
                "updated_at = excluded.updated_at",
                (wallet_address, parent_wallet_address, username,
                 limit_eth, period_seconds, now, now, now),
            )
            return await fetch_account(db, wallet_address)

    async def create_if_absent(
        self,
        wallet_address: str,
        parent_wallet_address: Optional[str],
        username: str,
        limit_eth: float,
        period_seconds: int,
        now: Optional[float] = None,
    ) -> dict:
        """Insert a default account; an existing row is returned untouched."""
        now = time.time() if now is None else now
        async with self._tx.transaction() as db:
            cursor = await db.execute(
                "INSERT OR IGNORE INTO accounts (wallet_address, parent_wallet_address, username, "
                "username_chosen, personal_best_score, current_allowance_limit_eth, "
                "current_allowance_period_seconds, allowance_period_start, "
                "allowance_spent_this_period_eth, created_at, updated_at) "
                "VALUES (?, ?, ?, 0, 0, ?, ?, ?, 0.0, ?, ?)",
                (wallet_address, parent_wallet_address, username,
                 limit_eth, period_seconds, now, now, now),
            )
            if cursor.rowcount == 1:
                logger.info("Created default account %s", wallet_address)
            return await fetch_account(db, wallet_address)

    async def rename(self, wallet_address: str, username: str, now: Optional[float] = None) -> Optional[dict]:
        now = time.time() if now is None else now
        async with self._tx.transaction() as db:
            cursor = await db.execute(
                "UPDATE accounts SET username = ?, username_chosen = 1, updated_at = ? "
                "WHERE wallet_address = ?",
                (username, now, wallet_address),
            )
            if cursor.rowcount == 0:
                return None
            return await fetch_account(db, wallet_address)

    async def count(self) -> int:
        async with self._tx.reading() as db:
            async with db.execute("SELECT COUNT(*) FROM accounts") as cursor:
                row = await cursor.fetchone()
        return row[0] if row else 0
