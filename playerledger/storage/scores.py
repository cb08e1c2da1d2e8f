import time
from typing import List, Optional

import aiosqlite

from ._tx import Transactor


def _row_to_entry(row) -> dict:
    return {
        "id": row[0],
        "wallet_address": row[1],
        "score": row[2],
        "user_name": row[3],
        "created_at": row[4],
    }


async def insert_entry(
    db: aiosqlite.Connection,
    wallet_address: str,
    score: int,
    user_name: str,
    now: Optional[float] = None,
) -> dict:
    """Append a score entry on an already-scoped connection."""
    now = time.time() if now is None else now
    cursor = await db.execute(
        "INSERT INTO score_entries (wallet_address, score, user_name_at_submission, created_at) "
        "VALUES (?, ?, ?, ?)",
        (wallet_address, score, user_name, now),
    )
    return {
        "id": cursor.lastrowid,
        "wallet_address": wallet_address,
        "score": score,
        "user_name": user_name,
        "created_at": now,
    }


class ScoreRepo:
    """Read queries for the append-only score_entries table."""

    def __init__(self, db: aiosqlite.Connection, tx: Optional[Transactor] = None):
        self._db = db
        self._tx = tx or Transactor(db)

    async def top(self, limit: int = 10) -> List[dict]:
        results = []
        async with self._tx.reading() as db:
            async with db.execute(
                "SELECT id, wallet_address, score, user_name_at_submission, created_at "
                "FROM score_entries ORDER BY score DESC, id ASC LIMIT ?",
                (limit,),
            ) as cursor:
                async for row in cursor:
                    results.append(_row_to_entry(row))
        return results

    async def list_for_account(self, wallet_address: str, limit: int = 50) -> List[dict]:
        results = []
        async with self._tx.reading() as db:
            async with db.execute(
                "SELECT id, wallet_address, score, user_name_at_submission, created_at "
                "FROM score_entries WHERE wallet_address = ? ORDER BY id DESC LIMIT ?",
                (wallet_address, limit),
            ) as cursor:
                async for row in cursor:
                    results.append(_row_to_entry(row))
        return results

    async def count(self) -> int:
        async with self._tx.reading() as db:
            async with db.execute("SELECT COUNT(*) FROM score_entries") as cursor:
                row = await cursor.fetchone()
        return row[0] if row else 0
