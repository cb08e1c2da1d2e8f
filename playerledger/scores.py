"""
scores.py - Score ledger.

A submission reads the account, raises its personal best when beaten and
appends a score entry, all inside one BEGIN IMMEDIATE transaction. The entry
keeps the name the player submitted with, not a join on the current username.
"""

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, List

from playerledger.errors import NotFoundError
from playerledger.storage import fetch_account, insert_entry, raise_personal_best
from playerledger.validation import check_address, check_limit, check_score, check_user_name

if TYPE_CHECKING:
    from playerledger.storage import StorageManager

logger = logging.getLogger("scores")

DEFAULT_LEADERBOARD_LIMIT = 10
DEFAULT_HISTORY_LIMIT = 50


@dataclass
class ScoreResult:
    entry: dict
    account: dict
    is_new_personal_best: bool


class ScoreLedger:
    """Records score submissions and serves the leaderboard."""

    def __init__(self, storage: "StorageManager", clock: Callable[[], float] = time.time):
        self._storage = storage
        self._clock = clock

    async def submit(self, wallet_address: str, score: int, user_name: str) -> ScoreResult:
        wallet_address = check_address(wallet_address)
        score = check_score(score)
        user_name = check_user_name(user_name)

        async with self._storage.transaction() as db:
            acct = await fetch_account(db, wallet_address)
            if acct is None:
                raise NotFoundError("Player account not found or registered in the game system.")
            now = self._clock()
            is_new_best = score > acct["personal_best_score"]
            if is_new_best:
                await raise_personal_best(db, wallet_address, score, now)
            entry = await insert_entry(db, acct["wallet_address"], score, user_name, now=now)
            acct = await fetch_account(db, wallet_address)

        if is_new_best:
            logger.info("New personal best for %s: %d", wallet_address, score)
        else:
            logger.info("Score %d recorded for %s (best %d)",
                        score, wallet_address, acct["personal_best_score"])
        return ScoreResult(entry=entry, account=acct, is_new_personal_best=is_new_best)

    async def top_scores(self, limit: int = DEFAULT_LEADERBOARD_LIMIT) -> List[dict]:
        limit = check_limit(limit)
        entries = await self._storage.scores.top(limit)
        return [
            {"user_name": e["user_name"], "score": e["score"], "created_at": e["created_at"]}
            for e in entries
        ]

    async def history(self, wallet_address: str, limit: int = DEFAULT_HISTORY_LIMIT) -> List[dict]:
        wallet_address = check_address(wallet_address)
        limit = check_limit(limit)
        if await self._storage.accounts.get(wallet_address) is None:
            raise NotFoundError("Account not found")
        return await self._storage.scores.list_for_account(wallet_address, limit)
