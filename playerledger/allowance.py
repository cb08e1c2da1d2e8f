"""
allowance.py - Time-windowed spending allowance.

resolve_window() is the pure rollover rule: given the stored window fields and
the current time it returns the effective window. AllowanceManager applies it
to stored accounts inside a write transaction, so concurrent spends against
one wallet can never push the window total past its limit.
"""

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Optional

from playerledger.errors import LimitExceededError, NotFoundError
from playerledger.storage import fetch_account, write_spent, write_window
from playerledger.validation import check_address, check_amount

if TYPE_CHECKING:
    from playerledger.storage import StorageManager

logger = logging.getLogger("allowance")

DEFAULT_ALLOWANCE_ETH = 0.01
DEFAULT_ALLOWANCE_PERIOD_SECONDS = 86400

# Tolerance for every spend/limit comparison. A total may exceed the limit by
# at most this much, which absorbs binary floating-point rounding.
SPEND_EPSILON = 1e-9


@dataclass(frozen=True)
class ResolvedWindow:
    effective_start: float
    effective_spent: float
    limit: float
    period_seconds: int
    rolled: bool

    @property
    def expires_at(self) -> float:
        return self.effective_start + self.period_seconds

    @property
    def remaining(self) -> float:
        return max(self.limit - self.effective_spent, 0.0)

    def fits(self, amount: float) -> bool:
        return self.effective_spent + amount <= self.limit + SPEND_EPSILON


def resolve_window(
    stored_start: Optional[float],
    stored_period_seconds: Optional[int],
    stored_limit: Optional[float],
    stored_spent: Optional[float],
    now: float,
    default_limit: float = DEFAULT_ALLOWANCE_ETH,
    default_period_seconds: int = DEFAULT_ALLOWANCE_PERIOD_SECONDS,
) -> ResolvedWindow:
    """Map stored window state and ``now`` to the window in effect at ``now``."""
    if stored_start is None or stored_period_seconds is None or stored_limit is None:
        return ResolvedWindow(now, 0.0, default_limit, default_period_seconds, True)
    if now >= stored_start + stored_period_seconds:
        return ResolvedWindow(now, 0.0, stored_limit, stored_period_seconds, True)
    return ResolvedWindow(
        stored_start, stored_spent or 0.0, stored_limit, stored_period_seconds, False,
    )


def resolve_account_window(acct: dict, now: float, default_limit: float,
                           default_period_seconds: int) -> ResolvedWindow:
    return resolve_window(
        acct["allowance_period_start"],
        acct["current_allowance_period_seconds"],
        acct["current_allowance_limit_eth"],
        acct["allowance_spent_this_period_eth"],
        now,
        default_limit=default_limit,
        default_period_seconds=default_period_seconds,
    )


def stored_window(acct: dict) -> Optional[ResolvedWindow]:
    """The window as persisted, or None before the account's first window."""
    start = acct["allowance_period_start"]
    period = acct["current_allowance_period_seconds"]
    limit = acct["current_allowance_limit_eth"]
    if start is None or period is None or limit is None:
        return None
    return ResolvedWindow(start, acct["allowance_spent_this_period_eth"] or 0.0, limit, period, False)


class AllowanceManager:
    """Validates and records spends against each account's allowance window.

    Each call reads, resolves and writes one account inside a single
    BEGIN IMMEDIATE transaction, so a rollover or spend is always computed
    from the state it replaces.
    """

    def __init__(
        self,
        storage: "StorageManager",
        default_limit: float = DEFAULT_ALLOWANCE_ETH,
        default_period_seconds: int = DEFAULT_ALLOWANCE_PERIOD_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self._storage = storage
        self.default_limit = default_limit
        self.default_period_seconds = default_period_seconds
        self._clock = clock

    async def refresh(self, wallet_address: str) -> dict:
        """Return the account, committing a window rollover if one is due."""
        wallet_address = check_address(wallet_address)
        async with self._storage.transaction() as db:
            acct = await self._load(db, wallet_address)
            now = self._clock()
            window = resolve_account_window(acct, now, self.default_limit, self.default_period_seconds)
            if window.rolled:
                await self._roll_over(db, acct, window, now)
                acct = await fetch_account(db, wallet_address)
        return acct

    async def try_spend(self, wallet_address: str, amount: float) -> dict:
        """Record ``amount`` against the current window and return the updated account.

        Raises LimitExceededError when the window total would pass the limit;
        a rollover committed on the way stays committed.
        """
        wallet_address = check_address(wallet_address)
        amount = check_amount(amount)

        rejected: Optional[ResolvedWindow] = None
        async with self._storage.transaction() as db:
            acct = await self._load(db, wallet_address)
            now = self._clock()
            window = resolve_account_window(acct, now, self.default_limit, self.default_period_seconds)
            if window.rolled:
                await self._roll_over(db, acct, window, now)

            new_total = window.effective_spent + amount
            if not window.fits(amount) or not await write_spent(
                db, wallet_address, new_total, SPEND_EPSILON, now,
            ):
                rejected = window
            else:
                acct = await fetch_account(db, wallet_address)

        if rejected is not None:
            logger.warning(
                "Spend rejected for %s: attempted=%.6f spent=%.6f limit=%.6f",
                wallet_address, amount, rejected.effective_spent, rejected.limit,
            )
            raise LimitExceededError("Spending limit exceeded for the current period.")

        logger.info(
            "Recorded spend of %.6f for %s, period total %.6f / %.6f",
            amount, wallet_address, new_total, window.limit,
        )
        return acct

    @staticmethod
    async def _load(db, wallet_address: str) -> dict:
        acct = await fetch_account(db, wallet_address)
        if acct is None:
            raise NotFoundError("Account not found")
        return acct

    async def _roll_over(self, db, acct: dict, window: ResolvedWindow, now: float):
        await write_window(
            db,
            acct["wallet_address"],
            period_start=window.effective_start,
            spent_eth=window.effective_spent,
            limit_eth=window.limit,
            period_seconds=window.period_seconds,
            now=now,
        )
        logger.info(
            "Allowance window for %s rolled over at %.0f (limit=%.6f, period=%ds)",
            acct["wallet_address"], now, window.limit, window.period_seconds,
        )
