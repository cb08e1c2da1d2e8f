"""
test_allowance_manager.py - Spends against stored allowance windows.

Covers the no-overspend guarantee under concurrent spends (including two
connections on one database file), exactly-once
rollover and the epsilon boundary.
"""

import asyncio

import pytest
import pytest_asyncio

from playerledger.account import AccountProvisioner
from playerledger.allowance import SPEND_EPSILON, AllowanceManager
from playerledger.errors import (
    InvalidInputError,
    LimitExceededError,
    NotFoundError,
    StoreUnavailableError,
)
from playerledger.storage import StorageManager, write_spent

from .conftest import LIMIT, PERIOD, T0, WALLET, OTHER_WALLET

pytestmark = pytest.mark.asyncio


async def _set_window(storage, start=None, period=None, limit=None, spent=0.0):
    async with storage.transaction() as db:
        await db.execute(
            "UPDATE accounts SET allowance_period_start = ?, current_allowance_period_seconds = ?, "
            "current_allowance_limit_eth = ?, allowance_spent_this_period_eth = ? "
            "WHERE wallet_address = ?",
            (start, period, limit, spent, WALLET),
        )


# ── Basic spends ──────────────────────────────────────────────────────────

class TestTrySpend:

    async def test_spend_within_limit(self, account, allowance):
        acct = await allowance.try_spend(WALLET, 0.004)
        assert acct["allowance_spent_this_period_eth"] == pytest.approx(0.004)

    async def test_spend_over_limit_rejected_and_not_applied(self, account, allowance, storage):
        await allowance.try_spend(WALLET, 0.004)
        with pytest.raises(LimitExceededError):
            await allowance.try_spend(WALLET, 0.007)
        acct = await storage.accounts.get(WALLET)
        assert acct["allowance_spent_this_period_eth"] == pytest.approx(0.004)

    async def test_unknown_account(self, storage, allowance):
        with pytest.raises(NotFoundError):
            await allowance.try_spend(OTHER_WALLET, 0.001)

    @pytest.mark.parametrize("amount", [0, -0.001, float("inf"), float("nan"), True, "0.1", None])
    async def test_invalid_amount_rejected_before_store(self, storage, allowance, amount):
        # No account exists: a store read would raise NotFoundError instead.
        with pytest.raises(InvalidInputError):
            await allowance.try_spend(OTHER_WALLET, amount)

    @pytest.mark.parametrize("address", ["", "abc", "0x123", None, "0x" + "g" * 40])
    async def test_invalid_address_rejected(self, allowance, address):
        with pytest.raises(InvalidInputError):
            await allowance.try_spend(address, 0.001)

    async def test_case_insensitive_wallet_lookup(self, account, allowance):
        acct = await allowance.try_spend(WALLET.lower(), 0.001)
        assert acct["wallet_address"] == WALLET


# ── Epsilon boundary ──────────────────────────────────────────────────────

class TestBoundary:

    async def test_exact_remainder_succeeds(self, account, allowance):
        await allowance.try_spend(WALLET, 0.004)
        acct = await allowance.try_spend(WALLET, LIMIT - 0.004)
        assert acct["allowance_spent_this_period_eth"] <= LIMIT + SPEND_EPSILON

    async def test_remainder_plus_two_epsilon_fails(self, account, allowance):
        await allowance.try_spend(WALLET, 0.004)
        with pytest.raises(LimitExceededError):
            await allowance.try_spend(WALLET, LIMIT - 0.004 + 2 * SPEND_EPSILON)

    async def test_many_small_spends_never_exceed(self, account, allowance, storage):
        accepted = 0
        for _ in range(15):
            try:
                await allowance.try_spend(WALLET, 0.001)
                accepted += 1
            except LimitExceededError:
                pass
        assert accepted == 10
        acct = await storage.accounts.get(WALLET)
        assert acct["allowance_spent_this_period_eth"] <= LIMIT + SPEND_EPSILON


# ── Rollover ──────────────────────────────────────────────────────────────

class TestRollover:

    async def test_expired_window_rolls_before_spend(self, account, allowance, clock):
        await allowance.try_spend(WALLET, 0.004)
        clock.advance(PERIOD)
        acct = await allowance.try_spend(WALLET, 0.004)
        assert acct["allowance_spent_this_period_eth"] == pytest.approx(0.004)
        assert acct["allowance_period_start"] == T0 + PERIOD

    async def test_rollover_survives_rejected_spend(self, account, allowance, clock, storage):
        await allowance.try_spend(WALLET, 0.009)
        clock.advance(PERIOD + 5)
        with pytest.raises(LimitExceededError):
            await allowance.try_spend(WALLET, 0.02)
        acct = await storage.accounts.get(WALLET)
        assert acct["allowance_spent_this_period_eth"] == 0.0
        assert acct["allowance_period_start"] == T0 + PERIOD + 5

    async def test_refresh_rolls_exactly_once(self, account, allowance, clock, storage):
        await allowance.try_spend(WALLET, 0.004)
        clock.advance(PERIOD)
        first = await allowance.refresh(WALLET)
        await allowance.try_spend(WALLET, 0.003)
        second = await allowance.refresh(WALLET)
        assert first["allowance_spent_this_period_eth"] == 0.0
        assert first["allowance_period_start"] == clock.now
        # Same `now`: the new window is not expired, so the spend is kept.
        assert second["allowance_spent_this_period_eth"] == pytest.approx(0.003)
        assert second["allowance_period_start"] == clock.now

    async def test_refresh_without_rollover_is_read_only(self, account, allowance, clock):
        clock.advance(PERIOD - 1)
        acct = await allowance.refresh(WALLET)
        assert acct == account

    async def test_refresh_unknown_account(self, storage, allowance):
        with pytest.raises(NotFoundError):
            await allowance.refresh(OTHER_WALLET)

    async def test_uninitialized_window_gets_defaults(self, account, allowance, storage, clock):
        await _set_window(storage)
        acct = await allowance.try_spend(WALLET, 0.002)
        assert acct["current_allowance_limit_eth"] == LIMIT
        assert acct["current_allowance_period_seconds"] == PERIOD
        assert acct["allowance_period_start"] == clock.now
        assert acct["allowance_spent_this_period_eth"] == pytest.approx(0.002)


# ── Concurrency ───────────────────────────────────────────────────────────

class TestConcurrentSpends:

    async def test_two_racing_spends_only_one_wins(self, account, allowance, storage):
        results = await asyncio.gather(
            allowance.try_spend(WALLET, 0.006),
            allowance.try_spend(WALLET, 0.006),
            return_exceptions=True,
        )
        wins = [r for r in results if isinstance(r, dict)]
        losses = [r for r in results if isinstance(r, LimitExceededError)]
        assert len(wins) == 1
        assert len(losses) == 1
        acct = await storage.accounts.get(WALLET)
        assert acct["allowance_spent_this_period_eth"] == pytest.approx(0.006)

    async def test_many_racing_spends_never_overspend(self, account, allowance, storage):
        results = await asyncio.gather(
            *[allowance.try_spend(WALLET, 0.0015) for _ in range(20)],
            return_exceptions=True,
        )
        wins = [r for r in results if isinstance(r, dict)]
        assert len(wins) == 6
        assert all(isinstance(r, (dict, LimitExceededError)) for r in results)
        acct = await storage.accounts.get(WALLET)
        assert acct["allowance_spent_this_period_eth"] <= LIMIT + SPEND_EPSILON

    async def test_concurrent_rollover_happens_once(self, account, allowance, storage, clock):
        await allowance.try_spend(WALLET, 0.008)
        clock.advance(PERIOD)
        await asyncio.gather(
            allowance.try_spend(WALLET, 0.003),
            allowance.try_spend(WALLET, 0.003),
        )
        acct = await storage.accounts.get(WALLET)
        # Neither spend was erased by a second reset.
        assert acct["allowance_spent_this_period_eth"] == pytest.approx(0.006)


@pytest_asyncio.fixture
async def two_instances(tmp_path, clock):
    """Two StorageManagers on one database file, as two service processes would hold."""
    path = str(tmp_path / "ledger.db")
    managers = [StorageManager(path), StorageManager(path)]
    for sm in managers:
        await sm.initialize()
    await AccountProvisioner(managers[0].accounts, LIMIT, PERIOD, clock).provision(WALLET, None, "Ada")
    yield [AllowanceManager(sm, LIMIT, PERIOD, clock) for sm in managers], managers
    for sm in managers:
        await sm.close()


class TestSharedDatabaseFile:

    async def test_spends_across_connections_never_overspend(self, two_instances):
        allowances, managers = two_instances
        results = await asyncio.gather(
            *[allowances[i % 2].try_spend(WALLET, 0.0015) for i in range(20)],
            return_exceptions=True,
        )
        assert {type(r) for r in results} == {dict, LimitExceededError}
        assert sum(isinstance(r, dict) for r in results) == 6
        acct = await managers[1].accounts.get(WALLET)
        assert acct["allowance_spent_this_period_eth"] == pytest.approx(0.009)

    async def test_rollover_happens_once_across_connections(self, two_instances, clock):
        allowances, managers = two_instances
        await allowances[0].try_spend(WALLET, 0.008)
        clock.advance(PERIOD)
        await asyncio.gather(
            allowances[0].try_spend(WALLET, 0.003),
            allowances[1].try_spend(WALLET, 0.003),
        )
        acct = await managers[0].accounts.get(WALLET)
        assert acct["allowance_spent_this_period_eth"] == pytest.approx(0.006)
        assert acct["allowance_period_start"] == clock.now


# ── Store-level guards ────────────────────────────────────────────────────

class TestSpendWrite:

    async def test_write_spent_refuses_total_over_limit(self, account, storage, clock):
        async with storage.transaction() as db:
            ok = await write_spent(db, WALLET, LIMIT * 2, SPEND_EPSILON, clock())
        assert not ok
        acct = await storage.accounts.get(WALLET)
        assert acct["allowance_spent_this_period_eth"] == 0.0

    async def test_write_spent_accepts_total_within_epsilon(self, account, storage, clock):
        async with storage.transaction() as db:
            ok = await write_spent(db, WALLET, LIMIT + SPEND_EPSILON / 2, SPEND_EPSILON, clock())
        assert ok

    async def test_driver_failure_surfaces_as_store_unavailable(self, account, allowance, storage):
        async with storage.transaction() as db:
            await db.execute("DROP TABLE accounts")
        with pytest.raises(StoreUnavailableError):
            await allowance.try_spend(WALLET, 0.001)
