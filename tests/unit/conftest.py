"""Shared fixtures for the ledger unit tests."""

import pytest
import pytest_asyncio

from playerledger.account import AccountProvisioner
from playerledger.allowance import AllowanceManager
from playerledger.scores import ScoreLedger
from playerledger.storage import StorageManager

from tests.fakes import T0, FakeClock


# ── Constants ───────────────────────────────────────────────────────────────

WALLET = "0xAbC0000000000000000000000000000000000001"
PARENT = "0x24691E54aFafe2416a8252097C9Ca67557271475"
OTHER_WALLET = "0x1111111111222222222233333333334444444444"

LIMIT = 0.01
PERIOD = 86400


# ── Fixtures ────────────────────────────────────────────────────────────────

@pytest.fixture
def clock():
    return FakeClock()


@pytest_asyncio.fixture
async def storage():
    sm = StorageManager(":memory:")
    await sm.initialize()
    yield sm
    await sm.close()


@pytest_asyncio.fixture
async def provisioner(storage, clock):
    return AccountProvisioner(
        storage.accounts, default_limit=LIMIT, default_period_seconds=PERIOD, clock=clock,
    )


@pytest_asyncio.fixture
async def allowance(storage, clock):
    return AllowanceManager(
        storage, default_limit=LIMIT, default_period_seconds=PERIOD, clock=clock,
    )


@pytest_asyncio.fixture
async def ledger(storage, clock):
    return ScoreLedger(storage, clock=clock)


@pytest_asyncio.fixture
async def account(provisioner):
    return await provisioner.provision(WALLET, PARENT, "Ada")
