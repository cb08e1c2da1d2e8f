"""
Shared fixtures for the HTTP integration tests.

Provides a LedgerServer on in-memory SQLite with a controllable clock, and a
TestClient entered as a context manager so the app lifespan opens storage on
the client's event loop.
"""

import pytest
from fastapi.testclient import TestClient

from playerledger.server import LedgerServer

from tests.fakes import FakeClock


WALLET = "0xAbC0000000000000000000000000000000000001"
PARENT = "0x24691E54aFafe2416a8252097C9Ca67557271475"
OTHER_WALLET = "0x1111111111222222222233333333334444444444"

LIMIT = 0.01
PERIOD = 86400


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def server(clock):
    return LedgerServer(
        db_path=":memory:",
        default_limit=LIMIT,
        default_period_seconds=PERIOD,
        clock=clock,
    )


@pytest.fixture
def client(server):
    with TestClient(server.app) as c:
        yield c


def setup_account(client, wallet=WALLET, parent=PARENT, username="Ada"):
    r = client.post("/api/accounts/setup", json={
        "walletAddress": wallet,
        "parentWalletAddress": parent,
        "username": username,
    })
    assert r.status_code == 200, r.text
    return r.json()
