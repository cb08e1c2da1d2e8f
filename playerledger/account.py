"""
account.py - Account provisioning.

Guarantees an account row exists before allowance or score operations touch
it. Backed by StorageManager's AccountRepo.
"""

import logging
import time
from typing import TYPE_CHECKING, Callable, List, Optional

from playerledger.allowance import DEFAULT_ALLOWANCE_ETH, DEFAULT_ALLOWANCE_PERIOD_SECONDS
from playerledger.errors import NotFoundError
from playerledger.validation import (
    RESERVED_USERNAME_PREFIX,
    check_address,
    check_optional_address,
    check_username,
)

if TYPE_CHECKING:
    from playerledger.storage import AccountRepo

logger = logging.getLogger("account")


def default_username(wallet_address: str) -> str:
    """System-generated display name for accounts that have not chosen one."""
    return f"{RESERVED_USERNAME_PREFIX}{wallet_address[2:8].lower()}"


class AccountProvisioner:
    """Creates and updates account records."""

    def __init__(
        self,
        repo: "AccountRepo",
        default_limit: float = DEFAULT_ALLOWANCE_ETH,
        default_period_seconds: int = DEFAULT_ALLOWANCE_PERIOD_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self._repo = repo
        self.default_limit = default_limit
        self.default_period_seconds = default_period_seconds
        self._clock = clock

    async def provision(
        self,
        wallet_address: str,
        parent_wallet_address: Optional[str],
        username: str,
    ) -> dict:
        """Upsert the account under a chosen username.

        Re-provisioning an existing account also restarts its allowance window
        with the current defaults and zero spend.
        """
        wallet_address = check_address(wallet_address)
        parent_wallet_address = check_optional_address(parent_wallet_address)
        username = check_username(username)

        acct = await self._repo.upsert_provisioned(
            wallet_address,
            parent_wallet_address,
            username,
            limit_eth=self.default_limit,
            period_seconds=self.default_period_seconds,
            now=self._clock(),
        )
        logger.info(
            "Provisioned account %s username=%s parent=%s (allowance window reset)",
            wallet_address, username, parent_wallet_address or "-",
        )
        return acct

    async def sync(self, wallet_address: str, parent_wallet_address: Optional[str] = None) -> dict:
        """Make sure an account exists, without touching an existing one."""
        wallet_address = check_address(wallet_address)
        parent_wallet_address = check_optional_address(parent_wallet_address)
        return await self._repo.create_if_absent(
            wallet_address,
            parent_wallet_address,
            default_username(wallet_address),
            limit_eth=self.default_limit,
            period_seconds=self.default_period_seconds,
            now=self._clock(),
        )

    async def rename(self, wallet_address: str, username: str) -> dict:
        wallet_address = check_address(wallet_address)
        username = check_username(username)
        acct = await self._repo.rename(wallet_address, username, now=self._clock())
        if acct is None:
            raise NotFoundError("Account not found")
        logger.info("Account %s renamed to %s", wallet_address, username)
        return acct

    async def children(self, parent_wallet_address: str) -> List[dict]:
        parent_wallet_address = check_address(parent_wallet_address, "parentWalletAddress")
        return await self._repo.list_by_parent(parent_wallet_address)
