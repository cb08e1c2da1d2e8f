"""Account router - /api/accounts/* endpoints."""

from typing import Optional

from fastapi import APIRouter, Query
from starlette.requests import Request

from playerledger.allowance import stored_window
from playerledger.deps import get_server
from playerledger.models import SetupRequest, SpendRequest, SyncRequest, UsernameRequest

router = APIRouter()


def account_view(acct: dict) -> dict:
    """Wire representation of an account row."""
    window = stored_window(acct)
    return {
        "walletAddress": acct["wallet_address"],
        "parentWalletAddress": acct["parent_wallet_address"],
        "username": acct["username"],
        "setupComplete": acct["username_chosen"],
        "personalBestScore": acct["personal_best_score"],
        "currentAllowanceLimitETH": acct["current_allowance_limit_eth"],
        "currentAllowancePeriodSeconds": acct["current_allowance_period_seconds"],
        "allowancePeriodStart": acct["allowance_period_start"],
        "allowanceSpentThisPeriodETH": acct["allowance_spent_this_period_eth"],
        "allowanceRemainingETH": window.remaining if window else None,
        "allowancePeriodEndsAt": window.expires_at if window else None,
        "createdAt": acct["created_at"],
        "updatedAt": acct["updated_at"],
    }


@router.get("/api/accounts")
async def get_account(request: Request, wallet_address: str = Query(default="", alias="walletAddress")):
    srv = get_server(request)
    acct = await srv.allowance.refresh(wallet_address)
    return account_view(acct)


@router.post("/api/accounts/setup")
async def setup_account(request: Request, req: SetupRequest):
    srv = get_server(request)
    acct = await srv.provisioner.provision(
        req.wallet_address, req.parent_wallet_address, req.username,
    )
    return account_view(acct)


@router.post("/api/accounts/sync")
async def sync_account(request: Request, req: SyncRequest):
    srv = get_server(request)
    acct = await srv.provisioner.sync(req.wallet_address, req.parent_wallet_address)
    return account_view(acct)


@router.put("/api/accounts/username")
async def change_username(request: Request, req: UsernameRequest):
    srv = get_server(request)
    acct = await srv.provisioner.rename(req.wallet_address, req.username)
    return account_view(acct)


@router.post("/api/accounts/spend")
async def record_spend(request: Request, req: SpendRequest):
    srv = get_server(request)
    acct = await srv.allowance.try_spend(req.wallet_address, req.amount)
    return account_view(acct)


@router.get("/api/accounts/children")
async def list_children(
    request: Request,
    parent_wallet_address: Optional[str] = Query(default=None, alias="parentWalletAddress"),
):
    srv = get_server(request)
    accounts = await srv.provisioner.children(parent_wallet_address)
    return [account_view(a) for a in accounts]
