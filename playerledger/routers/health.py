"""Health router - service liveness and row counts."""

from fastapi import APIRouter
from starlette.requests import Request

from playerledger.deps import get_server

router = APIRouter()


@router.get("/health")
async def health(request: Request):
    srv = get_server(request)
    return {
        "status": "ok",
        "accounts": await srv.storage.accounts.count(),
        "score_entries": await srv.storage.scores.count(),
    }
