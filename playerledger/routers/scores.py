"""Score router - /api/scores/* endpoints."""

from fastapi import APIRouter, Query
from starlette.requests import Request

from playerledger.deps import get_server
from playerledger.models import ScoreRequest
from playerledger.routers.account import account_view
from playerledger.scores import DEFAULT_HISTORY_LIMIT, DEFAULT_LEADERBOARD_LIMIT

router = APIRouter()


def entry_view(entry: dict) -> dict:
    return {
        "id": entry["id"],
        "walletAddress": entry["wallet_address"],
        "score": entry["score"],
        "userName": entry["user_name"],
        "createdAt": entry["created_at"],
    }


@router.post("/api/scores", status_code=201)
async def submit_score(request: Request, req: ScoreRequest):
    srv = get_server(request)
    result = await srv.scores.submit(req.wallet_address, req.score, req.user_name)
    return {
        "entry": entry_view(result.entry),
        "account": account_view(result.account),
        "isNewPersonalBest": result.is_new_personal_best,
    }


@router.get("/api/scores/leaderboard")
async def leaderboard(request: Request, limit: int = DEFAULT_LEADERBOARD_LIMIT):
    srv = get_server(request)
    rows = await srv.scores.top_scores(limit)
    return [
        {"userName": r["user_name"], "score": r["score"], "createdAt": r["created_at"]}
        for r in rows
    ]


@router.get("/api/scores/history")
async def score_history(
    request: Request,
    wallet_address: str = Query(default="", alias="walletAddress"),
    limit: int = DEFAULT_HISTORY_LIMIT,
):
    srv = get_server(request)
    entries = await srv.scores.history(wallet_address, limit)
    return [entry_view(e) for e in entries]
