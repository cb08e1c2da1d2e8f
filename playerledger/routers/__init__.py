"""Router package - collects all API routers and registers them on the FastAPI app."""

from fastapi import FastAPI

from playerledger.routers import account, health, scores


def register_all_routers(app: FastAPI):
    app.include_router(health.router)
    app.include_router(account.router)
    app.include_router(scores.router)
