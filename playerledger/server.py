"""
server.py - Ledger server entry point.

Single-process server combining:
 - SQLite persistent storage via StorageManager
 - Ledger services (account provisioning, allowance, scores)
 - REST API (FastAPI on uvicorn, port 8080)

Usage:
    python -m playerledger.server [--api-port 8080] [--db-path data/ledger.db]
"""

import argparse
import asyncio
import logging
import os
import time
from contextlib import asynccontextmanager
from typing import Callable, Optional

import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.requests import Request

from playerledger import __version__
from playerledger.account import AccountProvisioner
from playerledger.allowance import (
    DEFAULT_ALLOWANCE_ETH,
    DEFAULT_ALLOWANCE_PERIOD_SECONDS,
    AllowanceManager,
)
from playerledger.errors import InvalidInputError, LedgerError
from playerledger.routers import register_all_routers
from playerledger.scores import ScoreLedger
from playerledger.storage import StorageManager
from playerledger.storage.manager import DEFAULT_BUSY_TIMEOUT

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logger = logging.getLogger("server")


def configure_logging(level: int = logging.INFO):
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(name)-10s] %(levelname)-5s %(message)s",
        datefmt="%H:%M:%S",
    )


def _describe_validation_error(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg', 'invalid')}" if loc else err.get("msg", "invalid"))
    return "; ".join(parts) or "Invalid request"


# ---------------------------------------------------------------------------
# Ledger server
# ---------------------------------------------------------------------------

class LedgerServer:
    """Wires storage and services into a FastAPI app."""

    def __init__(
        self,
        api_port: int = 8080,
        host: str = "0.0.0.0",
        db_path: str = "data/ledger.db",
        default_limit: float = DEFAULT_ALLOWANCE_ETH,
        default_period_seconds: int = DEFAULT_ALLOWANCE_PERIOD_SECONDS,
        busy_timeout: float = DEFAULT_BUSY_TIMEOUT,
        clock: Callable[[], float] = time.time,
    ):
        self.api_port = api_port
        self.host = host
        self.db_path = db_path
        self.default_limit = default_limit
        self.default_period_seconds = default_period_seconds
        self.busy_timeout = busy_timeout
        self._clock = clock

        # Storage + services are initialized async in the app lifespan
        self.storage: Optional[StorageManager] = None
        self.provisioner: Optional[AccountProvisioner] = None
        self.allowance: Optional[AllowanceManager] = None
        self.scores: Optional[ScoreLedger] = None

        self.app = FastAPI(title="Player Ledger", version=__version__, lifespan=self._lifespan)
        self.app.state.server = self
        register_all_routers(self.app)
        self._register_error_handlers()

    async def _init_services(self):
        """Open storage and wire up services (must be called in async context)."""
        db_dir = os.path.dirname(self.db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        self.storage = StorageManager(self.db_path, busy_timeout=self.busy_timeout)
        await self.storage.initialize()

        self.provisioner = AccountProvisioner(
            self.storage.accounts,
            default_limit=self.default_limit,
            default_period_seconds=self.default_period_seconds,
            clock=self._clock,
        )
        self.allowance = AllowanceManager(
            self.storage,
            default_limit=self.default_limit,
            default_period_seconds=self.default_period_seconds,
            clock=self._clock,
        )
        self.scores = ScoreLedger(self.storage, clock=self._clock)

        logger.info(
            "Services initialized (db=%s, allowance=%.6f ETH / %ds)",
            self.db_path, self.default_limit, self.default_period_seconds,
        )

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        await self._init_services()
        try:
            yield
        finally:
            await self.close()

    def _register_error_handlers(self):
        app = self.app

        @app.exception_handler(LedgerError)
        async def ledger_error(request: Request, exc: LedgerError):
            if exc.status_code >= 500:
                logger.error("%s %s failed: %s", request.method, request.url.path, exc)
            return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

        @app.exception_handler(RequestValidationError)
        async def malformed_request(request: Request, exc: RequestValidationError):
            err = InvalidInputError(_describe_validation_error(exc))
            return JSONResponse(status_code=err.status_code, content=err.to_dict())

    # -------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------

    async def start(self):
        """Serve the API; storage opens and closes with the app lifespan."""
        config = uvicorn.Config(
            self.app,
            host=self.host,
            port=self.api_port,
            log_level="info",
        )
        self._uvicorn_server = uvicorn.Server(config)
        logger.info("REST API starting on port %d", self.api_port)
        await self._uvicorn_server.serve()

    async def close(self):
        if self.storage:
            await self.storage.close()
            self.storage = None


def main():
    """CLI entry point for the ledger server."""
    parser = argparse.ArgumentParser(description="Player allowance and score ledger server")
    parser.add_argument("--host", default="0.0.0.0", help="Bind address (default: 0.0.0.0)")
    parser.add_argument("--api-port", type=int, default=8080, help="REST API port (default: 8080)")
    parser.add_argument("--db-path", default="data/ledger.db", help="SQLite database path (default: data/ledger.db)")
    parser.add_argument("--default-allowance-eth", type=float, default=DEFAULT_ALLOWANCE_ETH,
                        help=f"Allowance limit for new windows (default: {DEFAULT_ALLOWANCE_ETH})")
    parser.add_argument("--default-period-sec", type=int, default=DEFAULT_ALLOWANCE_PERIOD_SECONDS,
                        help=f"Allowance window length (default: {DEFAULT_ALLOWANCE_PERIOD_SECONDS})")
    parser.add_argument("--busy-timeout", type=float, default=DEFAULT_BUSY_TIMEOUT,
                        help=f"Seconds to wait on a locked database (default: {DEFAULT_BUSY_TIMEOUT})")
    args = parser.parse_args()

    if args.default_allowance_eth < 0:
        parser.error("--default-allowance-eth must be >= 0")
    if args.default_period_sec <= 0:
        parser.error("--default-period-sec must be > 0")

    configure_logging()
    server = LedgerServer(
        api_port=args.api_port,
        host=args.host,
        db_path=args.db_path,
        default_limit=args.default_allowance_eth,
        default_period_seconds=args.default_period_sec,
        busy_timeout=args.busy_timeout,
    )

    logger.info("=" * 60)
    logger.info("  Player Ledger Server")
    logger.info("  REST API:    http://%s:%d", args.host, args.api_port)
    logger.info("  Database:    %s", args.db_path)
    logger.info("  Allowance:   %.6f ETH per %ds", args.default_allowance_eth, args.default_period_sec)
    logger.info("=" * 60)

    try:
        asyncio.run(server.start())
    except KeyboardInterrupt:
        logger.info("Shutting down...")


if __name__ == "__main__":
    main()
