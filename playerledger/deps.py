"""Lookups router modules use to reach the running LedgerServer."""

from typing import TYPE_CHECKING

from starlette.requests import Request

if TYPE_CHECKING:
    from playerledger.server import LedgerServer


def get_server(request: Request) -> "LedgerServer":
    return request.app.state.server
