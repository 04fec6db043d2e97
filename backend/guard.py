from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import Depends, Request
from pymongo.database import Database

from database import ConnectionSupervisor, uri_type


class StoreUnavailable(Exception):
    """The database cannot serve this request; rendered as a 503."""

    def __init__(self, diagnostic: Dict[str, Any],
                 message: str = "Database connection not available. Please try again later."):
        super().__init__(message)
        self.message = message
        self.diagnostic = diagnostic


@dataclass(frozen=True)
class GuardResult:
    ok: bool
    diagnostic: Optional[Dict[str, Any]] = None


def describe_store(supervisor: ConnectionSupervisor) -> Dict[str, Any]:
    return {
        "uriConfigured": supervisor.uri_configured,
        "uriType": uri_type(supervisor.uri),
        "connectionState": supervisor.state.value,
    }


def guard(supervisor: ConnectionSupervisor) -> GuardResult:
    if supervisor.ensure_connection():
        return GuardResult(ok=True)
    return GuardResult(ok=False, diagnostic=describe_store(supervisor))


def get_supervisor(request: Request) -> ConnectionSupervisor:
    return request.app.state.supervisor


def require_store(supervisor: ConnectionSupervisor = Depends(get_supervisor)) -> Database:
    """Hand out the database only once the store is usable."""
    outcome = guard(supervisor)
    if not outcome.ok:
        raise StoreUnavailable(outcome.diagnostic)
    return supervisor.database
