"""
Typed errors raised by the ledger services.

Each class carries the HTTP status the API layer answers with, so routers
never translate by message text:

    PieceworkError (base, 500)
    +-- ValidationError   400  malformed input, or a batch emptied by filtering
    +-- NotFoundError     404  referenced job / ledger / catalog row absent
    +-- ConflictError     409  natural-key collision (job number, work log pair)
    +-- DependencyError   503  external catalog or directory unreachable
"""

from typing import Any, Optional


class PieceworkError(Exception):
    status_code = 500

    def __init__(self, message: str, *, rejected: Optional[list[dict[str, Any]]] = None):
        super().__init__(message)
        self.message = message
        self.rejected = rejected

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message}
        if self.rejected is not None:
            body["rejected"] = self.rejected
        return body


class ValidationError(PieceworkError):
    status_code = 400


class NotFoundError(PieceworkError):
    status_code = 404


class ConflictError(PieceworkError):
    status_code = 409


class DependencyError(PieceworkError):
    status_code = 503
