from fastapi import HTTPException
from pydantic import BaseModel
from typing import Optional


class ProblemDetail(BaseModel):
    """RFC 7807 compliant error response."""

    type: str = "about:blank"
    title: str
    detail: Optional[str] = None
    status: int
    instance: Optional[str] = None
    code: str


class DomainException(Exception):
    """Base class for domain-specific exceptions."""

    def __init__(
        self,
        status_code: int,
        title: str,
        *,
        code: str,
        detail: str | None = None,
        type_: str = "about:blank",
    ) -> None:
        super().__init__(detail or title)
        self.status_code = status_code
        self.title = title
        self.detail = detail
        self.type = type_
        self.code = code


class InvalidInput(DomainException):
    """The caller passed something the engine or a store cannot accept."""

    def __init__(self, detail: str, *, code: str = "invalid_input") -> None:
        super().__init__(
            status_code=400,
            title="Invalid input",
            detail=detail,
            code=code,
        )


class MatchNotFound(DomainException):
    def __init__(self, match_id: str) -> None:
        super().__init__(
            status_code=404,
            title="Match not found",
            detail=f"match '{match_id}' not found",
            code="match_not_found",
        )
        self.match_id = match_id


class TerminalStateViolation(DomainException):
    def __init__(self, match_id: str) -> None:
        super().__init__(
            status_code=409,
            title="Match already completed",
            detail=f"match '{match_id}' is completed and accepts no further points",
            code="match_completed",
        )
        self.match_id = match_id


class StorageFailure(DomainException):
    """Local persistence is unavailable or corrupt on a write path."""

    def __init__(self, operation: str, detail: str | None = None) -> None:
        super().__init__(
            status_code=503,
            title="Local storage unavailable",
            detail=f"{operation} failed: {detail}" if detail else f"{operation} failed",
            code="storage_failure",
        )
        self.operation = operation


class SyncFailure(DomainException):
    """The remote authority was unreachable or rejected a request.

    Nothing local is mutated when this is raised, so the caller can retry.
    """

    def __init__(
        self,
        detail: str,
        *,
        status: int | None = None,
        match_id: str | None = None,
    ) -> None:
        super().__init__(
            status_code=502,
            title="Sync failed",
            detail=detail,
            code="sync_failed",
        )
        self.status = status
        self.match_id = match_id


def http_problem(
    status_code: int,
    detail: str,
    code: str,
    *,
    headers: Optional[dict[str, str]] = None,
) -> HTTPException:
    """Create an HTTPException with an attached problem code."""

    exc = HTTPException(status_code=status_code, detail=detail, headers=headers)
    setattr(exc, "code", code)
    return exc
