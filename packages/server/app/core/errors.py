"""
Catalog error taxonomy.

Core operations raise these; a single FastAPI exception handler turns them
into the JSON error envelope used across the API:

    {"error": {"code": "...", "message": "...", "status": 404}}
"""

from __future__ import annotations

from typing import Any, Optional


class CatalogError(Exception):
    """Base class for every error the core reports to its callers."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
            "status": self.status_code,
        }
        if self.details:
            body["details"] = self.details
        return {"error": body}


class NotFoundError(CatalogError):
    """Entity absent, deleted, or hidden from the caller."""

    status_code = 404
    code = "NOT_FOUND"


class ForbiddenError(CatalogError):
    """Caller can see the organization but lacks the role for this action."""

    status_code = 403
    code = "FORBIDDEN"


class UnauthenticatedError(CatalogError):
    status_code = 401
    code = "UNAUTHENTICATED"


class ValidationError(CatalogError):
    status_code = 422
    code = "VALIDATION_ERROR"


class ConflictError(CatalogError):
    status_code = 409
    code = "CONFLICT"


class DependencyError(CatalogError):
    """Storage or transcoding collaborator failed."""

    status_code = 502
    code = "DEPENDENCY_ERROR"
