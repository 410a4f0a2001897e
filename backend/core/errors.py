"""
Domain error taxonomy shared by the changeover and optimization services.

Create/update operations raise these; delete operations report an
``OperationResult`` instead. Routers translate ``status_code`` into an
HTTPException.
"""

from dataclasses import dataclass


class DomainError(Exception):
    """Base class for errors the API layer knows how to render."""

    kind = "internal"
    status_code = 500


class NotFoundError(DomainError):
    kind = "not_found"
    status_code = 404


class ConflictError(DomainError):
    kind = "conflict"
    status_code = 409


class InvalidInputError(DomainError, ValueError):
    kind = "invalid_input"
    status_code = 422


class ExternalProcessFailure(DomainError):
    kind = "external_process_failure"
    status_code = 502


class InternalError(DomainError):
    kind = "internal"
    status_code = 500


@dataclass
class OperationResult:
    """Structured outcome of a delete-style operation."""

    success: bool
    message: str
    not_found: bool = False

    def to_dict(self) -> dict:
        return {"success": self.success, "message": self.message}
