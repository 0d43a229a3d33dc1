"""Typed engine errors.

Every error is a ``ValueError`` whose string form is a stable machine code, so
callers can keep matching on ``str(exc)`` the same way they match plain
``ValueError("not_found")``.
"""

from __future__ import annotations

from typing import Any, Optional


class HabitflowError(ValueError):
    code = "error"
    status_code = 400

    def __init__(self, message: Optional[str] = None, *, details: Any = None) -> None:
        super().__init__(self.code)
        self.message = message or self.code
        self.details = details

    def to_dict(self) -> dict:
        payload = {"ok": False, "error": self.code}
        if self.message != self.code:
            payload["message"] = self.message
        if self.details is not None:
            payload["details"] = self.details
        return payload


class NotFoundError(HabitflowError):
    """Referenced habit or record does not exist (or is not owned by the caller)."""

    code = "not_found"
    status_code = 404

    def __init__(self, resource: str, identifier: Any = None) -> None:
        message = f"{resource} not found" if identifier is None else f"{resource} {identifier} not found"
        super().__init__(message)
        self.resource = resource
        self.identifier = identifier


class InvalidInputError(HabitflowError):
    """Rejected before any mutation happens."""

    code = "validation_error"
    status_code = 400


class ConflictError(HabitflowError):
    code = "conflict"
    status_code = 409


class DuplicateError(ConflictError):
    code = "duplicate"


class ComputationCancelled(HabitflowError):
    """An aggregate computation was cancelled or hit its deadline."""

    code = "computation_cancelled"
    status_code = 503


__all__ = [
    "HabitflowError",
    "NotFoundError",
    "InvalidInputError",
    "ConflictError",
    "DuplicateError",
    "ComputationCancelled",
]
