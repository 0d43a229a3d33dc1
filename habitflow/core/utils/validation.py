"""Input validation helpers."""

from __future__ import annotations

from typing import Any, Optional, Tuple, Type, TypeVar

from flask import jsonify
from pydantic import BaseModel, ValidationError

M = TypeVar("M", bound=BaseModel)


def validate_payload(schema: Type[M], payload: Any) -> Tuple[Optional[M], Optional[tuple]]:
    """Return ``(model, None)`` or ``(None, 400 response)`` for a request payload."""
    try:
        return schema.model_validate(payload or {}), None
    except ValidationError as exc:
        details = exc.errors(include_url=False, include_context=False, include_input=False)
        return None, (jsonify({"ok": False, "error": "validation_error", "details": details}), 400)
