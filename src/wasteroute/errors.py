"""Error taxonomy shared by every core operation.

Each error carries a ``kind`` tag so callers (request handlers, schedulers)
can map failures without inspecting message text.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import ValidationError


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    INVALID_INPUT = "invalid_input"
    NO_CAPACITY = "no_capacity"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    INTERNAL = "internal"


class WasteRouteError(Exception):
    """Base class for tagged core errors."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"kind": self.kind.value, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class NotFoundError(WasteRouteError, LookupError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, entity: str, entity_id: str | None = None, message: str | None = None) -> None:
        super().__init__(
            message or f"{entity} with ID {entity_id} not found",
            entity=entity,
            entity_id=entity_id,
        )
        self.entity = entity
        self.entity_id = entity_id


class InvalidInputError(WasteRouteError, ValueError):
    kind = ErrorKind.INVALID_INPUT


class NoCapacityError(WasteRouteError):
    kind = ErrorKind.NO_CAPACITY


class UpstreamUnavailableError(WasteRouteError):
    kind = ErrorKind.UPSTREAM_UNAVAILABLE


class InternalError(WasteRouteError):
    kind = ErrorKind.INTERNAL


def invalid_input_from_validation(error: ValidationError) -> InvalidInputError:
    """Translate a pydantic validation failure into an InvalidInputError."""
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ()))
        problems.append(f"{location}: {item.get('msg')}" if location else str(item.get("msg")))
    return InvalidInputError("; ".join(problems) or "Invalid input", errors=problems)
