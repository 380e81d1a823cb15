"""
User-facing error shape and the tagged result returned by every pipeline stage.

Stages never let a raw exception cross their boundary: they return either
Ok(value) or Err(UserError). The ErrorKind on an Err says which part of the
error taxonomy it belongs to, which the HTTP layer uses to pick a status code.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict

T = TypeVar("T")


class UserError(BaseModel):
    """Uniform error surfaced at every pipeline boundary."""

    model_config = ConfigDict(frozen=True)

    code: str  # dot-namespaced, e.g. "pdf.no_text"
    message: str
    suggestion: str | None = None
    details: str | None = None


class ErrorKind(str, Enum):
    INPUT = "input"  # rejected before any network call
    TRANSIENT = "transient"  # retry budget exhausted
    PAYLOAD = "payload"  # call succeeded, response unusable
    REJECTED = "rejected"  # remote system refused the payload
    FAILURE = "failure"  # anything unexpected


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T
    ok: Literal[True] = True


@dataclass(frozen=True)
class Err:
    error: UserError
    kind: ErrorKind = ErrorKind.FAILURE
    ok: Literal[False] = False


def fail(
    code: str,
    message: str,
    suggestion: str | None = None,
    *,
    kind: ErrorKind = ErrorKind.FAILURE,
    details: str | None = None,
) -> Err:
    """Shorthand for building an Err around a fresh UserError."""
    return Err(UserError(code=code, message=message, suggestion=suggestion, details=details), kind=kind)


def as_user_error(err: Any, fallback: UserError) -> UserError:
    """Return err if it already has the UserError shape, otherwise fallback."""
    if isinstance(err, UserError):
        return err
    if isinstance(err, Err):
        return err.error
    if isinstance(err, Mapping) and "code" in err and "message" in err:
        return UserError(
            code=str(err["code"]),
            message=str(err["message"]),
            suggestion=err.get("suggestion"),
            details=err.get("details"),
        )
    return fallback
