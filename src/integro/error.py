"""Error types for the integro client."""

from __future__ import annotations

from typing import Any

# Wire form of a remote failure: (error kind, error message)
Reason = tuple[str, str]


class IntegroError(Exception):
    """Base class for errors raised by the integro client."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class CallError(IntegroError):
    """A remote call failed.

    Attributes:
        message: Human-readable error message
        details: The reason tuple ``(error_kind, error_message)``
    """

    def __init__(self, message: str, details: Reason | None = None) -> None:
        super().__init__(message)
        self.details: Reason = details if details is not None else ("Error", message)

    @classmethod
    def from_reason(cls, reason: Any) -> CallError:
        """Build the error from a ``[kind, message]`` reason pair."""
        kind, message = coerce_reason(reason)
        return cls(message, (kind, message))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CallError):
            return NotImplemented
        return self.message == other.message and self.details == other.details

    __hash__ = Exception.__hash__

    def __repr__(self) -> str:
        return f"CallError(message={self.message!r}, details={self.details!r})"


class ServerError(IntegroError):
    """The server responded in error without a recognizable message.

    Attributes:
        message: Generic error message
        cause: The raw decoded response payload
    """

    def __init__(self, message: str, cause: Any = None) -> None:
        super().__init__(message)
        self.cause = cause

    def __repr__(self) -> str:
        return f"ServerError(message={self.message!r}, cause={self.cause!r})"


def coerce_reason(reason: Any) -> Reason:
    """Normalize a decoded reason into a ``(kind, message)`` tuple.

    Raises:
        ServerError: If the reason is not a two-item sequence of strings
    """
    if (
        isinstance(reason, (list, tuple))
        and len(reason) == 2
        and all(isinstance(part, str) for part in reason)
    ):
        return (reason[0], reason[1])
    raise ServerError("The server returned a malformed rejection reason.", cause=reason)
