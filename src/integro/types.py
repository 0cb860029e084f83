"""Core type definitions for the integro client."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Literal

from integro.error import Reason, ServerError, coerce_reason

Path = tuple[str, ...]


class CallState(Enum):
    """Lifecycle of a lazy call."""

    PENDING = "pending"
    EXECUTING = "executing"
    SETTLED = "settled"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class CallRequest:
    """The path and arguments of one remote call."""

    path: Path
    args: tuple[Any, ...] = ()

    def to_wire(self) -> dict[str, Any]:
        """Return the ``{path, args}`` envelope sent to the dispatcher."""
        return {"path": list(self.path), "args": list(self.args)}


@dataclass(frozen=True, slots=True)
class Outcome:
    """The settled result of one call inside a batch.

    Either ``status == "fulfilled"`` with ``value``, or
    ``status == "rejected"`` with ``reason == (error_kind, error_message)``.
    """

    FULFILLED: ClassVar[str] = "fulfilled"
    REJECTED: ClassVar[str] = "rejected"

    status: Literal["fulfilled", "rejected"]
    value: Any = None
    reason: Reason | None = None

    @classmethod
    def fulfilled(cls, value: Any) -> Outcome:
        return cls(cls.FULFILLED, value=value)

    @classmethod
    def rejected(cls, kind: str, message: str) -> Outcome:
        return cls(cls.REJECTED, reason=(kind, message))

    @classmethod
    def from_wire(cls, entry: Any) -> Outcome:
        """Parse one ``{status, value | reason}`` entry of a batch response.

        Raises:
            ServerError: If the entry is not a recognizable outcome
        """
        if isinstance(entry, dict):
            status = entry.get("status")
            if status == cls.FULFILLED:
                return cls.fulfilled(entry.get("value"))
            if status == cls.REJECTED:
                kind, message = coerce_reason(entry.get("reason"))
                return cls.rejected(kind, message)
        raise ServerError("The server returned a malformed batch entry.", cause=entry)

    @property
    def ok(self) -> bool:
        return self.status == self.FULFILLED

    def to_dict(self) -> dict[str, Any]:
        """Return the plain ``{status, value | reason}`` form."""
        if self.ok:
            return {"status": self.status, "value": self.value}
        return {"status": self.status, "reason": self.reason}
