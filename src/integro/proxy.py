"""Call proxy mirroring the remote API.

The proxy turns chained attribute access into a call path and creates a
LazyCall when invoked::

    client.api.artists.find_by_id("miles")
    # path ("artists", "find_by_id"), args ("miles",)

Item access reaches names that are not Python identifiers or that clash
with the proxy's own methods::

    client.api["messages$"].subscribe(on_message)
    client.api["invoke"]()
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from integro.types import Path

if TYPE_CHECKING:
    from integro.client import Client
    from integro.lazy import LazyCall

__all__ = ["CallProxy"]


class CallProxy:
    """A node of the mirrored API, scoped to an accumulated path."""

    __slots__ = ("_client", "_path")

    def __init__(self, client: Client, path: Path = ()) -> None:
        object.__setattr__(self, "_client", client)
        object.__setattr__(self, "_path", tuple(path))

    def access(self, name: str) -> CallProxy:
        """Return a proxy scoped to ``path + (name,)``."""
        if not isinstance(name, str) or not name:
            raise TypeError(f"Path segments must be non-empty strings, got {name!r}")
        return CallProxy(self._client, self._path + (name,))

    def invoke(self, *args: Any, **kwargs: Any) -> LazyCall:
        """Create a lazy call for this path. Nothing is sent."""
        if kwargs:
            raise TypeError("Remote calls accept positional arguments only")
        if not self._path:
            raise TypeError("The API root cannot be called")
        return self._client.create_call(self._path, args)

    def __getattr__(self, name: str) -> CallProxy:
        if name.startswith("_"):
            # Avoid infinite recursion for private attrs
            raise AttributeError(f"'{type(self).__name__}' object has no attribute '{name}'")
        return self.access(name)

    def __getitem__(self, name: str) -> CallProxy:
        return self.access(name)

    def __call__(self, *args: Any, **kwargs: Any) -> LazyCall:
        return self.invoke(*args, **kwargs)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(
            f"Cannot set attribute '{name}' on CallProxy. "
            "Use remote calls to modify remote state."
        )

    def __repr__(self) -> str:
        path = ".".join(self._path) if self._path else "<root>"
        return f"CallProxy({path})"
