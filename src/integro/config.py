"""Pydantic configuration model for the integro client.

Configuration is validated once when the client is created. Values that
may change over the client's lifetime (credentials, per-request options)
can be given as zero-argument callables; they are resolved on every
request rather than when a call is created.
"""

from __future__ import annotations

from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ClientConfig(BaseModel):
    """Configuration for an integro client.

    Attributes:
        url: The HTTP endpoint of the remote dispatcher (http:// or https://)
        auth: Authorization header value, or a callable returning it
        request_options: Extra request options (fetch ``RequestInit`` style),
            or a callable returning them. ``headers`` are merged over the
            defaults, ``method`` overrides POST, other keys are passed to
            ``aiohttp.ClientSession.request``.
        websocket_url: Subscription socket URL; derived from ``url`` if unset
        event_suffix: Suffix marking an event-stream member in a call path
        subscribe_method: Name of the subscription-registration method
    """

    model_config = ConfigDict(
        frozen=False,
        arbitrary_types_allowed=True,  # Allow Callable types
    )

    url: str = Field(..., description="Dispatcher endpoint URL")
    auth: str | Callable[[], str | None] | None = Field(
        default=None,
        description="Authorization value or resolver",
    )
    request_options: dict[str, Any] | Callable[[], dict[str, Any]] | None = Field(
        default=None,
        description="Extra request options or resolver",
    )
    websocket_url: str | None = Field(
        default=None,
        description="Subscription socket URL",
    )
    event_suffix: str = Field(default="$", min_length=1)
    subscribe_method: str = Field(default="subscribe", min_length=1)

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate URL format."""
        if not v:
            raise ValueError("URL cannot be empty")

        valid_schemes = ("http://", "https://")
        if not any(v.startswith(scheme) for scheme in valid_schemes):
            raise ValueError(
                f"URL must start with one of: {', '.join(valid_schemes)}"
            )
        return v

    @field_validator("websocket_url")
    @classmethod
    def validate_websocket_url(cls, v: str | None) -> str | None:
        """Validate the optional WebSocket URL."""
        if v is None:
            return v

        valid_schemes = ("ws://", "wss://")
        if not any(v.startswith(scheme) for scheme in valid_schemes):
            raise ValueError(
                f"WebSocket URL must start with one of: {', '.join(valid_schemes)}"
            )
        return v

    def resolve_auth(self) -> str | None:
        """Return the current authorization value."""
        if callable(self.auth):
            return self.auth()
        return self.auth

    def resolve_request_options(self) -> dict[str, Any]:
        """Return a fresh copy of the current request options."""
        options = self.request_options() if callable(self.request_options) else self.request_options
        return dict(options or {})

    def resolve_websocket_url(self) -> str:
        """Return the subscription socket URL."""
        if self.websocket_url:
            return self.websocket_url
        if self.url.startswith("https://"):
            return "wss://" + self.url[len("https://"):]
        return "ws://" + self.url[len("http://"):]
