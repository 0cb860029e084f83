"""integro - lazy, batchable RPC client

This package mirrors a remote integro API as a nested proxy. Calls are
deferred until awaited, can be combined into one HTTP exchange with
``batch()``, and event streams are delivered over one shared WebSocket.
"""

from integro.batch import Batch, batch
from integro.client import Client, create_client
from integro.config import ClientConfig
from integro.error import CallError, IntegroError, ServerError
from integro.lazy import LazyCall, SubscriptionCall
from integro.proxy import CallProxy
from integro.subscriptions import SubscriptionMultiplexer
from integro.transport import HttpTransport
from integro.types import CallRequest, CallState, Outcome

__version__ = "0.1.0"

__all__ = [
    # Client
    "Client",
    "ClientConfig",
    "create_client",
    # Calls
    "CallProxy",
    "LazyCall",
    "SubscriptionCall",
    "CallRequest",
    "CallState",
    # Batching
    "Batch",
    "batch",
    "Outcome",
    # Transports
    "HttpTransport",
    "SubscriptionMultiplexer",
    # Errors
    "IntegroError",
    "CallError",
    "ServerError",
]
