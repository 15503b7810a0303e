"""Client library: connection, event routing and state replicas."""

from courtside.client.connection import ConnectionManager, backoff_delay
from courtside.client.court_tracker import CourtStatusTracker
from courtside.client.event_router import EventRouter, SubscriptionHandle
from courtside.client.session import CourtsideClient
from courtside.client.snapshot import SnapshotClient, SnapshotResult
from courtside.client.stores import MatchStore, QueueStore
from courtside.client.transport import ChannelClosed, WebSocketChannel, open_websocket

__all__ = [
    "ConnectionManager",
    "backoff_delay",
    "CourtStatusTracker",
    "EventRouter",
    "SubscriptionHandle",
    "CourtsideClient",
    "SnapshotClient",
    "SnapshotResult",
    "MatchStore",
    "QueueStore",
    "ChannelClosed",
    "WebSocketChannel",
    "open_websocket",
]
