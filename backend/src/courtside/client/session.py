"""High-level client: one connection, one router, three replicas."""

import logging

import httpx

from courtside.client.connection import ConnectionManager
from courtside.client.court_tracker import CourtStatusTracker
from courtside.client.event_router import EventRouter, Handler, SubscriptionHandle
from courtside.client.snapshot import SnapshotClient
from courtside.client.stores import MatchStore, QueueStore
from courtside.client.transport import ChannelFactory, open_websocket
from courtside.config import ClientSettings
from courtside.models.connection import ConnectionStatus
from courtside.models.events import (
    ADMIN_ACTION,
    CONFIRM_RESULT,
    JOIN_QUEUE,
    JOIN_ROOM,
    LEAVE_QUEUE,
    LEAVE_ROOM,
)

logger = logging.getLogger(__name__)


class CourtsideClient:
    """Wires the connection manager, event router, snapshot client and stores.

    Usage:
        async with CourtsideClient() as client:
            client.join_queue("Smashers", members=2)
    """

    def __init__(
        self,
        settings: ClientSettings | None = None,
        channel_factory: ChannelFactory = open_websocket,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.settings = settings or ClientSettings()
        self.router = EventRouter()
        self.connection = ConnectionManager(
            self.settings.channel_url,
            self.router,
            factory=channel_factory,
            reconnection_attempts=self.settings.reconnection_attempts,
            reconnection_delay=self.settings.reconnection_delay,
            reconnection_delay_max=self.settings.reconnection_delay_max,
            connection_timeout=self.settings.connection_timeout,
        )
        self.router.attach_sender(self.connection.send)
        self.snapshots = SnapshotClient(
            self.settings.server_url,
            timeout=self.settings.snapshot_timeout,
            client=http_client,
        )
        self.queue = QueueStore(self.router, self.snapshots.fetch_queue)
        self.match = MatchStore(self.router, self.snapshots.fetch_current_match)
        self.court = CourtStatusTracker(self.router, self.snapshots.fetch_court_status)

    async def __aenter__(self) -> "CourtsideClient":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def status(self) -> ConnectionStatus:
        return self.connection.status

    async def start(self) -> None:
        if self.settings.auto_connect:
            await self.connection.connect()

    async def close(self) -> None:
        await self.connection.disconnect()
        for store in (self.queue, self.match, self.court):
            store.close()
        await self.router.drain()
        await self.snapshots.aclose()

    # Subscriptions

    def on(self, event: str, handler: Handler) -> SubscriptionHandle:
        return self.router.subscribe(event, handler)

    def off(self, handle: SubscriptionHandle) -> bool:
        return self.router.unsubscribe(handle)

    # Actions. Each returns False when the channel is down.

    def join_queue(self, name: str, members: int, contact_info: str | None = None) -> bool:
        payload = {"teamName": name, "members": members}
        if contact_info:
            payload["contactInfo"] = contact_info
        return self.router.emit(JOIN_QUEUE, payload)

    def leave_queue(self, team_id: str) -> bool:
        return self.router.emit(LEAVE_QUEUE, {"teamId": team_id})

    def confirm_result(
        self,
        match_id: str,
        team_id: str,
        confirmed: bool,
        final_score: tuple[int, int] | None = None,
    ) -> bool:
        payload = {"matchId": match_id, "teamId": team_id, "confirmed": confirmed}
        if final_score is not None:
            payload["finalScore"] = {"score1": final_score[0], "score2": final_score[1]}
        return self.router.emit(CONFIRM_RESULT, payload)

    def join_room(self, room: str) -> bool:
        return self.router.emit(JOIN_ROOM, {"room": room})

    def leave_room(self, room: str) -> bool:
        return self.router.emit(LEAVE_ROOM, {"room": room})

    def admin_action(self, action: str, data: dict | None = None, admin_id: str | None = None) -> bool:
        payload = {"action": action, "data": data or {}}
        if admin_id:
            payload["adminId"] = admin_id
        return self.router.emit(ADMIN_ACTION, payload)
