"""WebSocket handler for the real-time court channel."""

import asyncio
import json
import logging
from typing import Callable

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import BaseModel, ValidationError

from courtside.api.envelope import validation_details
from courtside.api.schemas import (
    AdminActionRequest,
    ConfirmResultRequest,
    ForceResolveRequest,
    JoinQueueRequest,
    LeaveQueueRequest,
    ReorderQueueRequest,
    RoomRequest,
    ScoreUpdateRequest,
    StartMatchRequest,
)
from courtside.errors import CourtsideError, ErrorCode
from courtside.models.events import (
    ADMIN_ACTION,
    CONFIRM_RESULT,
    COURT_STATUS,
    ERROR,
    JOIN_QUEUE,
    JOIN_ROOM,
    LEAVE_QUEUE,
    LEAVE_ROOM,
    NOTIFICATION,
    NotificationType,
    Room,
    court_status,
    error_event,
    notification,
)
from courtside.services.broadcast_hub import CLOSE_SENTINEL, ChannelConnection
from courtside.services.court_authority import CourtAuthority

logger = logging.getLogger(__name__)

# Close code used when a client cannot keep up with its outbox
CLOSE_TRY_AGAIN_LATER = 1013

Handler = Callable[[CourtAuthority, ChannelConnection, dict], None]


def _parse(model: type[BaseModel], data: dict):
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise CourtsideError(
            ErrorCode.VALIDATION_ERROR,
            "Invalid event data",
            validation_details(e.errors()),
        ) from e


def _notify(connection: ChannelConnection, kind: NotificationType, title: str, message: str) -> None:
    connection.send(NOTIFICATION, notification(kind, title, message, duration=3000))


# ----------------------------------------------------------------------
# Inbound event handlers
# ----------------------------------------------------------------------


def _on_join_queue(authority: CourtAuthority, connection: ChannelConnection, data: dict) -> None:
    body = _parse(JoinQueueRequest, data)
    team = authority.join_queue(body.name, body.members, body.contact_info)
    _notify(
        connection,
        NotificationType.SUCCESS,
        "Joined Queue",
        f'Team "{team.name}" successfully joined at position {team.position}',
    )


def _on_leave_queue(authority: CourtAuthority, connection: ChannelConnection, data: dict) -> None:
    body = _parse(LeaveQueueRequest, data)
    authority.leave_queue(body.team_id)


def _on_confirm_result(authority: CourtAuthority, connection: ChannelConnection, data: dict) -> None:
    body = _parse(ConfirmResultRequest, data)
    final_score = None
    if body.final_score is not None:
        final_score = (body.final_score.score1, body.final_score.score2)
    authority.confirm_result(body.match_id, body.team_id, body.confirmed, final_score)


def _on_join_room(authority: CourtAuthority, connection: ChannelConnection, data: dict) -> None:
    room = _room(data)
    authority.hub.join(connection.id, room)
    _notify(connection, NotificationType.INFO, "Room Joined", f"Joined {room} room")


def _on_leave_room(authority: CourtAuthority, connection: ChannelConnection, data: dict) -> None:
    room = _room(data)
    authority.hub.leave(connection.id, room)


def _room(data: dict) -> str:
    room = _parse(RoomRequest, data).room
    if room not in {r.value for r in Room}:
        raise CourtsideError(ErrorCode.INVALID_ROOM, "Invalid room name", {"room": room})
    return room


def _on_admin_action(authority: CourtAuthority, connection: ChannelConnection, data: dict) -> None:
    if not authority.hub.in_room(connection.id, Room.ADMIN.value):
        raise CourtsideError(ErrorCode.ADMIN_REQUIRED, "Admin room membership required")
    body = _parse(AdminActionRequest, data)
    actor = body.admin_id or f"connection:{connection.id}"
    payload = body.data

    if body.action == "start_match":
        start = _parse(StartMatchRequest, payload)
        authority.start_next_match(start.target_score, started_by=actor)
    elif body.action == "update_score":
        match_id = _require_field(payload, "matchId")
        score = _parse(ScoreUpdateRequest, payload)
        authority.update_score(match_id, score.score1, score.score2)
    elif body.action == "force_resolve_match":
        match_id = _require_field(payload, "matchId")
        scores = _parse(ForceResolveRequest, payload)
        authority.force_resolve(match_id, actor, scores.score1, scores.score2)
    elif body.action == "update_queue_order":
        reorder = _parse(ReorderQueueRequest, payload)
        authority.reorder_queue(reorder.team_ids, reordered_by=actor)
    elif body.action == "remove_team":
        authority.remove_team(_require_field(payload, "teamId"), removed_by=actor)
    else:
        raise CourtsideError(ErrorCode.UNKNOWN_ACTION, "Unknown admin action", {"action": body.action})
    logger.info(f"Admin action {body.action} performed by {actor}")


def _require_field(payload: dict, name: str) -> str:
    value = payload.get(name)
    if not isinstance(value, str) or not value:
        raise CourtsideError(ErrorCode.VALIDATION_ERROR, f"{name} is required", {"field": name})
    return value


HANDLERS: dict[str, Handler] = {
    JOIN_QUEUE: _on_join_queue,
    LEAVE_QUEUE: _on_leave_queue,
    CONFIRM_RESULT: _on_confirm_result,
    JOIN_ROOM: _on_join_room,
    LEAVE_ROOM: _on_leave_room,
    ADMIN_ACTION: _on_admin_action,
}


def handle_frame(authority: CourtAuthority, connection: ChannelConnection, raw: str) -> None:
    """Decode one inbound frame and run its handler. Failures go back to the sender only."""
    event = None
    try:
        try:
            frame = json.loads(raw)
        except json.JSONDecodeError as e:
            raise CourtsideError(ErrorCode.VALIDATION_ERROR, "Malformed frame") from e
        if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
            raise CourtsideError(ErrorCode.VALIDATION_ERROR, "Frame must carry an event name")
        event = frame["event"]
        data = frame.get("data") or {}
        if not isinstance(data, dict):
            raise CourtsideError(ErrorCode.VALIDATION_ERROR, "Frame data must be an object")

        handler = HANDLERS.get(event)
        if handler is None:
            raise CourtsideError(ErrorCode.UNKNOWN_EVENT, "Unknown event", {"event": event})
        handler(authority, connection, data)
    except CourtsideError as e:
        logger.warning(f"Connection {connection.id} {event or 'frame'} rejected: {e.code.value} {e.message}")
        connection.send(ERROR, error_event(e, action=event))
    except Exception:
        logger.exception(f"Error handling {event} from connection {connection.id}")
        error = CourtsideError(ErrorCode.INTERNAL_ERROR, "Internal server error")
        connection.send(ERROR, error_event(error, action=event))


async def _pump_outbox(websocket: WebSocket, connection: ChannelConnection) -> None:
    """Write queued frames to the socket in order."""
    while True:
        frame = await connection.outbox.get()
        if frame is CLOSE_SENTINEL:
            await websocket.close(code=CLOSE_TRY_AGAIN_LATER, reason="Outbox overflow")
            return
        await websocket.send_json(frame)


async def channel_websocket(websocket: WebSocket, authority: CourtAuthority) -> None:
    """Serve one client: auto-join public, push the court status, then read frames.

    Args:
        websocket: The WebSocket connection
        authority: The court authority owning all state
    """
    await websocket.accept()
    hub = authority.hub
    connection = hub.register(websocket)
    hub.join(connection.id, Room.PUBLIC.value)
    connection.send(COURT_STATUS, court_status(authority.court_snapshot()))

    writer_task = asyncio.create_task(_pump_outbox(websocket, connection))
    try:
        while True:
            raw = await websocket.receive_text()
            if not authority.rate_limiter.allow(connection.id):
                error = CourtsideError(ErrorCode.RATE_LIMIT_EXCEEDED, "Too many events, slow down")
                connection.send(ERROR, error_event(error))
                continue
            handle_frame(authority, connection, raw)
    except WebSocketDisconnect:
        pass
    except RuntimeError as e:
        # Raised by receive after the writer closed an overflowed socket
        logger.info(f"Connection {connection.id} closed: {e}")
    finally:
        writer_task.cancel()
        try:
            await writer_task
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.info(f"Writer for connection {connection.id} stopped: {e}")
        hub.unregister(connection.id)
        authority.rate_limiter.reset(connection.id)
