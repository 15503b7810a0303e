"""REST endpoints for the team queue."""

from fastapi import APIRouter, Request

from courtside.api.dependencies import get_authority
from courtside.api.envelope import success
from courtside.api.schemas import JoinQueueRequest

router = APIRouter(prefix="/api/queue", tags=["queue"])


@router.get("")
async def get_queue(request: Request):
    """Queue snapshot used for catch-up after every (re)connect."""
    return success(get_authority(request).queue_snapshot().to_dict())


@router.post("/join", status_code=201)
async def join_queue(request: Request, body: JoinQueueRequest):
    authority = get_authority(request)
    team = authority.join_queue(body.name, body.members, body.contact_info)
    return success(
        {"team": team.to_dict(), "position": team.position},
        message=f"{team.name} joined the queue",
    )


@router.delete("/leave/{team_id}")
async def leave_queue(request: Request, team_id: str):
    team = get_authority(request).leave_queue(team_id)
    return success({"team": team.to_dict()}, message=f"{team.name} left the queue")


@router.get("/position/{team_id}")
async def get_position(request: Request, team_id: str):
    return success(get_authority(request).queue.position_of(team_id))
