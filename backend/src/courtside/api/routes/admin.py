"""Administrative endpoints. Callers are authenticated upstream."""

import logging

from fastapi import APIRouter, Request

from courtside.api.dependencies import admin_id, get_authority
from courtside.api.envelope import success
from courtside.api.schemas import (
    ChampionModeRequest,
    CourtUpdateRequest,
    ForceResolveRequest,
    ReorderQueueRequest,
    ScoreUpdateRequest,
    StartMatchRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.post("/match/start", status_code=201)
async def start_match(request: Request, body: StartMatchRequest | None = None):
    target_score = body.target_score if body else None
    match = get_authority(request).start_next_match(target_score, started_by=admin_id(request))
    return success({"match": match.to_dict()}, message="Match started")


@router.put("/match/{match_id}")
async def correct_match_score(request: Request, match_id: str, body: ScoreUpdateRequest):
    match = get_authority(request).correct_score(
        match_id,
        body.score1,
        body.score2,
        updated_by=admin_id(request),
    )
    return success({"match": match.to_dict()})


@router.post("/match/{match_id}/force-resolve")
async def force_resolve(request: Request, match_id: str, body: ForceResolveRequest | None = None):
    actor = admin_id(request)
    match = get_authority(request).force_resolve(
        match_id,
        actor,
        body.score1 if body else None,
        body.score2 if body else None,
    )
    logger.info(f"Match {match_id} force resolved by {actor} via HTTP")
    return success({"match": match.to_dict()}, message="Match resolved")


@router.put("/queue/reorder")
async def reorder_queue(request: Request, body: ReorderQueueRequest):
    authority = get_authority(request)
    teams = authority.reorder_queue(body.team_ids, reordered_by=admin_id(request))
    return success({"teams": [team.to_dict() for team in teams]})


@router.delete("/teams/{team_id}")
async def remove_team(request: Request, team_id: str):
    team = get_authority(request).remove_team(team_id, removed_by=admin_id(request))
    return success({"team": team.to_dict()}, message=f"{team.name} removed")


@router.put("/court/status")
async def update_court_status(request: Request, body: CourtUpdateRequest):
    status = get_authority(request).update_court(body.is_open, body.mode, body.cooldown_minutes)
    return success(status.to_dict())


@router.post("/court/champion-mode")
async def champion_mode(request: Request, body: ChampionModeRequest | None = None):
    minutes = body.cooldown_minutes if body else None
    return success(get_authority(request).set_champion_return_mode(minutes).to_dict())


@router.post("/court/regular-mode")
async def regular_mode(request: Request):
    return success(get_authority(request).set_regular_mode().to_dict())


@router.post("/court/open")
async def open_court(request: Request):
    return success(get_authority(request).open_court().to_dict())


@router.post("/court/close")
async def close_court(request: Request):
    return success(get_authority(request).close_court().to_dict())
