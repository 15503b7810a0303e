"""REST endpoints for the current match and result confirmation."""

from fastapi import APIRouter, Query, Request

from courtside.api.dependencies import get_authority
from courtside.api.envelope import success
from courtside.api.schemas import ConfirmResultRequest, ScoreUpdateRequest

router = APIRouter(prefix="/api/match", tags=["match"])


@router.get("/current")
async def get_current_match(request: Request):
    """Latest match snapshot with its revision."""
    return success(get_authority(request).current_match_snapshot())


@router.post("/confirm")
async def confirm_result(request: Request, body: ConfirmResultRequest):
    final_score = None
    if body.final_score is not None:
        final_score = (body.final_score.score1, body.final_score.score2)
    match = get_authority(request).confirm_result(
        body.match_id,
        body.team_id,
        body.confirmed,
        final_score,
    )
    return success({"match": match.to_dict()})


@router.get("/history")
async def get_match_history(request: Request, limit: int = Query(10, ge=1, le=100)):
    """Most recent archived matches, newest first."""
    return success({"matches": get_authority(request).archive.recent_matches(limit)})


@router.get("/team/{team_id}/record")
async def get_team_record(request: Request, team_id: str):
    return success(get_authority(request).archive.team_record(team_id))


@router.get("/{match_id}")
async def get_match(request: Request, match_id: str):
    return success({"match": get_authority(request).get_match(match_id)})


@router.get("/{match_id}/events")
async def get_match_events(request: Request, match_id: str):
    events = get_authority(request).match_events(match_id)
    return success({"matchId": match_id, "events": events})


@router.put("/{match_id}/score")
async def update_score(request: Request, match_id: str, body: ScoreUpdateRequest):
    match = get_authority(request).update_score(match_id, body.score1, body.score2)
    return success({"match": match.to_dict()})
