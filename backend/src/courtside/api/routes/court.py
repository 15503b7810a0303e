"""REST endpoint for the court status snapshot."""

from fastapi import APIRouter, Request

from courtside.api.dependencies import get_authority
from courtside.api.envelope import success

router = APIRouter(prefix="/api/court", tags=["court"])


@router.get("/status")
async def get_court_status(request: Request):
    return success(get_authority(request).court_snapshot().to_dict())
