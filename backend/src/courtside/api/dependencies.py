"""Shared request helpers for the HTTP routes."""

from fastapi import Request

from courtside.services.court_authority import CourtAuthority

ADMIN_HEADER = "X-Admin-Id"


def get_authority(request: Request) -> CourtAuthority:
    return request.app.state.authority


def admin_id(request: Request) -> str:
    """Acting administrator. Authentication happens in front of this service."""
    return request.headers.get(ADMIN_HEADER) or "admin"
