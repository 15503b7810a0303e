"""Authoritative court services."""

from courtside.services.broadcast_hub import BroadcastHub, ChannelConnection
from courtside.services.court_authority import CourtAuthority
from courtside.services.court_service import CourtService
from courtside.services.match_service import MatchService
from courtside.services.queue_service import QueueService
from courtside.services.rate_limiter import RateLimiter
from courtside.services.timeout_service import MatchTimeoutService

__all__ = [
    "BroadcastHub",
    "ChannelConnection",
    "CourtAuthority",
    "CourtService",
    "MatchService",
    "QueueService",
    "RateLimiter",
    "MatchTimeoutService",
]
