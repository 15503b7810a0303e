"""HTTP snapshot fetches used for catch-up after every (re)connect."""

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from courtside.errors import CourtsideError, ErrorCode

logger = logging.getLogger(__name__)


@dataclass
class SnapshotResult:
    """Outcome of one fetch. Exactly one of `data` / `error` is set."""

    data: Any = None
    error: CourtsideError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _error_from_envelope(body: dict, status_code: int) -> CourtsideError:
    error = body.get("error") or {}
    try:
        code = ErrorCode(error.get("code"))
    except ValueError:
        code = ErrorCode.INTERNAL_ERROR
    return CourtsideError(
        code,
        error.get("message") or f"Request failed with status {status_code}",
        error.get("details"),
    )


class SnapshotClient:
    """Reads the authority's snapshot endpoints.

    Pass an existing `httpx.AsyncClient` to share a connection pool or to route
    requests to an in-process app.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def fetch_queue(self) -> SnapshotResult:
        return await self._get("/api/queue")

    async def fetch_current_match(self) -> SnapshotResult:
        return await self._get("/api/match/current")

    async def fetch_court_status(self) -> SnapshotResult:
        return await self._get("/api/court/status")

    async def _get(self, path: str) -> SnapshotResult:
        try:
            response = await self._client.get(path)
            body = response.json()
        except httpx.HTTPError as e:
            logger.warning(f"Snapshot fetch {path} failed: {e!r}")
            return SnapshotResult(
                error=CourtsideError(ErrorCode.NETWORK_ERROR, "Network error", {"path": path})
            )
        except ValueError:
            logger.warning(f"Snapshot fetch {path} returned a non-JSON body")
            return SnapshotResult(
                error=CourtsideError(ErrorCode.NETWORK_ERROR, "Invalid response", {"path": path})
            )

        if not isinstance(body, dict) or not body.get("success"):
            return SnapshotResult(error=_error_from_envelope(body if isinstance(body, dict) else {}, response.status_code))
        return SnapshotResult(data=body.get("data"))
