"""aiohttp client for the endpoints a dashboard polls and mutates."""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import aiohttp

from clinicflow.core.config import get_settings
from clinicflow.core.exceptions import SyncFetchError

logger = logging.getLogger("clinicflow")


@dataclass
class QueuedOperation:
    """A client-originated mutation waiting to be sent, e.g. "start checkup"."""

    op_type: str
    method: str
    path: str
    payload: Optional[Dict[str, Any]] = None
    attempts: int = 0
    queued_at: float = field(default_factory=time.monotonic)


class DashboardApiClient:
    """Thin wrapper over the queue, checkups and mutation endpoints.

    Fetches return the ``data`` of the API envelope. Any transport error or
    non-2xx status raises ``SyncFetchError`` (carrying the status when the
    server answered); timeouts are left to the caller.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        doctor_id: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        settings = get_settings().sync
        self.base_url = (base_url if base_url is not None else settings.base_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.api_key
        self.doctor_id = doctor_id
        self._session = session
        self._owns_session = session is None

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["X-API-Key"] = self.api_key
        return headers

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None,
                       params: Optional[Dict[str, str]] = None) -> Any:
        session = await self._get_session()
        url = f"{self.base_url}{path}"
        try:
            async with session.request(
                method,
                url,
                json=payload if method.upper() != "GET" else None,
                params=params,
                headers=self._headers(),
            ) as resp:
                if resp.status >= 400:
                    text = await resp.text()
                    raise SyncFetchError(
                        f"{method} {path} failed: {resp.status} {text[:200]}",
                        status=resp.status,
                        details={"method": method, "path": path},
                    )
                body = await resp.json()
        except aiohttp.ClientError as e:
            raise SyncFetchError(f"{method} {path} failed: {e}") from e

        if isinstance(body, dict) and "data" in body:
            return body["data"]
        return body

    async def fetch_queue(self) -> List[Dict[str, Any]]:
        params = {"doctor_id": self.doctor_id} if self.doctor_id else None
        return await self._request("GET", "/doctor-queue/", params=params)

    async def fetch_todays_checkups(self) -> List[Dict[str, Any]]:
        return await self._request("GET", "/checkups/today")

    async def execute(self, operation: QueuedOperation) -> Any:
        logger.debug("Executing queued operation %s %s %s", operation.op_type, operation.method, operation.path)
        return await self._request(operation.method, operation.path, payload=operation.payload)

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
