"""aiohttp transport adapter for the remote store's PHP endpoints."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import aiohttp

from .config import ClientConfig
from .session_store import SessionContext

logger = logging.getLogger(__name__)

GET = "GET"
POST = "POST"


class FailureKind(str, Enum):
    FORBIDDEN = "forbidden"
    ENDPOINT_MISSING = "endpoint_missing"
    SERVER_ERROR = "server_error"
    MALFORMED_RESPONSE = "malformed_response"
    UNREACHABLE = "unreachable"
    REJECTED = "rejected"


@dataclass(frozen=True)
class TransportFailure:
    kind: FailureKind
    message: str

    @property
    def is_connectivity(self) -> bool:
        return self.kind is FailureKind.UNREACHABLE


def is_failure(result: Any) -> bool:
    return isinstance(result, TransportFailure)


class Transport:
    """Issues one request per call and classifies the outcome.

    ``call`` returns the decoded JSON on success, a :class:`TransportFailure`
    on any classified failure, or ``None`` when the store rejected the session
    token. Nothing is raised past this boundary.
    """

    def __init__(
        self,
        config: ClientConfig,
        session: SessionContext,
        *,
        http: aiohttp.ClientSession | None = None,
    ) -> None:
        self.config = config
        self.session = session
        self._http = http
        self._owns_http = http is None
        self._unauthorized_listeners: List[Callable[[], None]] = []

    def add_unauthorized_listener(self, callback: Callable[[], None]) -> None:
        self._unauthorized_listeners.append(callback)

    async def __aenter__(self) -> "Transport":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        if self._http is not None and self._owns_http:
            await self._http.close()
        self._http = None

    def _client(self) -> aiohttp.ClientSession:
        if self._http is None or self._http.closed:
            timeout = aiohttp.ClientTimeout(total=self.config.request_timeout_s)
            self._http = aiohttp.ClientSession(timeout=timeout)
            self._owns_http = True
        return self._http

    def _params(self, params: Optional[Dict[str, Any]]) -> Dict[str, str]:
        query = {key: str(value) for key, value in (params or {}).items() if value is not None}
        token = self.session.token
        if token:
            query[self.config.session_param] = token
        return query

    async def call(
        self,
        endpoint: str,
        method: str = GET,
        body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        url = self.config.endpoint_url(endpoint)
        query = self._params(params)
        payload = body if body is not None and method != GET else None
        logger.debug("%s %s", method, endpoint)
        try:
            async with self._client().request(
                method,
                url,
                params=query,
                json=payload,
                headers={"Accept": "application/json"},
            ) as response:
                status = response.status
                raw = await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
            logger.warning("network failure on %s: %s", endpoint, exc)
            return TransportFailure(
                FailureKind.UNREACHABLE,
                "Could not connect to the server. Check the URL and your connection.",
            )
        logger.debug("%s %s -> %s", method, endpoint, status)
        return self._classify(endpoint, status, raw)

    def _classify(self, endpoint: str, status: int, raw: bytes) -> Any:
        if status == 403:
            logger.warning("forbidden: %s", endpoint)
            return TransportFailure(FailureKind.FORBIDDEN, "Access forbidden. Check server permissions.")
        if status == 401:
            logger.warning("session rejected by store on %s; clearing local session", endpoint)
            self.session.clear()
            for callback in list(self._unauthorized_listeners):
                callback()
            return None
        if status == 404:
            logger.warning("endpoint missing: %s", endpoint)
            return TransportFailure(FailureKind.ENDPOINT_MISSING, f"Endpoint not found: {endpoint}")

        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError:
            return TransportFailure(FailureKind.MALFORMED_RESPONSE, "Invalid response from the server.")
        if text.strip().startswith("<"):
            logger.warning("markup instead of JSON from %s (status %s)", endpoint, status)
            return TransportFailure(FailureKind.SERVER_ERROR, "Server error. Check the server logs.")
        try:
            decoded = json.loads(text)
        except json.JSONDecodeError:
            logger.warning("unparseable JSON from %s", endpoint)
            return TransportFailure(FailureKind.MALFORMED_RESPONSE, "Invalid response from the server.")

        if isinstance(decoded, dict) and decoded.get("success") is False:
            message = decoded.get("message")
            return TransportFailure(
                FailureKind.REJECTED,
                message if isinstance(message, str) and message else "The server rejected the request.",
            )
        if status >= 500:
            return TransportFailure(FailureKind.SERVER_ERROR, "Server error. Check the server logs.")
        return decoded
