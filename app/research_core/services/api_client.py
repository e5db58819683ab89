"""
Purpose: Thin async client around the research service HTTP API.
One place for base URL, auth header, timeouts and error normalization.

Endpoints (relative to the base URL):
- GET    /history              -> list of summaries
- GET    /history/{chatId}     -> list of messages
- POST   /ask                  -> chunked `data: {...}` stream
- PUT    /history/rename       {chatId, newTitle}
- DELETE /history/{chatId}
- DELETE /history

Every httpx error and every non-success status is raised as ApiError.
A fresh AsyncClient is opened per call so the client can be driven from
successive event loops (one asyncio.run per UI action).

Testing: Pass `transport=httpx.MockTransport(handler)`.
"""

from __future__ import annotations
from collections.abc import AsyncIterator
from typing import Any, Optional

import httpx

from .. import config


class ApiError(RuntimeError):
    """Transport failure or non-success response from the research service."""

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def auth_headers(token: str) -> dict[str, str]:
    """Bearer header when authenticated; no header for guests."""
    return {"Authorization": f"Bearer {token}"} if token else {}


class HttpResearchApi:
    def __init__(
        self,
        base_url: str = config.API_BASE_URL,
        *,
        timeout: float = config.API_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not base_url:
            raise RuntimeError("Missing RESEARCH_API_BASE_URL")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _client(self, *, timeout: Optional[httpx.Timeout] = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or httpx.Timeout(self.timeout),
            transport=self._transport,
        )

    @staticmethod
    def _check(resp: httpx.Response) -> None:
        if not resp.is_success:
            raise ApiError(
                f"{resp.request.method} {resp.request.url.path} "
                f"failed with status {resp.status_code}",
                status_code=resp.status_code,
            )

    async def _request(
        self, method: str, path: str, token: str, *, json: Any = None
    ) -> httpx.Response:
        try:
            async with self._client() as client:
                resp = await client.request(
                    method, path, json=json, headers=auth_headers(token)
                )
        except httpx.HTTPError as e:
            raise ApiError(f"{method} {path} failed: {e}") from e
        self._check(resp)
        return resp

    @staticmethod
    def _json_list(resp: httpx.Response) -> list[dict]:
        try:
            data = resp.json()
        except ValueError as e:
            raise ApiError(f"Invalid JSON from {resp.request.url.path}") from e
        if not isinstance(data, list):
            raise ApiError(f"Expected a JSON array from {resp.request.url.path}")
        return [item for item in data if isinstance(item, dict)]

    async def fetch_summaries(self, token: str) -> list[dict]:
        resp = await self._request("GET", "/history", token)
        return self._json_list(resp)

    async def fetch_thread(self, token: str, chat_id: str) -> list[dict]:
        resp = await self._request("GET", f"/history/{chat_id}", token)
        return self._json_list(resp)

    async def stream_answer(self, token: str, payload: dict) -> AsyncIterator[bytes]:
        """
        Yield raw body chunks of POST /ask until the server closes the body.
        Closing this generator early closes the response.
        """
        headers = {"Content-Type": "application/json", **auth_headers(token)}
        timeout = httpx.Timeout(self.timeout, read=None)
        try:
            async with self._client(timeout=timeout) as client:
                async with client.stream(
                    "POST", "/ask", json=payload, headers=headers
                ) as resp:
                    self._check(resp)
                    async for chunk in resp.aiter_bytes():
                        if chunk:
                            yield chunk
        except httpx.HTTPError as e:
            raise ApiError(f"POST /ask failed: {e}") from e

    async def rename_thread(self, token: str, chat_id: str, new_title: str) -> None:
        await self._request(
            "PUT",
            "/history/rename",
            token,
            json={"chatId": chat_id, "newTitle": new_title},
        )

    async def delete_thread(self, token: str, chat_id: str) -> None:
        await self._request("DELETE", f"/history/{chat_id}", token)

    async def clear_history(self, token: str) -> None:
        await self._request("DELETE", "/history", token)
