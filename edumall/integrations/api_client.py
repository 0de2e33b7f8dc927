"""Bearer-authenticated aiohttp client for the storefront REST API."""
from __future__ import annotations

import asyncio
from typing import Any

import aiohttp

from edumall.core.config import ApiConfig
from edumall.core.exceptions import AuthenticationRequired, NetworkError
from logging_config import logger


def _error_detail(body: Any) -> str | None:
    if isinstance(body, dict):
        for key in ("error", "detail", "message"):
            value = body.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return None


class ApiClient:
    """Shared HTTP session with uniform error mapping.

    Every failure (connection error, timeout, non-2xx status, non-JSON body
    where JSON is expected) becomes a ``NetworkError``; a 401 becomes
    ``AuthenticationRequired``.
    """

    def __init__(self, config: ApiConfig, session: aiohttp.ClientSession | None = None):
        self.config = config
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.config.timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    def _url(self, path: str) -> str:
        return f"{self.config.base_url}/{path.lstrip('/')}"

    @staticmethod
    def _headers(token: str | None, extra: dict[str, str] | None = None) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if extra:
            headers.update(extra)
        return headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        token: str | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
        expect_json: bool = False,
    ) -> Any:
        """Issue one request and return the decoded JSON body (or ``None``).

        Raises:
            AuthenticationRequired: the server answered 401
            NetworkError: any other failure
        """
        session = await self._get_session()
        url = self._url(path)
        try:
            async with session.request(
                method,
                url,
                json=json,
                headers=self._headers(token, headers),
            ) as response:
                try:
                    body = await response.json(content_type=None)
                except ValueError:
                    body = None

                if response.status == 401:
                    raise AuthenticationRequired(
                        _error_detail(body) or "Your session has expired. Please log in again.",
                        status=401,
                        path=path,
                    )
                if response.status >= 400:
                    message = _error_detail(body) or f"Request failed with status {response.status}"
                    logger.warning("%s %s -> %s: %s", method, path, response.status, message)
                    raise NetworkError(message, status=response.status, path=path)
                if expect_json and body is None:
                    raise NetworkError(
                        "Server returned an unreadable response", status=response.status, path=path
                    )
                return body
        except NetworkError:
            raise
        except asyncio.TimeoutError as exc:
            logger.warning("%s %s timed out", method, path)
            raise NetworkError("The server took too long to respond", path=path) from exc
        except aiohttp.ClientError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise NetworkError("Could not reach the server. Check your connection.", path=path) from exc

    async def get(self, path: str, *, token: str | None = None, **kwargs: Any) -> Any:
        return await self.request("GET", path, token=token, **kwargs)

    async def post(self, path: str, *, token: str | None = None, **kwargs: Any) -> Any:
        return await self.request("POST", path, token=token, **kwargs)

    async def put(self, path: str, *, token: str | None = None, **kwargs: Any) -> Any:
        return await self.request("PUT", path, token=token, **kwargs)

    async def delete(self, path: str, *, token: str | None = None, **kwargs: Any) -> Any:
        return await self.request("DELETE", path, token=token, **kwargs)
