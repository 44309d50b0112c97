"""
Thin JSON-over-HTTP capability used by every exchange in the chain
"""

import asyncio
import json
from typing import Any, Dict, Optional

import aiohttp

from .errors import DecodeError, RemoteRejectedError, TransportError

# Longest slice of an error body kept on RemoteRejectedError
MAX_ERROR_BODY = 200


class HttpClient:
    """Issues a request and returns the decoded JSON object

    Wraps a caller-owned aiohttp session so connection handling stays
    outside the authentication code.
    """

    def __init__(self, session: aiohttp.ClientSession):
        self.session = session

    async def post_form(self, url: str, data: Dict[str, str]) -> Dict[str, Any]:
        """POST a form-encoded body"""
        return await self._request("POST", url, data=data)

    async def post_json(self, url: str, payload: Dict[str, Any],
                        headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """POST a JSON body"""
        return await self._request("POST", url, json=payload, headers=headers)

    async def get_json(self, url: str, headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """GET a JSON document"""
        return await self._request("GET", url, headers=headers)

    async def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        headers = {"Accept": "application/json"}
        headers.update(kwargs.pop("headers", None) or {})
        try:
            async with self.session.request(method, url, headers=headers, **kwargs) as response:
                body = await response.read()
                status = response.status
                charset = response.charset or "utf-8"
        except asyncio.TimeoutError as e:
            raise TransportError(f"{method} {url} timed out") from e
        except aiohttp.ClientError as e:
            raise TransportError(f"{method} {url} failed: {e}") from e

        if status not in (200, 201):
            excerpt = body.decode("utf-8", errors="replace").strip()[:MAX_ERROR_BODY]
            raise RemoteRejectedError(url, status, excerpt or None)

        try:
            data = json.loads(body.decode(charset))
        except (LookupError, UnicodeDecodeError) as e:
            raise DecodeError(f"{url} returned a body that is not valid {charset}") from e
        except json.JSONDecodeError as e:
            raise DecodeError(f"{url} returned a body that is not JSON") from e

        if not isinstance(data, dict):
            raise DecodeError(f"{url} returned {type(data).__name__}, expected an object")
        return data
