"""Shared test doubles for the authentication chain."""

import os
from typing import Any, Dict, List, Optional, Tuple

import pytest

from mcclient.auth.authentication import (
    MINECRAFT_LOGIN_URL,
    MINECRAFT_PROFILE_URL,
    TOKEN_URL,
    XBOX_USER_AUTH_URL,
    XSTS_AUTH_URL,
)

CONFIG_KEYS = ("CACHE_ENABLED", "CACHE_FILE", "CLIENT_ID", "OPEN_BROWSER", "HTTP_TIMEOUT")


class FakeHttp:
    """Stands in for HttpClient, answering from canned responses by URL."""

    def __init__(self, responses: Dict[str, Any]):
        self.responses = responses
        self.calls: List[Tuple[str, str, Any]] = []

    def _answer(self, method: str, url: str, body: Any) -> Dict[str, Any]:
        self.calls.append((method, url, body))
        response = self.responses[url]
        if isinstance(response, Exception):
            raise response
        return response

    async def post_form(self, url: str, data: Dict[str, str]) -> Dict[str, Any]:
        return self._answer("POST", url, data)

    async def post_json(self, url: str, payload: Dict[str, Any],
                        headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        return self._answer("POST", url, payload)

    async def get_json(self, url: str, headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        return self._answer("GET", url, headers)

    def urls(self) -> List[str]:
        return [url for _, url, _ in self.calls]

    def body_for(self, url: str) -> Any:
        return next(body for _, called, body in self.calls if called == url)


class FakePrompt:
    """Records sign-in URLs and hands back a fixed code."""

    def __init__(self, code: str = "M.C123_auth-code"):
        self.code = code
        self.urls: List[str] = []

    def acquire(self, url: str) -> str:
        self.urls.append(url)
        return self.code


def canned_responses() -> Dict[str, Any]:
    return {
        TOKEN_URL: {
            "token_type": "bearer",
            "scope": "XboxLive.signin offline_access",
            "expires_in": 3600,
            "access_token": "ms-access-token",
            "refresh_token": "ms-refresh-token-new",
        },
        XBOX_USER_AUTH_URL: {
            "IssueInstant": "2024-01-01T00:00:00.0000000Z",
            "NotAfter": "2024-01-15T00:00:00.0000000Z",
            "Token": "xbl-user-token",
            "DisplayClaims": {"xui": [{"uhs": "1234567890123456"}]},
        },
        XSTS_AUTH_URL: {
            "IssueInstant": "2024-01-01T00:00:00.0000000Z",
            "NotAfter": "2024-01-01T16:00:00.0000000Z",
            "Token": "xsts-security-token",
            "DisplayClaims": {"xui": [{"uhs": "1234567890123456"}]},
        },
        MINECRAFT_LOGIN_URL: {
            "username": "6f1e4b2a-0000-0000-0000-000000000000",
            "access_token": "minecraft-access-token",
            "token_type": "Bearer",
            "expires_in": 86400,
        },
        MINECRAFT_PROFILE_URL: {
            "id": "069a79f444e94726a5befca90e38aaf5",
            "name": "Notch",
        },
    }


@pytest.fixture(autouse=True)
def clean_environ():
    """load_dotenv writes straight into os.environ, so restore it per test."""
    saved = dict(os.environ)
    for key in CONFIG_KEYS:
        os.environ.pop(key, None)
    yield
    os.environ.clear()
    os.environ.update(saved)


@pytest.fixture
def fake_http() -> FakeHttp:
    return FakeHttp(canned_responses())


@pytest.fixture
def fake_prompt() -> FakePrompt:
    return FakePrompt()
