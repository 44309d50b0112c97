"""
Authentication chain for Minecraft: Java Edition

Microsoft OAuth -> Xbox Live user token -> XSTS token -> Minecraft token.
Every step consumes the token produced by the one before it, so the chain
runs strictly in order with one request in flight at a time.
"""

import asyncio
import threading
import webbrowser
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Union
from urllib.parse import urlencode

from .cache import CachedCredentials, mask_secret
from .errors import AuthError, MissingClaimError
from .http import HttpClient

# The Azure application client ID
CLIENT_ID = "54473e32-df8f-42e9-a649-9419b0dab9d3"

AUTHORIZE_URL = "https://login.microsoftonline.com/consumers/oauth2/v2.0/authorize"
TOKEN_URL = "https://login.microsoftonline.com/consumers/oauth2/v2.0/token"
REDIRECT_URI = "https://mccteam.github.io/redirect.html"
SCOPE = "XboxLive.signin offline_access"

XBOX_USER_AUTH_URL = "https://user.auth.xboxlive.com/user/authenticate"
XSTS_AUTH_URL = "https://xsts.auth.xboxlive.com/xsts/authorize"
XBOX_RELYING_PARTY = "http://auth.xboxlive.com"
MINECRAFT_RELYING_PARTY = "rp://api.minecraftservices.com/"

MINECRAFT_LOGIN_URL = "https://api.minecraftservices.com/authentication/login_with_xbox"
MINECRAFT_PROFILE_URL = "https://api.minecraftservices.com/minecraft/profile"
IDENTITY_SCHEME = "XBL3.0"


@dataclass
class MicrosoftTokens:
    access_token: str
    refresh_token: str
    expires_in: int

    def __repr__(self) -> str:
        return (
            f"MicrosoftTokens(access_token={mask_secret(self.access_token)!r}, "
            f"refresh_token={mask_secret(self.refresh_token)!r}, expires_in={self.expires_in})"
        )


@dataclass
class XboxUserToken:
    token: str
    user_hash: str

    def __repr__(self) -> str:
        return f"XboxUserToken(token={mask_secret(self.token)!r}, user_hash={self.user_hash!r})"


@dataclass
class MinecraftToken:
    access_token: str
    expires_in: int

    def __repr__(self) -> str:
        return f"MinecraftToken(access_token={mask_secret(self.access_token)!r}, expires_in={self.expires_in})"


@dataclass
class MinecraftProfile:
    id: str
    name: str


@dataclass
class FromCache:
    """The cached Minecraft token was still valid, nothing was requested"""


@dataclass
class FromLogin:
    """A fresh login happened; the caller persists these values"""

    refresh_credential: str
    expires_in: int

    def __repr__(self) -> str:
        return f"FromLogin(refresh_credential={mask_secret(self.refresh_credential)!r}, expires_in={self.expires_in})"


@dataclass
class AuthenticationResult:
    minecraft_token: str
    retrieve_type: Union[FromCache, FromLogin]

    def __repr__(self) -> str:
        return (
            f"AuthenticationResult(minecraft_token={mask_secret(self.minecraft_token)!r}, "
            f"retrieve_type={self.retrieve_type!r})"
        )


def _require(data: Dict[str, Any], key: str, kind: type, step: str) -> Any:
    """Fetch a top-level response field of the expected type"""
    value = data.get(key)
    if not isinstance(value, kind) or isinstance(value, bool):
        raise MissingClaimError(step, key)
    return value


def extract_user_hash(data: Dict[str, Any], step: str = "Xbox Live user") -> str:
    """Project DisplayClaims.xui[0].uhs out of an Xbox Live response"""
    path = "DisplayClaims.xui[0].uhs"
    claims = data.get("DisplayClaims")
    if not isinstance(claims, dict):
        raise MissingClaimError(step, path)
    xui = claims.get("xui")
    if not isinstance(xui, list) or not xui or not isinstance(xui[0], dict):
        raise MissingClaimError(step, path)
    uhs = xui[0].get("uhs")
    if not isinstance(uhs, str) or not uhs:
        raise MissingClaimError(step, path)
    return uhs


class CodePrompt:
    """Asks the user to sign in and paste back the authorization code"""

    def __init__(self, display: Callable[[str], Any] = print,
                 read_line: Callable[[str], str] = input, open_browser: bool = False):
        self.display = display
        self.read_line = read_line
        self.open_browser = open_browser

    def acquire(self, url: str) -> str:
        """Show the sign-in URL and block until one line is entered"""
        self.display("Sign in with your Microsoft account at:")
        self.display(url)
        self.display("After signing in, copy the code shown on the redirect page.")
        if self.open_browser:
            webbrowser.open(url)
        try:
            return self.read_line("Authorization code: ")
        except EOFError:
            raise AuthError("Input closed before an authorization code was entered") from None


class OAuthFlow:
    """Handles the Microsoft OAuth authentication flow"""

    def __init__(self, http: HttpClient, client_id: str = CLIENT_ID,
                 redirect_uri: str = REDIRECT_URI):
        self.http = http
        self.client_id = client_id
        self.redirect_uri = redirect_uri

    def authorization_url(self) -> str:
        auth_params = {
            "client_id": self.client_id,
            "response_type": "code",
            "scope": SCOPE,
        }
        return f"{AUTHORIZE_URL}?{urlencode(auth_params)}"

    async def exchange_tokens(self, code: Optional[str] = None,
                              refresh_token: Optional[str] = None) -> MicrosoftTokens:
        """Exchange an authorization code or a refresh token for Microsoft tokens"""
        if code is not None:
            payload = {
                "client_id": self.client_id,
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.redirect_uri,
            }
        elif refresh_token:
            payload = {
                "client_id": self.client_id,
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "redirect_uri": self.redirect_uri,
            }
        else:
            raise ValueError("exchange_tokens needs a code or a refresh token")

        data = await self.http.post_form(TOKEN_URL, payload)
        step = "Microsoft token"
        return MicrosoftTokens(
            access_token=_require(data, "access_token", str, step),
            refresh_token=_require(data, "refresh_token", str, step),
            expires_in=_require(data, "expires_in", int, step),
        )


class XboxAuth:
    """Handles Xbox Live and XSTS authentication"""

    HEADERS = {"x-xbl-contract-version": "1"}

    def __init__(self, http: HttpClient):
        self.http = http

    async def request_user_token(self, access_token: str) -> XboxUserToken:
        """Request an Xbox Live user token using the Microsoft access token"""
        payload = {
            "Properties": {
                "AuthMethod": "RPS",
                "SiteName": "user.auth.xboxlive.com",
                "RpsTicket": f"d={access_token}",
            },
            "RelyingParty": XBOX_RELYING_PARTY,
            "TokenType": "JWT",
        }
        data = await self.http.post_json(XBOX_USER_AUTH_URL, payload, headers=self.HEADERS)
        return XboxUserToken(
            token=_require(data, "Token", str, "Xbox Live user"),
            user_hash=extract_user_hash(data),
        )

    async def request_xsts_token(self, user_token: str,
                                 relying_party: str = MINECRAFT_RELYING_PARTY) -> str:
        """Request an XSTS token for the given relying party"""
        payload = {
            "Properties": {
                "SandboxId": "RETAIL",
                "UserTokens": [user_token],
            },
            "RelyingParty": relying_party,
            "TokenType": "JWT",
        }
        data = await self.http.post_json(XSTS_AUTH_URL, payload, headers=self.HEADERS)
        return _require(data, "Token", str, "XSTS")


class MinecraftAuth:
    """Handles the Minecraft services side of the chain"""

    def __init__(self, http: HttpClient):
        self.http = http

    @staticmethod
    def identity_token(user_hash: str, xsts_token: str) -> str:
        return f"{IDENTITY_SCHEME} x={user_hash};{xsts_token}"

    async def login_with_xbox(self, user_hash: str, xsts_token: str) -> MinecraftToken:
        payload = {"identityToken": self.identity_token(user_hash, xsts_token)}
        data = await self.http.post_json(MINECRAFT_LOGIN_URL, payload)
        step = "Minecraft login"
        return MinecraftToken(
            access_token=_require(data, "access_token", str, step),
            expires_in=_require(data, "expires_in", int, step),
        )

    async def fetch_profile(self, access_token: str) -> MinecraftProfile:
        """Retrieve the profile owned by the authenticated account"""
        headers = {"Authorization": f"Bearer {access_token}"}
        data = await self.http.get_json(MINECRAFT_PROFILE_URL, headers=headers)
        step = "Minecraft profile"
        return MinecraftProfile(
            id=_require(data, "id", str, step),
            name=_require(data, "name", str, step),
        )


class AuthenticationManager:
    """Runs the chain from the cheapest usable entry point

    Reads the supplied cache record but never writes it; persisting the
    outcome is left to the caller.
    """

    def __init__(self, http: HttpClient, client_id: str = CLIENT_ID,
                 prompt: Optional[CodePrompt] = None):
        self.oauth = OAuthFlow(http, client_id)
        self.xbox = XboxAuth(http)
        self.minecraft = MinecraftAuth(http)
        self.prompt = prompt or CodePrompt()

    async def authenticate(self, cache: Optional[CachedCredentials] = None) -> AuthenticationResult:
        if cache is not None:
            token = cache.valid_session_token()
            if token is not None:
                print("Cached Minecraft token is still valid")
                return AuthenticationResult(minecraft_token=token, retrieve_type=FromCache())
            if cache.session_token.token:
                print("Cached Minecraft token has expired, generating a new one...")
            else:
                print("No cached Minecraft token, generating a new one...")

        microsoft = await self._get_microsoft_tokens(cache)

        print("Requesting Xbox Live user token...")
        user = await self.xbox.request_user_token(microsoft.access_token)

        print("Requesting XSTS token...")
        xsts_token = await self.xbox.request_xsts_token(user.token)

        print("Logging in to Minecraft services...")
        minecraft = await self.minecraft.login_with_xbox(user.user_hash, xsts_token)

        return AuthenticationResult(
            minecraft_token=minecraft.access_token,
            retrieve_type=FromLogin(
                refresh_credential=microsoft.refresh_token,
                expires_in=minecraft.expires_in,
            ),
        )

    async def _get_microsoft_tokens(self, cache: Optional[CachedCredentials]) -> MicrosoftTokens:
        """Refresh with the cached credential, else ask the user to sign in"""
        if cache is not None and cache.has_refresh_credential():
            print("Refreshing Microsoft tokens...")
            return await self.oauth.exchange_tokens(refresh_token=cache.refresh_credential)

        url = self.oauth.authorization_url()
        code = await self._read_code(url)
        print("Authorization code received")
        return await self.oauth.exchange_tokens(code=code)

    async def _read_code(self, url: str) -> str:
        """Run the blocking prompt on a daemon thread

        Shutdown after Ctrl-C does not wait for the pending line of input.
        """
        loop = asyncio.get_running_loop()
        future = loop.create_future()

        def deliver(code, error):
            if future.done():
                return
            if error is not None:
                future.set_exception(error)
            else:
                future.set_result(code)

        def worker():
            code, error = None, None
            try:
                code = self.prompt.acquire(url)
            except Exception as e:
                error = e
            try:
                loop.call_soon_threadsafe(deliver, code, error)
            except RuntimeError:
                # Loop already closed, the run was abandoned
                return

        threading.Thread(target=worker, name="code-prompt", daemon=True).start()
        return await future


async def authenticate(http: HttpClient, cache: Optional[CachedCredentials] = None,
                       prompt: Optional[CodePrompt] = None,
                       client_id: str = CLIENT_ID) -> AuthenticationResult:
    """Convenience wrapper around AuthenticationManager"""
    manager = AuthenticationManager(http, client_id=client_id, prompt=prompt)
    return await manager.authenticate(cache)
