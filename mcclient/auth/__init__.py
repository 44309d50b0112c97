"""
Authentication module for Minecraft services
Contains the Microsoft/Xbox Live token chain and the token cache
"""

from .authentication import (
    AuthenticationManager,
    AuthenticationResult,
    CodePrompt,
    FromCache,
    FromLogin,
    MinecraftAuth,
    OAuthFlow,
    XboxAuth,
    authenticate
)
from .cache import CachedCredentials, SessionToken, TokenCache
from .errors import (
    AuthError,
    CacheDecodeError,
    DecodeError,
    MissingClaimError,
    RemoteRejectedError,
    TransportError
)
from .http import HttpClient

__all__ = [
    'AuthenticationManager',
    'AuthenticationResult',
    'CodePrompt',
    'FromCache',
    'FromLogin',
    'MinecraftAuth',
    'OAuthFlow',
    'XboxAuth',
    'authenticate',
    'CachedCredentials',
    'SessionToken',
    'TokenCache',
    'AuthError',
    'CacheDecodeError',
    'DecodeError',
    'MissingClaimError',
    'RemoteRejectedError',
    'TransportError',
    'HttpClient'
]
