"""
Exceptions raised by the authentication chain
"""

from typing import Optional


class AuthError(Exception):
    """Base class for every failure that aborts an authentication run"""


class CacheDecodeError(AuthError):
    """The cache file exists but its contents are not a valid record"""

    def __init__(self, cache_file: str, reason: str):
        self.cache_file = cache_file
        self.reason = reason
        super().__init__(f"Cache file '{cache_file}' is malformed: {reason}")


class DecodeError(AuthError):
    """A remote service returned a body that could not be decoded"""


class MissingClaimError(DecodeError):
    """A decoded response lacks a field the chain depends on"""

    def __init__(self, step: str, path: str):
        self.step = step
        self.path = path
        super().__init__(f"{step} response is missing '{path}'")


class TransportError(AuthError):
    """The request never produced a response (connection, DNS, timeout)"""


class RemoteRejectedError(AuthError):
    """A remote service answered with a non-success status"""

    def __init__(self, url: str, status: int, body: Optional[str] = None):
        self.url = url
        self.status = status
        self.body = body
        message = f"{url} rejected the request ({status})"
        if body:
            message += f": {body}"
        super().__init__(message)
