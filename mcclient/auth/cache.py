"""
Token cache persistence and validation

Holds the long-lived Microsoft refresh token and the short-lived Minecraft
session token. The record is only ever replaced as a whole.
"""

import json
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import portalocker

from .errors import CacheDecodeError

CACHE_FILE = "token_cache.json"

# Serialised form of expiry_time, always UTC with second precision
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

# Expiry of the placeholder token written into a fresh record
EPOCH_EXPIRY = "2011-11-18T12:00:00Z"

SECRET_MASK = "*" * 8


def mask_secret(value: str) -> str:
    """Fixed-length stand-in for a secret, empty stays empty"""
    return SECRET_MASK if value else ""


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: str) -> datetime:
    """Parse an RFC 3339 timestamp into an aware UTC datetime

    Raises ValueError for anything unparsable.
    """
    parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


@dataclass
class SessionToken:
    """Minecraft bearer token with its absolute expiry"""

    token: str
    expiry: datetime

    def __post_init__(self):
        # Stored at second precision, so truncate up front to keep
        # in-memory and reloaded records equal
        if self.expiry.tzinfo is None:
            self.expiry = self.expiry.replace(tzinfo=timezone.utc)
        self.expiry = self.expiry.astimezone(timezone.utc).replace(microsecond=0)

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        return self.expiry > (now or utc_now())

    def __repr__(self) -> str:
        return f"SessionToken(token={mask_secret(self.token)!r}, expiry={format_timestamp(self.expiry)!r})"


@dataclass
class CachedCredentials:
    """The persisted credential record"""

    refresh_credential: str
    session_token: SessionToken

    @classmethod
    def default(cls) -> "CachedCredentials":
        """Record used when nothing has been cached yet"""
        return cls(
            refresh_credential="",
            session_token=SessionToken(token="", expiry=parse_timestamp(EPOCH_EXPIRY)),
        )

    @classmethod
    def from_login(cls, token: str, refresh_credential: str, expires_in: int,
                   now: Optional[datetime] = None) -> "CachedCredentials":
        """Build the replacement record after a fresh login"""
        expiry = (now or utc_now()) + timedelta(seconds=expires_in)
        return cls(
            refresh_credential=refresh_credential,
            session_token=SessionToken(token=token, expiry=expiry),
        )

    def valid_session_token(self, now: Optional[datetime] = None) -> Optional[str]:
        """Return the cached Minecraft token if it has not expired yet"""
        if self.session_token.is_valid(now):
            return self.session_token.token
        return None

    def has_refresh_credential(self) -> bool:
        return bool(self.refresh_credential)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "microsoft_refresh_token": self.refresh_credential,
            "minecraft_token": {
                "token": self.session_token.token,
                "expiry_time": format_timestamp(self.session_token.expiry),
            },
        }

    @classmethod
    def from_dict(cls, data: Any, cache_file: str = CACHE_FILE) -> "CachedCredentials":
        """Decode the on-disk shape, raising CacheDecodeError on any mismatch"""
        if not isinstance(data, dict):
            raise CacheDecodeError(cache_file, "top level is not an object")

        refresh = data.get("microsoft_refresh_token")
        if not isinstance(refresh, str):
            raise CacheDecodeError(cache_file, "'microsoft_refresh_token' must be a string")

        minecraft = data.get("minecraft_token")
        if not isinstance(minecraft, dict):
            raise CacheDecodeError(cache_file, "'minecraft_token' must be an object")

        token = minecraft.get("token")
        expiry_time = minecraft.get("expiry_time")
        if not isinstance(token, str):
            raise CacheDecodeError(cache_file, "'minecraft_token.token' must be a string")
        if not isinstance(expiry_time, str):
            raise CacheDecodeError(cache_file, "'minecraft_token.expiry_time' must be a string")

        try:
            expiry = parse_timestamp(expiry_time)
        except ValueError:
            raise CacheDecodeError(cache_file, f"unparsable expiry_time '{expiry_time}'") from None

        return cls(refresh_credential=refresh, session_token=SessionToken(token=token, expiry=expiry))

    def __repr__(self) -> str:
        return (
            f"CachedCredentials(refresh_credential={mask_secret(self.refresh_credential)!r}, "
            f"session_token={self.session_token!r})"
        )


class TokenCache:
    """Reads and atomically replaces the cache file"""

    def __init__(self, cache_file: str = CACHE_FILE):
        self.cache_file = cache_file

    def load(self) -> Optional[CachedCredentials]:
        """Load the record, None when no cache file exists yet"""
        try:
            with open(self.cache_file, "r") as f:
                portalocker.lock(f, portalocker.LOCK_SH)  # Shared lock for reading
                try:
                    content = f.read()
                finally:
                    portalocker.unlock(f)
        except FileNotFoundError:
            return None

        if not content.strip():
            raise CacheDecodeError(self.cache_file, "file is empty")
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise CacheDecodeError(self.cache_file, f"invalid JSON ({e.msg})") from None
        return CachedCredentials.from_dict(data, self.cache_file)

    def persist(self, record: CachedCredentials):
        """Overwrite the whole record via temp file and rename"""
        temp_filepath = self.cache_file + ".tmp"
        try:
            with open(temp_filepath, "w") as f:
                portalocker.lock(f, portalocker.LOCK_EX)  # Exclusive lock for writing
                try:
                    json.dump(record.to_dict(), f, indent=2)
                    f.flush()
                    os.fsync(f.fileno())
                finally:
                    portalocker.unlock(f)
            os.replace(temp_filepath, self.cache_file)
        except OSError:
            if os.path.exists(temp_filepath):
                os.remove(temp_filepath)
            raise

    def clear(self) -> bool:
        """Delete the cache file, returns whether one existed"""
        try:
            os.remove(self.cache_file)
        except FileNotFoundError:
            return False
        return True
