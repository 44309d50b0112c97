"""
Runtime configuration, read from the environment and an optional .env file
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from .auth.authentication import CLIENT_ID
from .auth.cache import CACHE_FILE

ENV_FILE = ".env"

ENV_TEMPLATE = f"""# Configuration for the Minecraft console client
# Set to false to never read or write the token cache
CACHE_ENABLED=true
CACHE_FILE={CACHE_FILE}

# Open the Microsoft sign-in page in the default browser
OPEN_BROWSER=false

# Seconds before an HTTP request is abandoned
HTTP_TIMEOUT=30

# Optional: Uncomment to override the Azure application
# CLIENT_ID={CLIENT_ID}
"""

TRUE_VALUES = ("true", "1", "yes", "on")
FALSE_VALUES = ("false", "0", "no", "off")


class ConfigError(Exception):
    """A configuration value could not be interpreted"""


@dataclass
class Config:
    cache_enabled: bool = True
    cache_file: str = CACHE_FILE
    client_id: str = CLIENT_ID
    open_browser: bool = False
    http_timeout: int = 30


def create_env_template(env_file: str = ENV_FILE) -> bool:
    """Write a commented .env file if none exists, returns True when created"""
    if os.path.exists(env_file):
        return False
    with open(env_file, "w") as f:
        f.write(ENV_TEMPLATE)
    return True


def _get_bool(key: str, default: bool) -> bool:
    raw = os.getenv(key, "").strip().lower()
    if not raw:
        return default
    if raw in TRUE_VALUES:
        return True
    if raw in FALSE_VALUES:
        return False
    raise ConfigError(f"{key} must be a boolean, got '{raw}'")


def _get_int(key: str, default: int) -> int:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got '{raw}'") from None
    if value <= 0:
        raise ConfigError(f"{key} must be positive, got {value}")
    return value


def get_config(env_file: str = ENV_FILE) -> Config:
    """Load configuration, bootstrapping a .env file on first run"""
    if create_env_template(env_file):
        print(f"Existing config could not be found, created new config at {env_file}")
    load_dotenv(env_file)

    return Config(
        cache_enabled=_get_bool("CACHE_ENABLED", True),
        cache_file=os.getenv("CACHE_FILE", "").strip() or CACHE_FILE,
        client_id=os.getenv("CLIENT_ID", "").strip() or CLIENT_ID,
        open_browser=_get_bool("OPEN_BROWSER", False),
        http_timeout=_get_int("HTTP_TIMEOUT", 30),
    )
