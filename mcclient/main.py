"""
Command line entry point: sign in and print the Minecraft profile
"""

import argparse
import asyncio
from typing import List, Optional

import aiohttp

from .auth import (
    AuthenticationManager,
    AuthError,
    CachedCredentials,
    CodePrompt,
    FromLogin,
    HttpClient,
    MinecraftAuth,
    TokenCache
)
from .auth.cache import mask_secret
from .config import ENV_FILE, Config, ConfigError, get_config


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="mcclient", description="Minecraft console client")
    parser.add_argument("--env-file", default=ENV_FILE, help="path of the .env configuration file")
    parser.add_argument("--no-cache", action="store_true", help="ignore the token cache for this run")
    parser.add_argument("--logout", action="store_true", help="delete the token cache and exit")
    return parser.parse_args(argv)


async def run(config: Config, prompt: Optional[CodePrompt] = None) -> str:
    """Authenticate, persist a fresh login and return the Minecraft token

    Nothing is written unless every request, including the profile
    lookup, succeeded.
    """
    token_cache = TokenCache(config.cache_file)

    # Only read the cache if enabled in config
    cached = None
    if config.cache_enabled:
        cached = token_cache.load()
        if cached is None:
            print(f"No token cache found at {config.cache_file}, starting fresh")
            cached = CachedCredentials.default()

    timeout = aiohttp.ClientTimeout(total=config.http_timeout)
    async with aiohttp.ClientSession(timeout=timeout) as session:
        http = HttpClient(session)
        manager = AuthenticationManager(
            http,
            client_id=config.client_id,
            prompt=prompt or CodePrompt(open_browser=config.open_browser),
        )
        result = await manager.authenticate(cached)
        token = result.minecraft_token

        profile = await MinecraftAuth(http).fetch_profile(token)

    if isinstance(result.retrieve_type, FromLogin) and config.cache_enabled:
        record = CachedCredentials.from_login(
            token,
            result.retrieve_type.refresh_credential,
            result.retrieve_type.expires_in,
        )
        token_cache.persist(record)
        print(f"Saved tokens to {config.cache_file}")

    print(f"Logged in as {profile.name} ({profile.id})")
    return token


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    print("=" * 60)
    print("Minecraft Authentication")
    print("=" * 60)

    try:
        config = get_config(args.env_file)
    except ConfigError as e:
        print(f"Invalid configuration: {e}")
        return 1

    if args.logout:
        if TokenCache(config.cache_file).clear():
            print(f"Removed {config.cache_file}")
        else:
            print("No token cache to remove")
        return 0

    if args.no_cache:
        config.cache_enabled = False

    try:
        token = asyncio.run(run(config))
    except AuthError as e:
        print()
        print(f"Authentication failed: {e}")
        return 1
    except OSError as e:
        print()
        print(f"Could not access token cache: {e}")
        return 1

    print()
    print("Authentication successful!")
    print(f"Minecraft token: {mask_secret(token)}")
    return 0


if __name__ == "__main__":
    exit(main())
