"""
Configuration loader for the mapping store, auth service and providers.

Supports loading from:
1. Environment variables (.env.local or deployment secrets)
2. JSON config file (config/playermap.json)

Environment Variable Aliases (checked in order):
- Database: PLAYERMAP_DB_PATH, MAPPING_DB_PATH
- Auth URL: PLAYERMAP_AUTH_URL, SUPABASE_URL
- Auth key: PLAYERMAP_AUTH_API_KEY, SUPABASE_ANON_KEY

Usage:
    from playermap.config import get_db_path, get_auth_settings, get_config

    db_path = get_db_path()
    auth = get_auth_settings()

    # Full merged config
    config = get_config()
"""

import os
import json
from pathlib import Path
from functools import lru_cache

from playermap.errors import ConfigurationError


# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent
CONFIG_PATH = PROJECT_ROOT / "config" / "playermap.json"

DEFAULT_DB_PATH = PROJECT_ROOT / "db" / "player_mapping.sqlite"
DEFAULT_SLEEPER_PLAYERS_URL = "https://api.sleeper.app/v1/players/nfl"
NFLVERSE_STATS_URL_TEMPLATE = (
    "https://github.com/nflverse/nflverse-data/releases/download/"
    "player_stats/player_stats_{season}.csv"
)
DEFAULT_NFLVERSE_SEASON = 2024
DEFAULT_HTTP_TIMEOUT = 120


def _load_env_file():
    """Load environment variables from .env.local if it exists."""
    env_file = PROJECT_ROOT / ".env.local"
    if env_file.exists():
        with open(env_file, "r") as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#") and "=" in line:
                    key, _, value = line.partition("=")
                    key = key.strip()
                    value = value.strip()
                    # Remove quotes if present
                    if value.startswith('"') and value.endswith('"'):
                        value = value[1:-1]
                    elif value.startswith("'") and value.endswith("'"):
                        value = value[1:-1]
                    os.environ.setdefault(key, value)


def _load_json_config(path=None):
    """Load configuration from JSON file."""
    config_file = Path(path) if path else CONFIG_PATH
    if config_file.exists():
        with open(config_file, "r") as f:
            return json.load(f)
    return {}


# Load env file on module import
_load_env_file()


# Order matters: first valid value found wins
ENV_VAR_ALIASES = {
    "db_path": [
        "PLAYERMAP_DB_PATH",  # Primary (canonical name)
        "MAPPING_DB_PATH",
    ],
    "auth_url": [
        "PLAYERMAP_AUTH_URL",
        "SUPABASE_URL",       # Hosted deployment alias
    ],
    "auth_api_key": [
        "PLAYERMAP_AUTH_API_KEY",
        "SUPABASE_ANON_KEY",
    ],
}


def _get_env_with_aliases(alias_key):
    """
    Get an environment variable value, checking multiple aliases.
    Returns (value, var_name) tuple or (None, None) if not found.
    """
    aliases = ENV_VAR_ALIASES.get(alias_key, [])
    for var_name in aliases:
        value = os.getenv(var_name)
        if value and not _is_placeholder(value):
            return value, var_name
    return None, None


def _is_placeholder(value):
    """Check if a value is a placeholder that should be ignored."""
    if not value:
        return True
    value_lower = value.lower()
    return (
        value_lower.startswith("your_") or
        value_lower.startswith("your-") or
        "your_api_key" in value_lower or
        "your_key" in value_lower or
        value == "changeme" or
        value == "placeholder"
    )


@lru_cache(maxsize=1)
def get_config():
    """
    Get the full configuration dictionary.
    Merges JSON config with environment variables (env vars take precedence).
    """
    config = _load_json_config()

    db_path, _ = _get_env_with_aliases("db_path")
    auth_url, _ = _get_env_with_aliases("auth_url")
    auth_key, _ = _get_env_with_aliases("auth_api_key")

    env_overrides = {
        "database.path": db_path,
        "auth.url": auth_url,
        "auth.api_key": auth_key,
        "providers.sleeper.players_url": os.getenv("SLEEPER_PLAYERS_URL"),
        "providers.nflverse.season": os.getenv("NFLVERSE_SEASON"),
        "providers.nflverse.stats_url": os.getenv("NFLVERSE_STATS_URL"),
        "http.timeout": os.getenv("PLAYERMAP_HTTP_TIMEOUT"),
    }

    for key_path, value in env_overrides.items():
        if value and not _is_placeholder(value):
            parts = key_path.split(".")
            obj = config
            for part in parts[:-1]:
                obj = obj.setdefault(part, {})
            obj[parts[-1]] = value

    return config


def get_db_path():
    """Get the sqlite database path, defaulting to db/player_mapping.sqlite."""
    path = get_config().get("database", {}).get("path")
    return Path(path) if path else DEFAULT_DB_PATH


def get_http_timeout():
    """Get the timeout (seconds) applied to provider and auth requests."""
    value = get_config().get("http", {}).get("timeout")
    if value in (None, ""):
        return DEFAULT_HTTP_TIMEOUT
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(
            f"http.timeout must be a number of seconds, got {value!r}"
        ) from e


def get_auth_settings():
    """
    Get auth service settings.

    Returns:
        dict with 'url', 'api_key' and 'timeout' (url/api_key may be None)
    """
    auth = get_config().get("auth", {})
    url = auth.get("url")
    api_key = auth.get("api_key")
    return {
        "url": url.rstrip("/") if url else None,
        "api_key": api_key if api_key and not _is_placeholder(api_key) else None,
        "timeout": get_http_timeout(),
    }


def get_sleeper_players_url():
    """Get the Sleeper all-players endpoint."""
    sleeper = get_config().get("providers", {}).get("sleeper", {})
    return sleeper.get("players_url") or DEFAULT_SLEEPER_PLAYERS_URL


def get_nflverse_stats_url(season=None):
    """
    Get the nflverse player stats CSV location.

    An explicit stats_url in config wins; otherwise the release asset for
    the configured (or given) season is used.
    """
    nflverse = get_config().get("providers", {}).get("nflverse", {})
    if season is None and nflverse.get("stats_url"):
        return nflverse["stats_url"]
    season = season or nflverse.get("season") or DEFAULT_NFLVERSE_SEASON
    try:
        season = int(season)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"nflverse season must be a year, got {season!r}") from e
    return NFLVERSE_STATS_URL_TEMPLATE.format(season=season)


def validate_config():
    """
    Validate configuration and return a list of issues.

    Returns:
        List of human-readable issue strings (empty if everything is set)
    """
    issues = []

    db_path = get_db_path()
    if not db_path.exists():
        issues.append(
            f"Mapping database not found at {db_path}. "
            "Run: python -m playermap.db.init_db --init"
        )

    if not get_config().get("auth", {}).get("url"):
        issues.append(
            "Auth service URL not configured. Set PLAYERMAP_AUTH_URL "
            "(or SUPABASE_URL); review accept/reject will be refused."
        )

    try:
        get_http_timeout()
    except ConfigurationError as e:
        issues.append(str(e))

    return issues
