"""Query runner factory.

Resolves the active profile from db.toml, applies password placeholder
substitution and ``MYSQL_*`` environment overrides, and builds a
``MySQLQueryRunner``.

Usage:
    from db_migrate.factory import get_runner

    runner = get_runner("local")              # explicit profile
    runner = get_runner(env_prefix="APP_")    # reads APP_DB_PROFILE
"""

import logging
import os
from pathlib import Path
from urllib.parse import quote

from sqlalchemy.engine import make_url

from db_migrate.adapters.mysql import MySQLQueryRunner, normalize_url
from db_migrate.config.loader import load_db_config
from db_migrate.config.models import DatabaseProfile

logger = logging.getLogger(__name__)


class ProfileNotFoundError(Exception):
    """Raised when no database profile is configured."""

    pass


# ============================================================================
# Profile Resolution
# ============================================================================


def get_active_profile_name(env_prefix: str = "") -> str:
    """Get active profile name from the environment.

    Reads ``{env_prefix}DB_PROFILE``.

    Args:
        env_prefix: Prefix for environment variable lookup

    Returns:
        Profile name

    Raises:
        ProfileNotFoundError: If no profile is configured
    """
    env_var = f"{env_prefix}DB_PROFILE"
    env_profile = os.environ.get(env_var)
    if env_profile:
        return env_profile

    raise ProfileNotFoundError(
        "No database profile configured.\n"
        f"Set {env_var}=<name> or pass --profile <name>."
    )


def get_active_profile(
    profile_name: str | None = None,
    env_prefix: str = "",
    config_path: Path | None = None,
) -> tuple[str, DatabaseProfile]:
    """Get active profile name and configuration.

    Returns:
        Tuple of (profile_name, DatabaseProfile)

    Raises:
        ProfileNotFoundError: If no profile configured, or the named profile
            is not in db.toml
        FileNotFoundError: If db.toml doesn't exist
    """
    if profile_name is None:
        profile_name = get_active_profile_name(env_prefix)

    config = load_db_config(config_path)

    if profile_name not in config.profiles:
        raise ProfileNotFoundError(
            f"Profile '{profile_name}' not found in db.toml.\n"
            f"Available profiles: {', '.join(config.profiles.keys())}"
        )

    return profile_name, config.profiles[profile_name]


# ============================================================================
# URL Resolution
# ============================================================================


def resolve_url(profile: DatabaseProfile, env_prefix: str = "") -> str:
    """Resolve profile URL with password substitution and env overrides.

    ``{prefix}MYSQL_HOST``, ``MYSQL_PORT``, ``MYSQL_USER``, ``MYSQL_PASSWORD``
    and ``MYSQL_DATABASE`` replace the corresponding URL parts when set.

    Args:
        profile: Database profile from config
        env_prefix: Prefix for environment variable lookup

    Returns:
        Connection URL with the ``mysql+pymysql://`` scheme

    Example:
        >>> profile = DatabaseProfile(
        ...     url="mysql://app:[YOUR-PASSWORD]@db:3306/app", db_password="p@ss"
        ... )
        >>> resolve_url(profile)
        'mysql+pymysql://app:p%40ss@db:3306/app'
    """
    url = profile.url
    if profile.db_password and "[YOUR-PASSWORD]" in url:
        url = url.replace("[YOUR-PASSWORD]", quote(profile.db_password, safe=""))
    url = normalize_url(url)

    overrides = {}
    for part, env_name in (
        ("host", "MYSQL_HOST"),
        ("port", "MYSQL_PORT"),
        ("username", "MYSQL_USER"),
        ("password", "MYSQL_PASSWORD"),
        ("database", "MYSQL_DATABASE"),
    ):
        value = os.environ.get(f"{env_prefix}{env_name}")
        if value:
            overrides[part] = int(value) if part == "port" else value

    if not overrides:
        return url

    logger.debug(f"Overriding URL parts from environment: {sorted(overrides)}")
    return make_url(url).set(**overrides).render_as_string(hide_password=False)


# ============================================================================
# Runner Construction
# ============================================================================


def get_runner(
    profile_name: str | None = None,
    env_prefix: str = "",
    config_path: Path | None = None,
) -> MySQLQueryRunner:
    """Create a ``MySQLQueryRunner`` for a db.toml profile.

    Args:
        profile_name: Profile name. If None, reads ``{env_prefix}DB_PROFILE``.
        env_prefix: Prefix for environment variable lookup
        config_path: Path to db.toml (default: db.toml in the current directory)

    Returns:
        Runner connected to the profile's database

    Raises:
        ProfileNotFoundError: If no profile is configured or found
        FileNotFoundError: If db.toml doesn't exist
    """
    name, profile = get_active_profile(profile_name, env_prefix, config_path)
    logger.info(f"Using database profile '{name}'")
    return MySQLQueryRunner(resolve_url(profile, env_prefix))
