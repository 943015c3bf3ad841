"""Configuration management: profiles, TOML loading, and config models.

Usage:
    >>> from db_migrate.config import load_db_config, load_entities
    >>> from db_migrate.config import DatabaseProfile, DatabaseConfig
"""

from db_migrate.config.loader import load_db_config, load_entities, parse_type_name
from db_migrate.config.models import DatabaseConfig, DatabaseProfile

__all__ = [
    "load_db_config",
    "load_entities",
    "parse_type_name",
    "DatabaseConfig",
    "DatabaseProfile",
]
