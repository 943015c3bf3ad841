"""TOML loading for database profiles and entity definitions."""

import re
import tomllib
from pathlib import Path
from typing import Any

from db_migrate.config.models import DatabaseConfig, DatabaseProfile
from db_migrate.schema.models import EntityDefinition, SqlKind, SqlType

_NUMERIC_RE = re.compile(r"^numeric\(\s*(\d+)\s*,\s*(\d+)\s*\)$", re.IGNORECASE)

_SIMPLE_KINDS = {
    kind.value: kind
    for kind in SqlKind
    if kind not in (SqlKind.NUMERIC, SqlKind.OTHER)
}


def load_db_config(config_path: Path | None = None) -> DatabaseConfig:
    """Load database configuration from TOML file.

    Args:
        config_path: Path to db.toml (default: db.toml in the current directory)

    Returns:
        DatabaseConfig with all profiles

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config format is invalid
    """
    if config_path is None:
        config_path = Path.cwd() / "db.toml"

    if not config_path.exists():
        raise FileNotFoundError(
            f"Database config not found: {config_path}\n"
            f"Create a db.toml with at least one [profiles.<name>] table."
        )

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    # Parse profiles
    profiles = {}
    for name, profile_data in data.get("profiles", {}).items():
        profiles[name] = DatabaseProfile(**profile_data)

    # Parse schema settings
    schema_settings = data.get("schema", {})

    return DatabaseConfig(
        profiles=profiles,
        entities_file=schema_settings.get("entities_file", "entities.toml"),
    )


def parse_type_name(name: str) -> SqlType:
    """Parse a field type as written in an entities file.

    Accepts the logical kind names (``bool``, ``int32``, ``int64``, ``real``,
    ``string``, ``blob``, ``time``, ``day``, ``day_time``) and
    ``numeric(p,s)``.  Anything else is kept as a raw MySQL type.

    Example:
        >>> parse_type_name("numeric(10,2)")
        SqlType(kind=<SqlKind.NUMERIC: 'numeric'>, precision=10, scale=2, raw=None)
    """
    text = name.strip()
    kind = _SIMPLE_KINDS.get(text.lower())
    if kind is not None:
        return SqlType(kind=kind)

    match = _NUMERIC_RE.match(text)
    if match:
        return SqlType.numeric(int(match.group(1)), int(match.group(2)))

    return SqlType.other(text)


def _field_data(data: dict[str, Any]) -> dict[str, Any]:
    result = dict(data)
    type_name = result.pop("type", None)
    if type_name is not None:
        result["sql_type"] = parse_type_name(type_name)
    return result


def load_entities(entities_path: Path) -> list[EntityDefinition]:
    """Load entity definitions from a TOML file.

    Each ``[[entities]]`` table carries ``name``, optional ``primary_key``,
    an optional ``[entities.id]`` table overriding the id field, and arrays
    of ``fields``, ``uniques`` and ``foreign_keys``.  Field types are given
    as ``type = "..."`` strings (see ``parse_type_name``).

    Example file::

        [[entities]]
        name = "user"

        [[entities.fields]]
        name = "email"
        type = "string"
        max_len = 120

        [[entities.uniques]]
        name = "unique_email"
        fields = ["email"]

    Raises:
        FileNotFoundError: If the entities file doesn't exist
        pydantic.ValidationError: If an entity is malformed
    """
    if not entities_path.exists():
        raise FileNotFoundError(f"Entities file not found: {entities_path}")

    with open(entities_path, "rb") as f:
        data = tomllib.load(f)

    entities = []
    for entity_data in data.get("entities", []):
        entity = dict(entity_data)
        if "id" in entity:
            id_data = dict(entity.pop("id"))
            id_data.setdefault("type", "int64")
            entity["id_field"] = _field_data(id_data)
        entity["fields"] = [_field_data(f) for f in entity.get("fields", [])]
        entities.append(EntityDefinition(**entity))

    return entities
