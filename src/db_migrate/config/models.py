"""Pydantic models for db.toml: connection profiles and schema settings."""

from pydantic import BaseModel, field_validator

# Schemes a profile URL may use; mysql:// is rewritten to the PyMySQL driver
MYSQL_SCHEMES = ("mysql://", "mysql+pymysql://")


# ============================================================================
# Configuration Models
# ============================================================================


class DatabaseProfile(BaseModel):
    """A named MySQL connection profile (``[profiles.<name>]``)."""

    url: str
    description: str = ""
    db_password: str | None = None  # substituted for a [YOUR-PASSWORD] placeholder

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith(MYSQL_SCHEMES):
            raise ValueError(
                f"Profile URL must start with {' or '.join(MYSQL_SCHEMES)}"
            )
        return v


class DatabaseConfig(BaseModel):
    """Profiles plus the ``[schema]`` table of db.toml."""

    profiles: dict[str, DatabaseProfile]
    entities_file: str = "entities.toml"
