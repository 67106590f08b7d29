"""
Settings schema for the changelog store.

Pydantic models validating the store section of the service's YAML config.

Models:
    StoreSettings: Connection descriptor, migrations directory, logging verbosity
"""

from pathlib import Path

from pydantic import BaseModel, field_validator


class StoreSettings(BaseModel):
    """
    Store settings from a YAML file.

    Attributes:
        connection: Bare path or file: URI of the SQLite database
        migrations_dir: Directory of migration scripts (None = bundled scripts)
        verbose_logging: Log at DEBUG instead of INFO

    Example:
        >>> StoreSettings(connection="file:data/changelogs.db")
        StoreSettings(connection='file:data/changelogs.db', migrations_dir=None, verbose_logging=False)
    """

    connection: str
    migrations_dir: Path | None = None
    verbose_logging: bool = False

    @field_validator("connection")
    @classmethod
    def validate_connection(cls, v: str) -> str:
        """Validate connection is non-empty."""
        if not v or v.isspace():
            raise ValueError("connection cannot be empty")
        return v.strip()
