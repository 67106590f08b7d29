"""
Schema migrations for the changelog store.

Migrations are goose-style ``.sql`` files applied in lexicographic filename
order every time a store is opened. Only the forward section of each script
is executed:

    -- +goose Up
    -- +goose StatementBegin
    CREATE TABLE IF NOT EXISTS workspaces (...);
    -- +goose StatementEnd

    -- +goose Down
    DROP TABLE workspaces;

Migration Philosophy:
- Migrations are one-way (the Down section is never run)
- There is no ledger table: every script runs on every startup, so scripts
  must be safe to re-apply (CREATE ... IF NOT EXISTS)
- Execution stops at the first failing script; earlier scripts stay applied
- Filenames must be zero-padded (0001_, 0002_, ...) to sort correctly

A missing migrations directory or an empty one is not an error. It is
logged and treated as "migrations are managed externally".

Example:
    >>> import sqlite3
    >>> conn = sqlite3.connect("changelogs.db", isolation_level=None)
    >>> apply_migrations(conn, DEFAULT_MIGRATIONS_DIR)
    3
"""

import logging
import sqlite3
from pathlib import Path

from ..exceptions import DatabaseMigrationError

logger = logging.getLogger(__name__)

# Scripts bundled with the package
DEFAULT_MIGRATIONS_DIR = Path(__file__).resolve().parent.parent / "migrations"

MIGRATION_EXTENSION = ".sql"

UP_MARKER = "-- +goose Up"
DOWN_MARKER = "-- +goose Down"
STATEMENT_MARKERS = ("-- +goose StatementBegin", "-- +goose StatementEnd")


def discover_migrations(migrations_dir: str | Path) -> list[Path] | None:
    """
    List migration scripts in execution order.

    Args:
        migrations_dir: Directory holding the scripts

    Returns:
        Sorted list of script paths, or None if the directory does not exist.
        Only regular files with the .sql extension are considered.
    """
    directory = Path(migrations_dir)
    if not directory.is_dir():
        return None

    scripts = [
        entry
        for entry in directory.iterdir()
        if entry.is_file() and entry.name.endswith(MIGRATION_EXTENSION)
    ]
    return sorted(scripts, key=lambda path: path.name)


def extract_up_sql(content: str) -> str:
    """
    Extract the forward section of a goose-style migration script.

    Lines after the Up marker are kept until the Down marker or end of file.
    StatementBegin/StatementEnd annotation lines are dropped. A script with
    no Up marker yields an empty string.

    Args:
        content: Full text of the migration script

    Returns:
        str: SQL to execute (may be empty)

    Example:
        >>> extract_up_sql("-- +goose Up\\nCREATE TABLE t (id TEXT);\\n-- +goose Down\\nDROP TABLE t;\\n")
        'CREATE TABLE t (id TEXT);\\n'
    """
    up_lines: list[str] = []
    in_up_section = False

    for line in content.split("\n"):
        if UP_MARKER in line:
            in_up_section = True
            continue
        if DOWN_MARKER in line:
            break
        if in_up_section and not any(marker in line for marker in STATEMENT_MARKERS):
            up_lines.append(line + "\n")

    return "".join(up_lines)


def apply_migrations(conn: sqlite3.Connection, migrations_dir: str | Path) -> int:
    """
    Apply every migration script in migrations_dir, in filename order.

    Each script's forward section runs as a single batch. The first failure
    aborts the run; scripts applied before it are not rolled back.

    Args:
        conn: Open SQLite connection (autocommit mode)
        migrations_dir: Directory holding the .sql scripts

    Returns:
        int: Number of scripts discovered (0 when the directory is missing
        or empty)

    Raises:
        DatabaseMigrationError: If a script cannot be read or fails to execute.
            The error's filename attribute names the script.
    """
    scripts = discover_migrations(migrations_dir)
    if scripts is None:
        logger.warning(
            f"Migrations directory not found, skipping automatic migrations: {migrations_dir}"
        )
        return 0

    if not scripts:
        logger.warning(f"No migration files found in {migrations_dir}")
        return 0

    for script in scripts:
        try:
            content = script.read_text(encoding="utf-8")
        except OSError as e:
            raise DatabaseMigrationError(
                f"failed to read migration file {script.name}: {e}",
                filename=script.name,
            ) from e

        up_sql = extract_up_sql(content)
        if not up_sql.strip():
            logger.debug(f"Migration {script.name} has no forward section, skipping")
            continue

        try:
            conn.executescript(up_sql)
        except sqlite3.Error as e:
            logger.error(f"Migration {script.name} failed: {e}")
            raise DatabaseMigrationError(
                f"failed to execute migration {script.name}: {e}",
                filename=script.name,
            ) from e

        logger.debug(f"Executed migration {script.name}")

    logger.info(
        f"Database migrations completed successfully ({len(scripts)} scripts)"
    )
    return len(scripts)
