"""
Tests for storage/migrations.py.

Tests cover:
- Forward-section extraction from goose-style scripts
- Discovery and lexicographic ordering of scripts
- Missing or empty migrations directory (not an error)
- Fail-fast behavior and error reporting with the failing filename
- Re-application of the bundled scripts on every open
"""

import sqlite3

import pytest

from changelog_store.exceptions import DatabaseMigrationError
from changelog_store.storage.migrations import (
    DEFAULT_MIGRATIONS_DIR,
    apply_migrations,
    discover_migrations,
    extract_up_sql,
)


@pytest.fixture
def conn(tmp_path):
    connection = sqlite3.connect(str(tmp_path / "migrate.db"), isolation_level=None)
    yield connection
    connection.close()


def table_names(conn):
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
    ).fetchall()
    return [row[0] for row in rows]


# ============================================================================
# Forward-section extraction
# ============================================================================


def test_extract_up_sql_stops_at_down_marker():
    content = (
        "-- +goose Up\n"
        "CREATE TABLE a (id TEXT);\n"
        "-- +goose Down\n"
        "DROP TABLE a;\n"
    )
    assert extract_up_sql(content) == "CREATE TABLE a (id TEXT);\n"


def test_extract_up_sql_runs_to_end_of_file_without_down_marker():
    content = "-- +goose Up\nCREATE TABLE a (id TEXT);\nCREATE TABLE b (id TEXT);"
    up_sql = extract_up_sql(content)
    assert "CREATE TABLE a" in up_sql
    assert "CREATE TABLE b" in up_sql


def test_extract_up_sql_strips_statement_markers():
    content = (
        "-- +goose Up\n"
        "-- +goose StatementBegin\n"
        "CREATE TABLE a (id TEXT);\n"
        "-- +goose StatementEnd\n"
    )
    up_sql = extract_up_sql(content)
    assert "goose" not in up_sql
    assert "CREATE TABLE a (id TEXT);" in up_sql


def test_extract_up_sql_ignores_text_before_up_marker():
    content = "CREATE TABLE ignored (id TEXT);\n-- +goose Up\nCREATE TABLE a (id TEXT);\n"
    up_sql = extract_up_sql(content)
    assert "ignored" not in up_sql
    assert "CREATE TABLE a" in up_sql


def test_extract_up_sql_without_up_marker_is_empty():
    assert extract_up_sql("CREATE TABLE a (id TEXT);\n") == ""


# ============================================================================
# Discovery
# ============================================================================


def test_discover_migrations_sorts_by_filename(tmp_path):
    for name in ["0003_c.sql", "0001_a.sql", "0002_b.sql"]:
        (tmp_path / name).write_text("-- +goose Up\n")

    scripts = discover_migrations(tmp_path)

    assert [s.name for s in scripts] == ["0001_a.sql", "0002_b.sql", "0003_c.sql"]


def test_discover_migrations_only_considers_sql_files(tmp_path):
    (tmp_path / "0001_a.sql").write_text("-- +goose Up\n")
    (tmp_path / "README.md").write_text("docs")
    (tmp_path / "0002_b.sql.bak").write_text("-- +goose Up\n")
    (tmp_path / "0003_dir.sql").mkdir()

    scripts = discover_migrations(tmp_path)

    assert [s.name for s in scripts] == ["0001_a.sql"]


def test_discover_migrations_missing_directory_returns_none(tmp_path):
    assert discover_migrations(tmp_path / "nope") is None


# ============================================================================
# Application
# ============================================================================


def test_apply_migrations_missing_directory_is_not_an_error(conn, tmp_path, caplog):
    with caplog.at_level("WARNING"):
        count = apply_migrations(conn, tmp_path / "missing")

    assert count == 0
    assert "not found" in caplog.text


def test_apply_migrations_empty_directory_is_not_an_error(conn, tmp_path, caplog):
    with caplog.at_level("WARNING"):
        count = apply_migrations(conn, tmp_path)

    assert count == 0
    assert "No migration files" in caplog.text


def test_apply_migrations_respects_lexicographic_order(conn, tmp_path):
    """0002 depends on the table created by 0001; created in reverse order on disk."""
    migrations = tmp_path / "migrations"
    migrations.mkdir()
    (migrations / "0002_b.sql").write_text(
        "-- +goose Up\n"
        "CREATE INDEX IF NOT EXISTS idx_parent_name ON parent(name);\n"
        "CREATE TABLE IF NOT EXISTS child (\n"
        "    id TEXT PRIMARY KEY,\n"
        "    parent_id TEXT REFERENCES parent(id)\n"
        ");\n"
    )
    (migrations / "0001_a.sql").write_text(
        "-- +goose Up\n"
        "CREATE TABLE IF NOT EXISTS parent (id TEXT PRIMARY KEY, name TEXT);\n"
        "-- +goose Down\n"
        "DROP TABLE parent;\n"
    )

    count = apply_migrations(conn, migrations)

    assert count == 2
    assert table_names(conn) == ["child", "parent"]


def test_reverse_order_would_fail(conn, tmp_path):
    """Naming the dependent script first makes the run fail on that script."""
    migrations = tmp_path / "migrations"
    migrations.mkdir()
    (migrations / "0001_b.sql").write_text(
        "-- +goose Up\nCREATE INDEX idx_parent_name ON parent(name);\n"
    )
    (migrations / "0002_a.sql").write_text(
        "-- +goose Up\nCREATE TABLE parent (id TEXT PRIMARY KEY, name TEXT);\n"
    )

    with pytest.raises(DatabaseMigrationError) as exc_info:
        apply_migrations(conn, migrations)

    assert exc_info.value.filename == "0001_b.sql"
    assert "0001_b.sql" in str(exc_info.value)
    assert isinstance(exc_info.value.__cause__, sqlite3.Error)


def test_apply_migrations_fails_fast_without_rollback(conn, tmp_path):
    migrations = tmp_path / "migrations"
    migrations.mkdir()
    (migrations / "0001_ok.sql").write_text(
        "-- +goose Up\nCREATE TABLE first (id TEXT);\n"
    )
    (migrations / "0002_broken.sql").write_text(
        "-- +goose Up\nCREATE TABLEE second (id TEXT);\n"
    )
    (migrations / "0003_never.sql").write_text(
        "-- +goose Up\nCREATE TABLE third (id TEXT);\n"
    )

    with pytest.raises(DatabaseMigrationError) as exc_info:
        apply_migrations(conn, migrations)

    assert exc_info.value.filename == "0002_broken.sql"
    # Earlier scripts stay applied, later ones never ran
    assert table_names(conn) == ["first"]


def test_apply_migrations_never_runs_down_section(conn, tmp_path):
    migrations = tmp_path / "migrations"
    migrations.mkdir()
    (migrations / "0001_a.sql").write_text(
        "-- +goose Up\n"
        "CREATE TABLE kept (id TEXT);\n"
        "-- +goose Down\n"
        "DROP TABLE kept;\n"
    )

    apply_migrations(conn, migrations)

    assert table_names(conn) == ["kept"]


def test_script_without_up_marker_is_skipped(conn, tmp_path):
    migrations = tmp_path / "migrations"
    migrations.mkdir()
    (migrations / "0001_plain.sql").write_text("CREATE TABLE plain (id TEXT);\n")

    count = apply_migrations(conn, migrations)

    assert count == 1
    assert table_names(conn) == []


def test_bundled_migrations_can_be_reapplied(conn):
    """There is no ledger, so every open re-runs every script."""
    first = apply_migrations(conn, DEFAULT_MIGRATIONS_DIR)
    second = apply_migrations(conn, DEFAULT_MIGRATIONS_DIR)

    assert first == second == 3
    assert table_names(conn) == ["changelogs", "gh_sources", "tokens", "workspaces"]


def test_bundled_migrations_index_lookup_columns(conn):
    apply_migrations(conn, DEFAULT_MIGRATIONS_DIR)

    index_columns = set()
    for (index_name,) in conn.execute(
        "SELECT name FROM pragma_index_list('changelogs')"
    ).fetchall():
        for row in conn.execute(f"PRAGMA index_info('{index_name}')").fetchall():
            index_columns.add(row[2])

    assert {"subdomain", "domain"} <= index_columns
