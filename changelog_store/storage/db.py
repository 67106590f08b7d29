"""
SQLite-backed store for workspaces, tokens, changelogs and GitHub sources.

This module owns the database connection and every statement the service
runs. Opening a store:

1. Extracts a filesystem path from the connection descriptor and creates its
   parent directory
2. Opens the connection and runs a trivial query to force file creation
3. Applies the migration scripts (see storage/migrations.py)

The database tracks:
- workspaces: Tenants
- tokens: Bearer tokens, at most one per workspace
- gh_sources: Repository locations supplying changelog content
- changelogs: Changelog configurations, optionally linked to a source

Example usage:
    >>> from changelog_store.storage.db import SQLiteStore
    >>> with SQLiteStore.open("file:data/changelogs.db?mode=rwc") as store:
    ...     ws = store.save_workspace(Workspace(id=new_workspace_id(), name="Acme"))

Concurrency:
    One connection per store, shared across threads and serialized with a
    re-entrant lock. Only save_workspace runs a multi-statement transaction;
    every other operation is a single autocommitted statement. Uniqueness of
    subdomains and domains is enforced by the schema, not by read-then-write
    checks.

Cancellation:
    Every operation accepts an optional threading.Event. Setting it aborts
    that call's in-flight statement (OperationCancelledError) without
    touching statements issued by other callers. SQLiteStore.interrupt()
    aborts whatever is running and is meant for shutdown.

Security:
    - ALL queries use parameterized statements to prevent SQL injection
    - Column names in dynamic UPDATE statements come from a fixed whitelist
    - Bearer tokens and password hashes are never logged
"""

import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from ..config.loader import load_settings
from ..config.schema import StoreSettings
from ..exceptions import (
    MSG_CHANGELOG_NOT_FOUND,
    MSG_DOMAIN_TAKEN,
    MSG_INVALID_TOKEN,
    MSG_NAIVE_CREATED_AT,
    MSG_SOURCE_NOT_FOUND,
    MSG_SUBDOMAIN_TAKEN,
    MSG_WORKSPACE_NOT_FOUND,
    BadRequestError,
    ChangelogStoreError,
    DatabaseInitError,
    DatabaseMigrationError,
    DatabaseQueryError,
    NotFoundError,
    OperationCancelledError,
    UnauthorizedError,
)
from ..models import (
    Changelog,
    ChangelogID,
    Domain,
    GHSource,
    GHSourceID,
    Subdomain,
    UpdateChangelogArgs,
    Workspace,
    WorkspaceChangelogCount,
    WorkspaceID,
)
from ..utils.logging import log_with_context, setup_logging
from .migrations import DEFAULT_MIGRATIONS_DIR, apply_migrations
from .rows import (
    CHANGELOG_SELECT,
    GH_SOURCE_SELECT,
    changelog_to_params,
    null_if_empty,
    row_to_changelog,
    row_to_gh_source,
    row_to_workspace,
    update_value_to_storage,
)

logger = logging.getLogger(__name__)

# SQLite virtual-machine steps between polls of a per-call cancel event
CANCEL_CHECK_INTERVAL = 1000


def extract_db_path(conn: str) -> str:
    """
    Extract the database file path from a SQLite connection descriptor.

    Handles bare paths and URI forms: file:path, file:./path, file:///path.
    Query parameters after '?' are ignored. Remote forms such as
    file://host/path yield "" (no local directory to create).

    Args:
        conn: Connection descriptor passed to SQLiteStore.open()

    Returns:
        str: Local path, or "" when there is none

    Examples:
        >>> extract_db_path("file:data/changelogs.db?cache=shared")
        'data/changelogs.db'
        >>> extract_db_path("file:///var/lib/changelogs.db")
        '/var/lib/changelogs.db'
        >>> extract_db_path("file://db-host/changelogs.db")
        ''
        >>> extract_db_path("changelogs.db")
        'changelogs.db'
    """
    path = conn.split("?", 1)[0]

    if path.startswith("file:"):
        path = path.removeprefix("file:")
        if path.startswith("///"):
            # file:///abs/path keeps its leading slash
            path = path.removeprefix("//")
        elif path.startswith("//"):
            return ""

    return path


def ensure_db_directory(db_path: str) -> None:
    """
    Create the parent directory of db_path if it doesn't exist.

    No-op when the database lives in the current directory.

    Raises:
        OSError: If the directory cannot be created
    """
    parent = str(Path(db_path).parent)
    if parent in ("", "."):
        return
    Path(parent).mkdir(parents=True, exist_ok=True)


def _translate_error(error: sqlite3.Error, operation: str) -> ChangelogStoreError:
    """
    Map a sqlite3 error onto the store's error taxonomy.

    Only the two documented uniqueness conflicts become BadRequestError;
    every other constraint violation is internal.
    """
    message = str(error)
    if isinstance(error, sqlite3.IntegrityError):
        if "UNIQUE constraint failed: changelogs.subdomain" in message:
            return BadRequestError(MSG_SUBDOMAIN_TAKEN)
        if "UNIQUE constraint failed: changelogs.domain" in message:
            return BadRequestError(MSG_DOMAIN_TAKEN)
    if isinstance(error, sqlite3.OperationalError) and "interrupted" in message:
        return OperationCancelledError(f"{operation} was cancelled", operation=operation)
    return DatabaseQueryError(f"{operation} failed: {error}", operation=operation)


class SQLiteStore:
    """
    ChangelogStore implementation on top of a single SQLite connection.

    Use SQLiteStore.open() rather than the constructor; it prepares the
    database file and applies migrations first.
    """

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn
        self._lock = threading.RLock()

    @classmethod
    def open(
        cls, conn: str, migrations_dir: str | Path | None = None
    ) -> "SQLiteStore":
        """
        Open (and if needed create) a database and bring it to the current schema.

        Args:
            conn: Bare path or file: URI, e.g. "data/changelogs.db" or
                  "file:data/changelogs.db?cache=shared"
            migrations_dir: Directory of migration scripts. Defaults to the
                            scripts bundled with this package.

        Returns:
            SQLiteStore: Ready store bound to one connection for its lifetime

        Raises:
            DatabaseInitError: If the directory, file or connection cannot be
                               created, or the initial round-trip fails
            DatabaseMigrationError: If a migration script fails

        Note:
            Any failure after the connection is opened closes it before the
            error is raised. There is no reconnect or retry.
        """
        db_path = extract_db_path(conn)
        if db_path:
            try:
                ensure_db_directory(db_path)
            except OSError as e:
                raise DatabaseInitError(
                    f"failed to create database directory: {e}"
                ) from e

        try:
            connection = sqlite3.connect(
                conn,
                uri=conn.startswith("file:"),
                check_same_thread=False,
                isolation_level=None,
            )
        except sqlite3.Error as e:
            raise DatabaseInitError(f"failed to open database: {e}") from e

        try:
            connection.row_factory = sqlite3.Row
            # Foreign keys are disabled by default in SQLite and must be
            # enabled per connection for the cascades to apply
            connection.execute("PRAGMA foreign_keys = ON")
            # Force SQLite to create the database file if it doesn't exist
            connection.execute("SELECT 1").fetchone()
        except sqlite3.Error as e:
            connection.close()
            raise DatabaseInitError(f"failed to initialize database: {e}") from e

        try:
            apply_migrations(
                connection,
                migrations_dir if migrations_dir is not None else DEFAULT_MIGRATIONS_DIR,
            )
        except DatabaseMigrationError:
            connection.close()
            raise

        logger.info(f"Opened changelog store at {db_path or conn}")
        return cls(connection)

    def close(self) -> None:
        with self._lock:
            self._conn.close()
        logger.debug("Closed changelog store")

    def interrupt(self) -> None:
        """
        Abort whatever statement is executing on this store, whoever issued it.

        Meant for shutdown: safe to call from any thread, and the interrupted
        operation raises OperationCancelledError. To cancel a single call, pass
        that call a cancel event instead.
        """
        self._conn.interrupt()

    def __enter__(self) -> "SQLiteStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @contextmanager
    def _query(
        self, operation: str, cancel: threading.Event | None = None
    ) -> Iterator[sqlite3.Connection]:
        """
        Hold the connection lock and translate sqlite3 errors for one operation.

        When cancel is given, SQLite polls it every CANCEL_CHECK_INTERVAL
        virtual-machine steps while this operation's statements run, and
        aborts them once it is set. The poll is installed only for the
        duration of this operation, so other callers' statements are never
        affected.

        Raises:
            OperationCancelledError: If cancel is set before or during the
                                     operation
        """
        with self._lock:
            if cancel is not None:
                if cancel.is_set():
                    raise OperationCancelledError(
                        f"{operation} was cancelled", operation=operation
                    )
                self._conn.set_progress_handler(cancel.is_set, CANCEL_CHECK_INTERVAL)
            try:
                yield self._conn
            except sqlite3.Error as e:
                raise _translate_error(e, operation) from e
            finally:
                if cancel is not None:
                    self._conn.set_progress_handler(None, CANCEL_CHECK_INTERVAL)

    # ========================================================================
    # Changelogs
    # ========================================================================

    def _fetch_changelog(
        self,
        conn: sqlite3.Connection,
        workspace_id: WorkspaceID,
        changelog_id: ChangelogID,
    ) -> Changelog:
        row = conn.execute(
            CHANGELOG_SELECT + " WHERE c.workspace_id = ? AND c.id = ?",
            (workspace_id, changelog_id),
        ).fetchone()
        if row is None:
            raise NotFoundError(MSG_CHANGELOG_NOT_FOUND)
        return row_to_changelog(row)

    def create_changelog(
        self, changelog: Changelog, cancel: threading.Event | None = None
    ) -> Changelog:
        """
        Insert a new changelog.

        The returned changelog never carries a source, even if the argument
        does: sources are linked with set_changelog_gh_source().

        Raises:
            BadRequestError: If the subdomain or domain is already taken, or
                             created_at is a naive datetime
            DatabaseQueryError: On any other database failure, including an
                                unknown workspace
        """
        try:
            params = changelog_to_params(changelog)
        except ValueError as e:
            raise BadRequestError(MSG_NAIVE_CREATED_AT) from e
        with self._query("create_changelog", cancel) as conn:
            conn.execute(
                """
                INSERT INTO changelogs (
                    id,
                    workspace_id,
                    subdomain,
                    domain,
                    title,
                    subtitle,
                    logo_src,
                    logo_link,
                    logo_alt,
                    logo_height,
                    logo_width,
                    color_scheme,
                    hide_powered_by,
                    protected,
                    analytics,
                    searchable,
                    password_hash,
                    created_at
                ) VALUES (
                    :id,
                    :workspace_id,
                    :subdomain,
                    :domain,
                    :title,
                    :subtitle,
                    :logo_src,
                    :logo_link,
                    :logo_alt,
                    :logo_height,
                    :logo_width,
                    :color_scheme,
                    :hide_powered_by,
                    :protected,
                    :analytics,
                    :searchable,
                    :password_hash,
                    :created_at
                )
                """,
                params,
            )
            created = self._fetch_changelog(conn, changelog.workspace_id, changelog.id)

        log_with_context(
            logger,
            logging.DEBUG,
            "Created changelog",
            context={"changelog_id": created.id, "subdomain": created.subdomain},
            workspace_id=created.workspace_id,
        )
        return created

    def get_changelog(
        self,
        workspace_id: WorkspaceID,
        changelog_id: ChangelogID,
        cancel: threading.Event | None = None,
    ) -> Changelog:
        """
        Fetch a changelog together with its linked source.

        Raises:
            NotFoundError: If the workspace has no such changelog
        """
        with self._query("get_changelog", cancel) as conn:
            return self._fetch_changelog(conn, workspace_id, changelog_id)

    def get_changelog_by_domain_or_subdomain(
        self,
        domain: Domain | None,
        subdomain: Subdomain,
        cancel: threading.Event | None = None,
    ) -> Changelog:
        """
        Resolve the changelog served on a host.

        When one changelog matches the custom domain and another matches the
        subdomain, the domain match wins. An empty domain never matches.

        Args:
            domain: Custom domain from the request host, if any
            subdomain: Subdomain from the request host

        Raises:
            NotFoundError: If neither matches
        """
        with self._query("get_changelog_by_domain_or_subdomain", cancel) as conn:
            row = conn.execute(
                CHANGELOG_SELECT
                + """
                WHERE c.domain = :domain OR c.subdomain = :subdomain
                ORDER BY CASE WHEN c.domain = :domain THEN 0 ELSE 1 END
                LIMIT 1
                """,
                {"domain": null_if_empty(domain), "subdomain": subdomain},
            ).fetchone()

        if row is None:
            raise NotFoundError(MSG_CHANGELOG_NOT_FOUND)
        return row_to_changelog(row)

    def list_changelogs(
        self, workspace_id: WorkspaceID, cancel: threading.Event | None = None
    ) -> list[Changelog]:
        """List a workspace's changelogs, oldest first. Empty list if none."""
        with self._query("list_changelogs", cancel) as conn:
            rows = conn.execute(
                CHANGELOG_SELECT
                + " WHERE c.workspace_id = ? ORDER BY c.created_at, c.id",
                (workspace_id,),
            ).fetchall()
        return [row_to_changelog(row) for row in rows]

    def update_changelog(
        self,
        workspace_id: WorkspaceID,
        changelog_id: ChangelogID,
        args: UpdateChangelogArgs,
        cancel: threading.Event | None = None,
    ) -> Changelog:
        """
        Apply a partial update and return the full updated changelog.

        Only the fields set in args are written (see UpdateChangelogArgs for
        what counts as set). The result is re-read so it includes the linked
        source.

        Raises:
            NotFoundError: If the workspace has no such changelog
            BadRequestError: If the new subdomain or domain is already taken
        """
        changes = args.changes()
        if not changes:
            return self.get_changelog(workspace_id, changelog_id, cancel)

        # Keys of changes() are UpdateChangelogArgs field names, which are
        # also the column names
        assignments = ", ".join(f"{column} = :{column}" for column in changes)
        params = {
            column: update_value_to_storage(value) for column, value in changes.items()
        }
        params["where_workspace_id"] = workspace_id
        params["where_id"] = changelog_id

        with self._query("update_changelog", cancel) as conn:
            cursor = conn.execute(
                f"""
                UPDATE changelogs SET {assignments}
                WHERE workspace_id = :where_workspace_id AND id = :where_id
                """,
                params,
            )
            if cursor.rowcount == 0:
                raise NotFoundError(MSG_CHANGELOG_NOT_FOUND)
            updated = self._fetch_changelog(conn, workspace_id, changelog_id)

        log_with_context(
            logger,
            logging.DEBUG,
            "Updated changelog",
            context={"changelog_id": changelog_id, "fields": sorted(changes)},
            workspace_id=workspace_id,
        )
        return updated

    def delete_changelog(
        self,
        workspace_id: WorkspaceID,
        changelog_id: ChangelogID,
        cancel: threading.Event | None = None,
    ) -> None:
        """Delete a changelog. Deleting a missing changelog succeeds."""
        with self._query("delete_changelog", cancel) as conn:
            conn.execute(
                "DELETE FROM changelogs WHERE workspace_id = ? AND id = ?",
                (workspace_id, changelog_id),
            )
        logger.debug(f"Deleted changelog {changelog_id}")

    def set_changelog_gh_source(
        self,
        workspace_id: WorkspaceID,
        changelog_id: ChangelogID,
        source_id: GHSourceID,
        cancel: threading.Event | None = None,
    ) -> None:
        """
        Link a changelog to a GitHub source of the same workspace.

        Replaces any previously linked source. Linking a missing changelog is
        a no-op, like delete.

        Raises:
            NotFoundError: If the workspace has no such source
        """
        with self._query("set_changelog_gh_source", cancel) as conn:
            source = conn.execute(
                "SELECT 1 FROM gh_sources WHERE workspace_id = ? AND id = ?",
                (workspace_id, source_id),
            ).fetchone()
            if source is None:
                raise NotFoundError(MSG_SOURCE_NOT_FOUND)

            conn.execute(
                "UPDATE changelogs SET source_id = ? WHERE workspace_id = ? AND id = ?",
                (source_id, workspace_id, changelog_id),
            )

    def delete_changelog_source(
        self,
        workspace_id: WorkspaceID,
        changelog_id: ChangelogID,
        cancel: threading.Event | None = None,
    ) -> None:
        """Unlink the changelog's source. The source itself is kept."""
        with self._query("delete_changelog_source", cancel) as conn:
            conn.execute(
                "UPDATE changelogs SET source_id = NULL WHERE workspace_id = ? AND id = ?",
                (workspace_id, changelog_id),
            )

    # ========================================================================
    # Workspaces & tokens
    # ========================================================================

    def save_workspace(
        self, workspace: Workspace, cancel: threading.Event | None = None
    ) -> Workspace:
        """
        Insert or update a workspace and, when given, its token, atomically.

        Both writes run in one transaction: if the token insert fails (for
        example because the key belongs to another workspace) the workspace
        write is rolled back too. A new token replaces the workspace's
        previous one.

        Args:
            workspace: Workspace to save; token "" leaves tokens untouched

        Returns:
            Workspace: The saved workspace

        Raises:
            DatabaseQueryError: If any statement or the commit fails
        """
        with self._query("save_workspace", cancel) as conn:
            conn.execute("BEGIN")
            try:
                conn.execute(
                    """
                    INSERT INTO workspaces (id, name) VALUES (?, ?)
                    ON CONFLICT(id) DO UPDATE SET name = excluded.name
                    """,
                    (workspace.id, workspace.name),
                )

                if workspace.token:
                    conn.execute(
                        "DELETE FROM tokens WHERE workspace_id = ?", (workspace.id,)
                    )
                    conn.execute(
                        "INSERT INTO tokens (key, workspace_id) VALUES (?, ?)",
                        (workspace.token, workspace.id),
                    )

                conn.commit()
            except BaseException:
                # A set cancel event would abort the ROLLBACK itself
                conn.set_progress_handler(None, CANCEL_CHECK_INTERVAL)
                conn.rollback()
                raise

        log_with_context(
            logger,
            logging.INFO,
            "Saved workspace",
            context={"with_token": bool(workspace.token)},
            workspace_id=workspace.id,
        )
        return Workspace(id=workspace.id, name=workspace.name, token=workspace.token)

    def get_workspace(
        self, workspace_id: WorkspaceID, cancel: threading.Event | None = None
    ) -> Workspace:
        """
        Fetch a workspace with its token ("" when it has none).

        Raises:
            NotFoundError: If the workspace doesn't exist
        """
        with self._query("get_workspace", cancel) as conn:
            row = conn.execute(
                """
                SELECT w.id, w.name, t.key AS token
                FROM workspaces w
                LEFT JOIN tokens t ON t.workspace_id = w.id
                WHERE w.id = ?
                LIMIT 1
                """,
                (workspace_id,),
            ).fetchone()

        if row is None:
            raise NotFoundError(MSG_WORKSPACE_NOT_FOUND)
        return row_to_workspace(row)

    def get_workspace_id_by_token(
        self, token: str, cancel: threading.Event | None = None
    ) -> WorkspaceID:
        """
        Resolve a bearer token to its workspace.

        Raises:
            UnauthorizedError: If the token is unknown
        """
        with self._query("get_workspace_id_by_token", cancel) as conn:
            row = conn.execute(
                "SELECT workspace_id FROM tokens WHERE key = ?", (token,)
            ).fetchone()

        if row is None:
            raise UnauthorizedError(MSG_INVALID_TOKEN)
        return WorkspaceID(row["workspace_id"])

    def delete_workspace(
        self, workspace_id: WorkspaceID, cancel: threading.Event | None = None
    ) -> None:
        """
        Delete a workspace. Its tokens, sources and changelogs are removed by
        the schema's ON DELETE CASCADE. Deleting a missing workspace succeeds.
        """
        with self._query("delete_workspace", cancel) as conn:
            conn.execute("DELETE FROM workspaces WHERE id = ?", (workspace_id,))
        logger.info(f"Deleted workspace {workspace_id}")

    def list_workspaces_changelog_count(
        self, cancel: threading.Event | None = None
    ) -> list[WorkspaceChangelogCount]:
        """
        List every workspace with the number of changelogs it owns.

        Workspaces without changelogs are included with a count of 0.
        """
        with self._query("list_workspaces_changelog_count", cancel) as conn:
            rows = conn.execute(
                """
                SELECT w.id, w.name, COUNT(c.id) AS changelog_count
                FROM workspaces w
                LEFT JOIN changelogs c ON c.workspace_id = w.id
                GROUP BY w.id, w.name
                ORDER BY w.id
                """
            ).fetchall()

        return [
            WorkspaceChangelogCount(
                workspace=row_to_workspace(row),
                changelog_count=row["changelog_count"],
            )
            for row in rows
        ]

    # ========================================================================
    # GitHub sources
    # ========================================================================

    def create_gh_source(
        self, source: GHSource, cancel: threading.Event | None = None
    ) -> GHSource:
        """
        Insert a GitHub source. It stays unattached until linked to a changelog.

        Raises:
            DatabaseQueryError: If the id is taken or the workspace is unknown
        """
        with self._query("create_gh_source", cancel) as conn:
            conn.execute(
                """
                INSERT INTO gh_sources (
                    id, workspace_id, owner, repo, path, installation_id
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    source.id,
                    source.workspace_id,
                    source.owner,
                    source.repo,
                    source.path,
                    source.installation_id,
                ),
            )
        logger.debug(f"Created GitHub source {source.id} for {source.owner}/{source.repo}")
        return GHSource(
            id=source.id,
            workspace_id=source.workspace_id,
            owner=source.owner,
            repo=source.repo,
            path=source.path,
            installation_id=source.installation_id,
        )

    def get_gh_source(
        self,
        workspace_id: WorkspaceID,
        source_id: GHSourceID,
        cancel: threading.Event | None = None,
    ) -> GHSource:
        """
        Raises:
            NotFoundError: If the workspace has no such source
        """
        with self._query("get_gh_source", cancel) as conn:
            row = conn.execute(
                GH_SOURCE_SELECT + " WHERE workspace_id = ? AND id = ?",
                (workspace_id, source_id),
            ).fetchone()

        if row is None:
            raise NotFoundError(MSG_SOURCE_NOT_FOUND)
        return row_to_gh_source(row)

    def delete_gh_source(
        self,
        workspace_id: WorkspaceID,
        source_id: GHSourceID,
        cancel: threading.Event | None = None,
    ) -> None:
        # Linked changelogs keep existing; the schema sets their source_id to NULL
        with self._query("delete_gh_source", cancel) as conn:
            conn.execute(
                "DELETE FROM gh_sources WHERE workspace_id = ? AND id = ?",
                (workspace_id, source_id),
            )

    def list_gh_sources(
        self, workspace_id: WorkspaceID, cancel: threading.Event | None = None
    ) -> list[GHSource]:
        with self._query("list_gh_sources", cancel) as conn:
            rows = conn.execute(
                GH_SOURCE_SELECT + " WHERE workspace_id = ? ORDER BY id",
                (workspace_id,),
            ).fetchall()
        return [row_to_gh_source(row) for row in rows]


def open_store(settings: StoreSettings, configure_logging: bool = False) -> SQLiteStore:
    """
    Open a store from validated settings.

    Args:
        settings: Validated store settings
        configure_logging: Install the JSON stderr handler first, at DEBUG when
                           settings.verbose_logging is set
    """
    if configure_logging:
        setup_logging(verbose=settings.verbose_logging)
    return SQLiteStore.open(settings.connection, migrations_dir=settings.migrations_dir)


def open_store_from_config(
    config_path: str | Path, configure_logging: bool = False
) -> SQLiteStore:
    """
    Load settings from YAML and open the store they describe.

    Raises:
        ConfigFileNotFoundError: If the settings file doesn't exist
        ConfigValidationError: If the settings are invalid
        DatabaseInitError: If the database cannot be opened
        DatabaseMigrationError: If a migration script fails
    """
    return open_store(load_settings(config_path), configure_logging=configure_logging)
