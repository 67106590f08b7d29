"""
Conversion between domain objects and SQLite rows.

Parameter marshalling turns domain values into storage primitives (flags to
0/1 integers, empty strings to NULL, datetimes to unix seconds) and row
unmarshalling turns sqlite3.Row objects back into dataclasses. Keeping both
directions here means storage/db.py only deals with statements.
"""

import sqlite3
from typing import Any

from ..models import (
    Changelog,
    ChangelogID,
    ColorScheme,
    Domain,
    GHSource,
    GHSourceID,
    Logo,
    Subdomain,
    Token,
    Workspace,
    WorkspaceID,
)
from ..utils.time import from_unix_seconds, to_unix_seconds, utc_now

# Columns selected for every changelog read. The source columns come from a
# LEFT JOIN and are all NULL when no source is linked.
CHANGELOG_SELECT = """
    SELECT
        c.id,
        c.workspace_id,
        c.subdomain,
        c.domain,
        c.title,
        c.subtitle,
        c.logo_src,
        c.logo_link,
        c.logo_alt,
        c.logo_height,
        c.logo_width,
        c.color_scheme,
        c.hide_powered_by,
        c.protected,
        c.analytics,
        c.searchable,
        c.password_hash,
        c.created_at,
        s.id AS source_id,
        s.workspace_id AS source_workspace_id,
        s.owner AS source_owner,
        s.repo AS source_repo,
        s.path AS source_path,
        s.installation_id AS source_installation_id
    FROM changelogs c
    LEFT JOIN gh_sources s
        ON s.id = c.source_id AND s.workspace_id = c.workspace_id
"""

GH_SOURCE_SELECT = """
    SELECT id, workspace_id, owner, repo, path, installation_id
    FROM gh_sources
"""


def bool_to_int(value: bool) -> int:
    """Return 1 for True, otherwise 0."""
    return 1 if value else 0


def null_if_empty(value: str | None) -> str | None:
    """Map "" to None so optional text columns store NULL instead of ''."""
    return value if value else None


def changelog_to_params(changelog: Changelog) -> dict[str, Any]:
    """
    Marshal a changelog into named parameters for the insert statement.

    created_at defaults to the current time when the changelog has none.
    The linked source is not part of the row parameters.

    Raises:
        ValueError: If created_at is a naive datetime
    """
    created_at = changelog.created_at if changelog.created_at is not None else utc_now()
    return {
        "id": changelog.id,
        "workspace_id": changelog.workspace_id,
        "subdomain": changelog.subdomain,
        "domain": null_if_empty(changelog.domain),
        "title": null_if_empty(changelog.title),
        "subtitle": null_if_empty(changelog.subtitle),
        "logo_src": null_if_empty(changelog.logo.src),
        "logo_link": null_if_empty(changelog.logo.link),
        "logo_alt": null_if_empty(changelog.logo.alt),
        "logo_height": null_if_empty(changelog.logo.height),
        "logo_width": null_if_empty(changelog.logo.width),
        "color_scheme": int(changelog.color_scheme),
        "hide_powered_by": bool_to_int(changelog.hide_powered_by),
        "protected": bool_to_int(changelog.protected),
        "analytics": bool_to_int(changelog.analytics),
        "searchable": bool_to_int(changelog.searchable),
        "password_hash": null_if_empty(changelog.password_hash),
        "created_at": to_unix_seconds(created_at),
    }


def update_value_to_storage(value: object) -> object:
    """Marshal a single UpdateChangelogArgs value into its column value."""
    if isinstance(value, bool):
        return bool_to_int(value)
    if isinstance(value, ColorScheme):
        return int(value)
    return value


def row_to_changelog(row: sqlite3.Row) -> Changelog:
    """
    Unmarshal a row produced by CHANGELOG_SELECT.

    The source is attached only when both its id and workspace id are
    present, i.e. the join actually matched.
    """
    gh_source = None
    if row["source_id"] is not None and row["source_workspace_id"] is not None:
        gh_source = GHSource(
            id=GHSourceID(row["source_id"]),
            workspace_id=WorkspaceID(row["source_workspace_id"]),
            owner=row["source_owner"],
            repo=row["source_repo"],
            path=row["source_path"],
            installation_id=row["source_installation_id"],
        )

    return Changelog(
        id=ChangelogID(row["id"]),
        workspace_id=WorkspaceID(row["workspace_id"]),
        subdomain=Subdomain(row["subdomain"]),
        domain=Domain(row["domain"]) if row["domain"] is not None else None,
        title=row["title"],
        subtitle=row["subtitle"],
        logo=Logo(
            src=row["logo_src"],
            link=row["logo_link"],
            alt=row["logo_alt"],
            height=row["logo_height"],
            width=row["logo_width"],
        ),
        color_scheme=ColorScheme(row["color_scheme"]),
        hide_powered_by=row["hide_powered_by"] == 1,
        protected=row["protected"] == 1,
        analytics=row["analytics"] == 1,
        searchable=row["searchable"] == 1,
        password_hash=row["password_hash"],
        created_at=from_unix_seconds(row["created_at"]),
        gh_source=gh_source,
    )


def row_to_gh_source(row: sqlite3.Row) -> GHSource:
    return GHSource(
        id=GHSourceID(row["id"]),
        workspace_id=WorkspaceID(row["workspace_id"]),
        owner=row["owner"],
        repo=row["repo"],
        path=row["path"],
        installation_id=row["installation_id"],
    )


def row_to_workspace(row: sqlite3.Row) -> Workspace:
    """Unmarshal a workspace row; a missing joined token becomes ""."""
    token = row["token"] if "token" in row.keys() else None
    return Workspace(
        id=WorkspaceID(row["id"]),
        name=row["name"],
        token=Token(token or ""),
    )
