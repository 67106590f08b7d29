"""
Persistence layer for a multi-tenant changelog hosting service.

Stores workspaces, bearer tokens, changelog configurations and GitHub content
sources in SQLite, applying the bundled schema migrations when opened.

Example:
    >>> from changelog_store import SQLiteStore, Workspace, new_workspace_id, new_token
    >>>
    >>> with SQLiteStore.open("file:data/changelogs.db") as store:
    ...     ws = store.save_workspace(
    ...         Workspace(id=new_workspace_id(), name="Acme", token=new_token())
    ...     )
    ...     store.get_workspace_id_by_token(ws.token) == ws.id
    True
"""

# Domain model
from .models import (
    Changelog,
    ChangelogID,
    ColorScheme,
    Domain,
    GHSource,
    GHSourceID,
    Logo,
    Subdomain,
    Token,
    UpdateChangelogArgs,
    Workspace,
    WorkspaceChangelogCount,
    WorkspaceID,
    new_changelog_id,
    new_gh_source_id,
    new_token,
    new_workspace_id,
)

# Errors
from .exceptions import (
    BadRequestError,
    ChangelogStoreError,
    DatabaseError,
    NotFoundError,
    UnauthorizedError,
)

# Store
from .storage.base import ChangelogStore
from .storage.db import SQLiteStore, open_store, open_store_from_config

__all__ = [
    # Identifiers
    "ChangelogID",
    "Domain",
    "GHSourceID",
    "Subdomain",
    "Token",
    "WorkspaceID",
    "new_changelog_id",
    "new_gh_source_id",
    "new_token",
    "new_workspace_id",
    # Data classes
    "Changelog",
    "ColorScheme",
    "GHSource",
    "Logo",
    "UpdateChangelogArgs",
    "Workspace",
    "WorkspaceChangelogCount",
    # Errors
    "BadRequestError",
    "ChangelogStoreError",
    "DatabaseError",
    "NotFoundError",
    "UnauthorizedError",
    # Store
    "ChangelogStore",
    "SQLiteStore",
    "open_store",
    "open_store_from_config",
]
