"""
Store contract for the changelog service.

ChangelogStore is the interface the web layer and the GitHub integration
program against. SQLiteStore in storage/db.py is the implementation.

Every changelog and source operation takes the owning WorkspaceID; there is no
operation addressed by a bare ChangelogID or GHSourceID.

Every operation also takes an optional cancel event owned by the caller.
Setting it aborts that call's in-flight statement with OperationCancelledError.
"""

import threading
from typing import Protocol

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


class ChangelogStore(Protocol):
    """
    Protocol defining the persistence operations of the changelog service.

    Errors:
        NotFoundError: Scoped lookup matched no row
        UnauthorizedError: Token did not resolve to a workspace
        BadRequestError: Subdomain or domain already taken
        OperationCancelledError: The call's cancel event was set
        DatabaseError: Anything else (internal)

    List operations return an empty list when nothing matches. Delete
    operations succeed when nothing matches.
    """

    def create_changelog(
        self, changelog: Changelog, cancel: threading.Event | None = None
    ) -> Changelog: ...

    def get_changelog(
        self,
        workspace_id: WorkspaceID,
        changelog_id: ChangelogID,
        cancel: threading.Event | None = None,
    ) -> Changelog: ...

    def get_changelog_by_domain_or_subdomain(
        self,
        domain: Domain | None,
        subdomain: Subdomain,
        cancel: threading.Event | None = None,
    ) -> Changelog: ...

    def list_changelogs(
        self, workspace_id: WorkspaceID, cancel: threading.Event | None = None
    ) -> list[Changelog]: ...

    def update_changelog(
        self,
        workspace_id: WorkspaceID,
        changelog_id: ChangelogID,
        args: UpdateChangelogArgs,
        cancel: threading.Event | None = None,
    ) -> Changelog: ...

    def delete_changelog(
        self,
        workspace_id: WorkspaceID,
        changelog_id: ChangelogID,
        cancel: threading.Event | None = None,
    ) -> None: ...

    def set_changelog_gh_source(
        self,
        workspace_id: WorkspaceID,
        changelog_id: ChangelogID,
        source_id: GHSourceID,
        cancel: threading.Event | None = None,
    ) -> None: ...

    def delete_changelog_source(
        self,
        workspace_id: WorkspaceID,
        changelog_id: ChangelogID,
        cancel: threading.Event | None = None,
    ) -> None: ...

    def save_workspace(
        self, workspace: Workspace, cancel: threading.Event | None = None
    ) -> Workspace: ...

    def get_workspace(
        self, workspace_id: WorkspaceID, cancel: threading.Event | None = None
    ) -> Workspace: ...

    def get_workspace_id_by_token(
        self, token: str, cancel: threading.Event | None = None
    ) -> WorkspaceID: ...

    def delete_workspace(
        self, workspace_id: WorkspaceID, cancel: threading.Event | None = None
    ) -> None: ...

    def list_workspaces_changelog_count(
        self, cancel: threading.Event | None = None
    ) -> list[WorkspaceChangelogCount]: ...

    def create_gh_source(
        self, source: GHSource, cancel: threading.Event | None = None
    ) -> GHSource: ...

    def get_gh_source(
        self,
        workspace_id: WorkspaceID,
        source_id: GHSourceID,
        cancel: threading.Event | None = None,
    ) -> GHSource: ...

    def delete_gh_source(
        self,
        workspace_id: WorkspaceID,
        source_id: GHSourceID,
        cancel: threading.Event | None = None,
    ) -> None: ...

    def list_gh_sources(
        self, workspace_id: WorkspaceID, cancel: threading.Event | None = None
    ) -> list[GHSource]: ...

    def close(self) -> None: ...
