"""
Domain model for the changelog store.

Identifiers are NewTypes over str so that a ChangelogID cannot silently be
passed where a WorkspaceID is expected (under a type checker). Entities are
plain dataclasses: value objects with no shared mutable state.

Key components:
- Identifiers: WorkspaceID, ChangelogID, GHSourceID, Token, Subdomain, Domain
- ColorScheme: Theme enumeration persisted as an integer
- Workspace, Changelog, Logo, GHSource: persisted entities (a token is persisted
  as part of its Workspace)
- WorkspaceChangelogCount: Derived read model for administrative listings
- UpdateChangelogArgs: Partial update request (None means "leave untouched")

Example:
    >>> ws = Workspace(id=new_workspace_id(), name="Acme", token=new_token())
    >>> cl = Changelog(
    ...     id=new_changelog_id(),
    ...     workspace_id=ws.id,
    ...     subdomain=Subdomain("acme"),
    ...     title="Acme Releases",
    ... )
"""

import secrets
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import NewType

WorkspaceID = NewType("WorkspaceID", str)
ChangelogID = NewType("ChangelogID", str)
GHSourceID = NewType("GHSourceID", str)
Token = NewType("Token", str)
Subdomain = NewType("Subdomain", str)
Domain = NewType("Domain", str)


def new_workspace_id() -> WorkspaceID:
    """Generate a random workspace identifier, e.g. 'ws_9f2c...'."""
    return WorkspaceID(f"ws_{secrets.token_hex(10)}")


def new_changelog_id() -> ChangelogID:
    """Generate a random changelog identifier, e.g. 'cl_41ab...'."""
    return ChangelogID(f"cl_{secrets.token_hex(10)}")


def new_gh_source_id() -> GHSourceID:
    """Generate a random GitHub source identifier, e.g. 'gh_07de...'."""
    return GHSourceID(f"gh_{secrets.token_hex(10)}")


def new_token() -> Token:
    """Generate an opaque URL-safe bearer token."""
    return Token(secrets.token_urlsafe(32))


class ColorScheme(IntEnum):
    """
    Theme of a rendered changelog.

    SYSTEM is the zero value; UpdateChangelogArgs treats it as "unset", so an
    update cannot switch a changelog back to SYSTEM.
    """

    SYSTEM = 0
    DARK = 1
    LIGHT = 2


@dataclass
class Workspace:
    """
    Tenant boundary owning changelogs, sources and at most one token.

    Attributes:
        id: Workspace identifier
        name: Display name
        token: Bearer token for API access ("" when the workspace has none)
    """

    id: WorkspaceID
    name: str
    token: Token = Token("")


@dataclass
class GHSource:
    """
    Repository location supplying changelog content.

    Attributes:
        id: Source identifier
        workspace_id: Owning workspace
        owner: GitHub account or organization
        repo: Repository name
        path: Directory within the repository holding release notes
        installation_id: GitHub App installation granting access
    """

    id: GHSourceID
    workspace_id: WorkspaceID
    owner: str
    repo: str
    path: str
    installation_id: int


@dataclass
class Logo:
    """Logo shown in the changelog header. Height and width are CSS lengths."""

    src: str | None = None
    link: str | None = None
    alt: str | None = None
    height: str | None = None
    width: str | None = None


@dataclass
class Changelog:
    """
    A publicly servable release-notes configuration.

    Addressable by its subdomain or, when set, by a custom domain. Both are
    globally unique.

    Attributes:
        id: Changelog identifier, unique within the workspace
        workspace_id: Owning workspace
        subdomain: Unique subdomain the changelog is served on
        domain: Optional unique custom domain
        title: Page title
        subtitle: Page subtitle
        logo: Header logo
        color_scheme: Theme
        hide_powered_by: Hide the "powered by" footer
        protected: Require a password to view
        analytics: Collect page analytics
        searchable: Expose full-text search
        password_hash: Hash checked when protected is set
        created_at: Creation time (UTC); filled in by the store when None
        gh_source: Linked content source, if any
    """

    id: ChangelogID
    workspace_id: WorkspaceID
    subdomain: Subdomain
    domain: Domain | None = None
    title: str | None = None
    subtitle: str | None = None
    logo: Logo = field(default_factory=Logo)
    color_scheme: ColorScheme = ColorScheme.SYSTEM
    hide_powered_by: bool = False
    protected: bool = False
    analytics: bool = False
    searchable: bool = False
    password_hash: str | None = None
    created_at: datetime | None = None
    gh_source: GHSource | None = None


@dataclass
class WorkspaceChangelogCount:
    """Administrative projection: a workspace and how many changelogs it owns."""

    workspace: Workspace
    changelog_count: int


@dataclass
class UpdateChangelogArgs:
    """
    Partial update request for a changelog.

    Every field defaults to None, meaning "leave the stored value untouched".

    Two conventions apply:
    - Boolean flags are tri-state: None leaves the column alone, while True
      and False are both written. Passing False clears a stored True.
    - Strings and color_scheme also treat their zero value as unset: ""
      and ColorScheme.SYSTEM leave the column alone. A caller therefore
      cannot clear a title or switch back to SYSTEM through an update.

    Example:
        >>> args = UpdateChangelogArgs(title="New title", protected=False)
        >>> sorted(args.changes())
        ['protected', 'title']
    """

    subdomain: Subdomain | None = None
    domain: Domain | None = None
    title: str | None = None
    subtitle: str | None = None
    logo_src: str | None = None
    logo_link: str | None = None
    logo_alt: str | None = None
    logo_height: str | None = None
    logo_width: str | None = None
    color_scheme: ColorScheme | None = None
    hide_powered_by: bool | None = None
    protected: bool | None = None
    analytics: bool | None = None
    searchable: bool | None = None
    password_hash: str | None = None

    def changes(self) -> dict[str, object]:
        """
        Return the fields that are set, keyed by field name.

        Returns:
            dict: Only fields whose value should be written
        """
        result: dict[str, object] = {}
        for name in _UPDATE_STRING_FIELDS:
            value = getattr(self, name)
            if value:
                result[name] = value
        if self.color_scheme:
            result["color_scheme"] = ColorScheme(self.color_scheme)
        for name in _UPDATE_FLAG_FIELDS:
            value = getattr(self, name)
            if value is not None:
                result[name] = bool(value)
        return result


_UPDATE_STRING_FIELDS = (
    "subdomain",
    "domain",
    "title",
    "subtitle",
    "logo_src",
    "logo_link",
    "logo_alt",
    "logo_height",
    "logo_width",
    "password_hash",
)

_UPDATE_FLAG_FIELDS = ("hide_powered_by", "protected", "analytics", "searchable")
