"""Shared fixtures: an opened store on a temporary database and a seeded workspace."""

import logging

import pytest

from changelog_store.models import (
    Changelog,
    Subdomain,
    Token,
    Workspace,
    WorkspaceID,
    new_changelog_id,
)
from changelog_store.storage.db import SQLiteStore


@pytest.fixture
def store(tmp_path):
    """Open a store with the bundled migrations and close it afterwards."""
    s = SQLiteStore.open(str(tmp_path / "changelogs.db"))
    yield s
    s.close()


@pytest.fixture
def workspace(store):
    """A saved workspace with a token."""
    return store.save_workspace(
        Workspace(id=WorkspaceID("ws_acme"), name="Acme", token=Token("tok_acme"))
    )


@pytest.fixture
def other_workspace(store):
    """A second saved workspace, without a token."""
    return store.save_workspace(Workspace(id=WorkspaceID("ws_globex"), name="Globex"))


@pytest.fixture
def make_changelog(store):
    """Factory creating a changelog in a workspace with sensible defaults."""

    def _make(workspace_id, subdomain, **fields):
        return store.create_changelog(
            Changelog(
                id=fields.pop("id", new_changelog_id()),
                workspace_id=workspace_id,
                subdomain=Subdomain(subdomain),
                **fields,
            )
        )

    return _make


@pytest.fixture
def restore_root_logger():
    """Restore root logger handlers and level changed by setup_logging()."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)
