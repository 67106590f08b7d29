"""
Custom exceptions for the changelog store.

This module provides the error taxonomy surfaced by every store operation.
All exceptions inherit from ChangelogStoreError so callers can catch
everything raised by this package with a single except clause, and each
caller-facing exception carries a stable ``category`` so an API layer can
branch on it without parsing messages.

Exception Hierarchy:
    ChangelogStoreError (base)
    ├── ConfigurationError
    │   ├── ConfigFileNotFoundError
    │   └── ConfigValidationError
    ├── StoreError
    │   ├── NotFoundError        (category "not_found")
    │   ├── UnauthorizedError    (category "unauthorized")
    │   └── BadRequestError      (category "bad_request")
    └── DatabaseError            (category "internal")
        ├── DatabaseInitError
        ├── DatabaseMigrationError
        ├── DatabaseQueryError
        └── OperationCancelledError

Usage:
    from changelog_store.exceptions import NotFoundError

    try:
        changelog = store.get_changelog(workspace_id, changelog_id)
    except NotFoundError:
        return 404
"""

# Category identifiers exposed to callers
CATEGORY_NOT_FOUND = "not_found"
CATEGORY_UNAUTHORIZED = "unauthorized"
CATEGORY_BAD_REQUEST = "bad_request"
CATEGORY_INTERNAL = "internal"

# Fixed caller-facing messages
MSG_CHANGELOG_NOT_FOUND = "changelog not found"
MSG_WORKSPACE_NOT_FOUND = "workspace not found"
MSG_SOURCE_NOT_FOUND = "source not found"
MSG_INVALID_TOKEN = "invalid bearer token"
MSG_SUBDOMAIN_TAKEN = "subdomain already taken, please try again with a different one"
MSG_DOMAIN_TAKEN = "domain already taken, please try again with a different one"
MSG_NAIVE_CREATED_AT = "created_at must be timezone-aware"


class ChangelogStoreError(Exception):
    """
    Base exception for all changelog store errors.

    Example:
        try:
            store.save_workspace(workspace)
        except ChangelogStoreError as e:
            logger.error(f"Store error: {e}")
    """

    category = CATEGORY_INTERNAL


# ============================================================================
# Configuration Errors
# ============================================================================


class ConfigurationError(ChangelogStoreError):
    """
    Base class for configuration-related errors.

    Raised when store settings cannot be loaded, parsed, or validated.
    """

    pass


class ConfigFileNotFoundError(ConfigurationError):
    """
    Settings file does not exist at the specified path.

    Example:
        raise ConfigFileNotFoundError("/etc/changelog/store.yaml")
    """

    pass


class ConfigValidationError(ConfigurationError):
    """
    Settings file is invalid (YAML syntax or schema validation failed).

    Example:
        raise ConfigValidationError("Field 'connection' cannot be empty")
    """

    pass


# ============================================================================
# Caller-facing Errors
# ============================================================================


class StoreError(ChangelogStoreError):
    """
    Base class for errors an API layer is expected to translate.

    Subclasses set ``category``; messages are safe to show to end users.
    """

    pass


class NotFoundError(StoreError):
    """
    A workspace-scoped lookup matched no row.

    Never exposes storage-specific "no rows" details.

    Example:
        raise NotFoundError(MSG_CHANGELOG_NOT_FOUND)
    """

    category = CATEGORY_NOT_FOUND


class UnauthorizedError(StoreError):
    """
    A bearer token did not resolve to a workspace.

    Kept distinct from NotFoundError so authentication failures can be told
    apart from missing resources.
    """

    category = CATEGORY_UNAUTHORIZED


class BadRequestError(StoreError):
    """
    The request conflicts with stored data, e.g. a subdomain already in use.

    Example:
        raise BadRequestError(MSG_SUBDOMAIN_TAKEN)
    """

    category = CATEGORY_BAD_REQUEST


# ============================================================================
# Database Errors
# ============================================================================


class DatabaseError(ChangelogStoreError):
    """
    Base class for internal database errors.

    These are fatal to the triggering request, and fatal to startup when
    raised while opening a store.
    """

    pass


class DatabaseInitError(DatabaseError):
    """
    Database could not be created, opened, or validated.

    Example:
        raise DatabaseInitError("failed to initialize database: disk I/O error")
    """

    pass


class DatabaseMigrationError(DatabaseError):
    """
    A migration script could not be read or executed.

    Attributes:
        filename: Name of the failing script, if known

    Example:
        raise DatabaseMigrationError(
            "failed to execute migration 0002_changelogs.sql: near 'TABL': syntax error",
            filename="0002_changelogs.sql",
        )
    """

    def __init__(self, message: str, filename: str | None = None):
        super().__init__(message)
        self.filename = filename


class DatabaseQueryError(DatabaseError):
    """
    A store operation failed for a reason with no caller-facing category.

    Attributes:
        operation: Name of the store operation that failed

    Example:
        raise DatabaseQueryError("save_workspace failed: UNIQUE constraint failed: tokens.key",
                                 operation="save_workspace")
    """

    def __init__(self, message: str, operation: str | None = None):
        super().__init__(message)
        self.operation = operation


class OperationCancelledError(DatabaseError):
    """
    The in-flight statement was aborted by Store.interrupt().

    The statement did not complete; no partial result is returned.
    """

    def __init__(self, message: str, operation: str | None = None):
        super().__init__(message)
        self.operation = operation
