"""
Domain exceptions shared by repositories, services and the REST layer.

The API maps each class to an HTTP status code (see ``api.errors``):
NotFoundError -> 404, DuplicateError -> 409, ValidationError -> 400,
AuthenticationError -> 401, PermissionDeniedError -> 403, anything else
derived from RepositoryException -> 500.
"""


class RepositoryException(Exception):
    """Base exception for repository operations."""


class NotFoundError(RepositoryException):
    """Raised when an entity is not found."""


class DuplicateError(RepositoryException):
    """Raised when attempting to create a duplicate entity."""


class ValidationError(RepositoryException):
    """Raised when input is well typed but not acceptable (bad id, bad range)."""


class BusinessRuleError(ValidationError):
    """Raised when an operation breaks a library rule (stock, limits, state)."""


class AuthenticationError(RepositoryException):
    """Raised when credentials or bearer tokens cannot be verified."""


class PermissionDeniedError(RepositoryException):
    """Raised when the current user's role is not allowed to perform an action."""
