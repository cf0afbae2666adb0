"""
Error taxonomy for the portal API.

Handlers raise these; the dispatch endpoint renders them as
``{"error": message}`` with the matching status code.
"""

from __future__ import annotations


class PortalError(Exception):
    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationFailed(PortalError):
    status_code = 400
    default_message = "Invalid request data"


class InvalidCredentials(PortalError):
    status_code = 401
    default_message = "Invalid credentials"


class NotFound(PortalError):
    status_code = 404
    default_message = "Not found"


class RouteNotFound(NotFound):
    def __init__(self, method: str, path: str):
        self.method = method
        self.path = path
        super().__init__(f"Route not found: {method} {path}")


class UsernameExistsError(PortalError):
    status_code = 409
    default_message = "Username already exists"


class ConfigurationError(RuntimeError):
    """Raised at startup when the selected storage backend cannot be built."""
