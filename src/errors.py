"""
Error types for the Bundle Upsell app.

Every error carries the HTTP status code and the public message the API
returns for it. Internal details stay in the logs.
"""

from typing import Optional


class BundleAppError(Exception):
    """Base class for all errors surfaced by the API."""

    status_code = 500
    default_message = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(BundleAppError):
    """Required input is missing or malformed."""

    status_code = 400
    default_message = "Invalid request"


class AuthenticationError(BundleAppError):
    """The OAuth callback could not be validated."""

    status_code = 500
    default_message = "Authentication failed."


class SessionError(BundleAppError):
    """No authenticated session could be resolved for the request."""

    status_code = 500
    default_message = "Failed to fetch products."


class ProviderError(BundleAppError):
    """A call to the Shopify Admin API failed."""

    status_code = 500
    default_message = "Failed to fetch products."


class NotFoundError(BundleAppError):
    status_code = 404
    default_message = "Bundle not found."


class StorageError(BundleAppError):
    """The database driver failed."""

    status_code = 500
    default_message = "Storage operation failed."
