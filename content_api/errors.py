"""
Error taxonomy shared by the store, the aggregation engine and the routers.

Routers never build error responses by hand: main.py maps each class to an
HTTP status.
"""


class ContentApiError(Exception):
    """Base class for all errors raised by this package."""

    status_code = 500

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message or self.__class__.__doc__ or ""


class NotFoundError(ContentApiError):
    """Referenced entity does not exist."""

    status_code = 404


class ConflictError(ContentApiError):
    """Unique relation already exists (like, follow, username)."""

    status_code = 409


class ForbiddenError(ContentApiError):
    """Viewer does not own the target entity."""

    status_code = 403


class AuthenticationRequiredError(ContentApiError):
    """Authentication required"""

    status_code = 401


class InvalidRequestError(ContentApiError):
    """Request is well-formed but not allowed by the data model."""

    status_code = 400


class StoreError(ContentApiError):
    """Entity store failed to answer a query."""

    status_code = 500


class AggregationUnavailableError(ContentApiError):
    """Primary entity could not be fetched, so no view can be assembled."""

    status_code = 503
