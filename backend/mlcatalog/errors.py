# backend/mlcatalog/errors.py
"""Typed errors raised by the catalog core.

Every public entry point either returns a result or raises exactly one of
these. The API layer turns them into HTTP responses using ``http_status``.
"""


class CatalogError(Exception):
    code = "internal"
    http_status = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidArgument(CatalogError):
    code = "invalid_argument"
    http_status = 400


class NotFound(CatalogError):
    code = "not_found"
    http_status = 404


class AlreadyExists(CatalogError):
    code = "already_exists"
    http_status = 409


class PermissionDenied(CatalogError):
    code = "permission_denied"
    http_status = 403


class Unavailable(CatalogError):
    code = "unavailable"
    http_status = 503


class InternalError(CatalogError):
    code = "internal"
    http_status = 500


class StaleResourceError(Exception):
    """A compare-and-swap on ``date_updated`` lost to a concurrent writer.

    Never surfaces to callers; ``run_with_retry`` retries on it.
    """
