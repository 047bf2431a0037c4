"""Application error taxonomy.

Each error carries the HTTP status it maps to. Handlers registered in
``src.main`` turn them into ``{"detail": message}`` responses.
"""


class ProductScanError(Exception):
    """Base exception for ProductScan errors."""

    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class ValidationError(ProductScanError):
    """Malformed or missing request input."""

    status_code = 400


class AuthorizationError(ProductScanError):
    """Caller has no usable identity."""

    status_code = 401


class ForbiddenError(ProductScanError):
    """Caller is identified but lacks the required role."""

    status_code = 403


class NotFoundError(ProductScanError):
    """Requested resource does not exist or is not visible to the caller."""

    status_code = 404


class ExtractionError(ProductScanError):
    """OCR failed. Fatal to the current request."""


class ClassificationError(ProductScanError):
    """Vision model call failed or returned an unusable response."""


class PersistenceError(ProductScanError):
    """Database write failed."""


class EmailError(ProductScanError):
    """Email transport failed."""
