"""Service error taxonomy.

Every failure the core reports falls into one of four kinds. The API layer
renders them as ``{"success": false, "error": <code>, "detail": ...}`` with
the status code carried on the class.
"""


class ServiceError(Exception):
    code = "error"
    status_code = 500

    def __init__(self, detail: str = ""):
        super().__init__(detail)
        self.detail = detail


class ParseError(ServiceError):
    """Inbound text alert does not match any known template."""
    code = "parse_error"
    status_code = 400


class ValidationError(ServiceError):
    """Structured input is missing required fields or has invalid values."""
    code = "validation_error"
    status_code = 422

    def __init__(self, detail: str = "", errors: list | None = None):
        super().__init__(detail)
        self.errors = errors or []


class NotFoundError(ServiceError):
    code = "not_found"
    status_code = 404


class StorageError(ServiceError):
    """Persistence failure. The detail shown to callers stays generic."""
    code = "storage_error"
    status_code = 500

    public_detail = "Internal storage error"
