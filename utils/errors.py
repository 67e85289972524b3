"""Service-layer error taxonomy mapped onto HTTP status codes."""


class ServiceError(Exception):
    """Base class for failures reported to the API caller."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message}


class ValidationError(ServiceError):
    """Malformed or missing input, invalid enum value."""

    status_code = 400


class PermissionDenied(ServiceError):
    """The acting user's role does not allow the operation."""

    status_code = 403


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    """Duplicate report, duplicate tag name, or a report already closed."""

    status_code = 409


class PersistenceError(ServiceError):
    """A transaction failed and was rolled back."""

    status_code = 500


class AuthenticationError(ServiceError):
    """Bad credentials or a missing/invalid bearer token."""

    status_code = 401
