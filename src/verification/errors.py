"""Error hierarchy for the verification core.

Each error carries a stable ``code`` and the HTTP status the API layer maps
it to. The core itself never imports HTTP machinery.
"""


class VerificationError(Exception):
    """Base class for verification failures."""

    code = "INTERNAL"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(VerificationError):
    """Provider, plan or report does not exist."""

    code = "NOT_FOUND"
    status_code = 404


class ConflictError(VerificationError):
    """Duplicate submission or duplicate vote."""

    code = "CONFLICT"
    status_code = 409


class BadRequestError(VerificationError):
    """A required field is missing or malformed."""

    code = "BAD_REQUEST"
    status_code = 400


class StorageError(VerificationError):
    """The persistence layer failed."""

    code = "INTERNAL"
    status_code = 500
