"""Domain errors raised by services and mapped to HTTP responses.

Each error carries the status code and a short client-facing detail.
Internal causes (SQL errors, which of several auth checks failed) are
chained with `raise ... from` for the logs and never reach the client.
"""


class ApiError(Exception):
    """Base class for errors that map onto an HTTP status."""
    status_code = 500
    detail = "internal server error"

    def __init__(self, detail: str = None):
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


class Unauthorized(ApiError):
    """Missing, unknown, expired or revoked token, or bad credentials."""
    status_code = 401
    detail = "unauthorized"


class Conflict(ApiError):
    """Username already registered."""
    status_code = 409
    detail = "username already taken"


class BadRequest(ApiError):
    """Malformed payload, unknown field or unknown entity name."""
    status_code = 400
    detail = "bad request"


class StoreFailure(ApiError):
    """The underlying store failed; never retried automatically."""
    status_code = 500
    detail = "internal server error"
