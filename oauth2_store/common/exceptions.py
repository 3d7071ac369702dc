from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class StorageError(Exception):
    """
    Base error for every failure surfaced by the store.

    Used as-is for anything the database engine reports that has no more
    precise meaning. ``retryable`` tells callers whether repeating the same
    call can succeed.
    """

    error: str = "storage_error"
    status_code: int = 500
    retryable: bool = False

    def __init__(
        self,
        message: str = "storage error",
        status_code: int | None = None,
        headers: dict | None = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.headers = headers or {}


class StorageConnectionError(StorageError):
    error = "storage_unavailable"
    status_code = 503
    retryable = True


class NotFoundError(StorageError):
    error = "not_found"
    status_code = 404


class ConflictError(StorageError):
    error = "resource_conflict"
    status_code = 409


class AccessDeniedError(StorageError):
    error = "access_denied"
    status_code = 403


class AuthFailureError(StorageError):
    error = "invalid_credentials"
    status_code = 401


class HashError(StorageError):
    error = "hash_failure"
    status_code = 500


class SessionDecodeError(StorageError):
    """The stored session payload does not fit the destination session class."""

    error = "invalid_session"
    status_code = 500


class InvalidatedAuthorizeCodeError(StorageError):
    """
    Raised when an authorization code session exists but has been invalidated.

    The reconstructed request is attached so the caller can revoke every token
    that was issued from the code. Its client secret is redacted.
    """

    error = "invalid_grant"
    status_code = 400

    def __init__(self, message: str = "authorization code has been invalidated", request=None):
        super().__init__(message)
        self.request = request


def attach_exception_handlers(app: FastAPI):

    @app.exception_handler(StorageError)
    async def storage_exception_handler(request: Request, exc: StorageError):
        body = {"error": exc.error}

        # Server side failures never echo engine details back to the client
        if exc.status_code < 500:
            body["error_description"] = exc.message

        return JSONResponse(
            status_code=exc.status_code,
            content=body,
            headers=exc.headers,
        )
