"""
API Error Handlers

Maps idempotency and domain errors to HTTP responses.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError

from bookstore.core.idempotency.exceptions import (
    ConcurrentDuplicateError,
    InvalidIdempotencyKeyError,
    StoreUnavailableError,
)
from bookstore.services.exceptions import (
    BookNotFoundError,
    DuplicateEmailError,
    DuplicateIsbnError,
    DuplicatePhoneNumberError,
    DuplicateUsernameError,
    ServiceError,
    UserNotFoundError,
)


async def concurrent_duplicate_handler(request: Request, exc: ConcurrentDuplicateError) -> JSONResponse:
    headers = {}
    if exc.retry_after:
        headers["Retry-After"] = str(exc.retry_after)
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": "A request with this idempotency key is currently being processed"},
        headers=headers,
    )


async def store_unavailable_handler(request: Request, exc: StoreUnavailableError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Idempotency store unavailable, request was not processed"},
    )


async def cache_unavailable_handler(request: Request, exc: RedisError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Entity cache unavailable"},
    )


async def invalid_key_handler(request: Request, exc: InvalidIdempotencyKeyError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc)},
    )


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if isinstance(exc, (BookNotFoundError, UserNotFoundError)):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(
        exc,
        (DuplicateIsbnError, DuplicateEmailError, DuplicatePhoneNumberError, DuplicateUsernameError),
    ):
        status_code = status.HTTP_409_CONFLICT
    else:
        status_code = status.HTTP_400_BAD_REQUEST
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


def register_exception_handlers(app: FastAPI) -> None:
    """Install the error mapping on an application."""
    app.add_exception_handler(ConcurrentDuplicateError, concurrent_duplicate_handler)
    app.add_exception_handler(StoreUnavailableError, store_unavailable_handler)
    app.add_exception_handler(InvalidIdempotencyKeyError, invalid_key_handler)
    app.add_exception_handler(RedisError, cache_unavailable_handler)
    app.add_exception_handler(ServiceError, service_error_handler)
