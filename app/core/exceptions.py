import logging

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse

from app.roles.exceptions import ClaimsTooLargeError, ConfigurationError, UnknownRoleError

logger = logging.getLogger(__name__)


class NotFoundError(HTTPException):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found",
        )


class ForbiddenError(HTTPException):
    """Raised when user lacks permission to access a resource."""

    def __init__(self, message: str = "Not authorized to access this resource"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=message,
        )


class ValidationError(HTTPException):
    """Raised when request validation fails."""

    def __init__(self, message: str):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=message,
        )


class ConflictError(HTTPException):
    """Raised when the resource is in a state that does not allow the operation."""

    def __init__(self, message: str):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=message,
        )


async def _unknown_role_handler(_request: Request, exc: UnknownRoleError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": exc.message})


async def _configuration_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Role configuration error on {request.url.path}: {exc}")
    # Never leak configuration details to clients
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Role configuration error"},
    )


async def _claims_too_large_handler(_request: Request, exc: ClaimsTooLargeError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": exc.message, "size": exc.size, "limit": exc.limit},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Translate role engine errors into HTTP responses."""
    app.add_exception_handler(UnknownRoleError, _unknown_role_handler)
    app.add_exception_handler(ConfigurationError, _configuration_error_handler)
    app.add_exception_handler(ClaimsTooLargeError, _claims_too_large_handler)
