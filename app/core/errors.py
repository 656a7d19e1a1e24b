"""
Application error taxonomy and HTTP mapping.

Authorization code raises these instead of HTTPException so the same
decision can be reused outside a request. The handlers registered in
main.py render them as JSON error responses:

- NotFound            -> 404
- ContextUnavailable  -> 400
- AuthorizationDenied -> 403

Storage failures (SQLAlchemy errors) are not part of this taxonomy; they
propagate and surface as 500.
"""
from fastapi import FastAPI, status
from starlette.requests import Request
from starlette.responses import JSONResponse

from app.utils import get_logger


log = get_logger(__name__)


class AppError(Exception):
    """Base class for errors rendered by the API boundary."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail: str = "Internal server error"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class NotFound(AppError):
    """An organization, team, role or resource does not exist (or is not visible)."""

    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class ContextUnavailable(AppError):
    """The user has no relationship to the requested organization."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "No organization access"


class AuthorizationDenied(AppError):
    """The caller's role or permissions do not allow the action."""

    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Insufficient permissions"


async def app_error_handler(_request: Request, exc: AppError) -> JSONResponse:
    log.info("%s: %s", type(exc).__name__, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
