"""Custom exception classes and FastAPI exception handlers."""
from __future__ import annotations

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from starlette.requests import Request

from src.shared.constants import ALREADY_BUILDING_MESSAGE


class AppError(Exception):
    """Base application error."""

    def __init__(self, detail: str, status_code: int = 500) -> None:
        self.detail = detail
        self.status_code = status_code
        super().__init__(detail)


class ConflictError(AppError):
    """Conflict error (409)."""

    def __init__(self, detail: str = ALREADY_BUILDING_MESSAGE) -> None:
        super().__init__(detail=detail, status_code=409)


class ParsingError(AppError):
    """Parsing error (400)."""

    def __init__(self, detail: str = "Parsing error") -> None:
        super().__init__(detail=detail, status_code=400)


class ResourceSetupError(AppError):
    """Failure to set up a per-request resource such as a pipe (500)."""

    def __init__(self, detail: str = "Resource setup failed") -> None:
        super().__init__(detail=detail, status_code=500)


class BuildExecutionError(Exception):
    """Raised when the build engine fails to construct, run or clean up.

    Never rendered as an HTTP status: by the time a build runs the daemon has
    already committed to a 200 streaming response.
    """

    def __init__(self, stage: str, message: str = "") -> None:
        self.stage = stage
        super().__init__(message or f"Build failed during {stage}")


class StreamClosedError(Exception):
    """Raised when writing to a response stream whose client has gone away."""


class ListenerError(Exception):
    """Raised when the daemon cannot bind or serve its unix socket."""


def register_exception_handlers(app: FastAPI) -> None:
    """Register custom exception handlers with a FastAPI app."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> PlainTextResponse:
        return PlainTextResponse(
            status_code=exc.status_code,
            content=exc.detail,
        )
