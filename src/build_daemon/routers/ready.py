"""Readiness router for the build daemon."""
from __future__ import annotations

from fastapi import APIRouter, Request, Response

router = APIRouter(tags=["ready"])

_ANY_METHOD = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


@router.api_route("/ready", methods=_ANY_METHOD)
async def ready(request: Request) -> Response:
    """Return 200 when no build is in progress, 409 otherwise."""
    if request.app.state.gate.is_busy():
        return Response(status_code=409)
    return Response(status_code=200)
