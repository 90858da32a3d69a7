"""Build router: admits one build at a time and streams its output."""
from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Request
from pydantic import ValidationError
from starlette.requests import ClientDisconnect

from src.build_daemon.services.admission_gate import AdmissionGate
from src.build_daemon.services.build_session import BuildSession
from src.build_daemon.services.diagnostic_relay import DiagnosticRelay
from src.build_daemon.services.response_channel import (
    ChannelStreamingResponse,
    ResponseChannel,
)
from src.shared.constants import BUILD_DAEMON_SERVICE_NAME, STREAM_MEDIA_TYPE
from src.shared.errors import ConflictError, ParsingError
from src.shared.models.build import BuildRequest

logger = logging.getLogger(BUILD_DAEMON_SERVICE_NAME)

router = APIRouter(tags=["build"])


async def _read_build_request(request: Request) -> BuildRequest:
    try:
        body = await request.body()
    except ClientDisconnect as exc:
        raise ParsingError(f"failed to read request body: {exc!r}") from exc
    try:
        return BuildRequest.model_validate_json(body)
    except ValidationError as exc:
        raise ParsingError(str(exc)) from exc


@router.post("/build")
async def build(request: Request) -> ChannelStreamingResponse:
    """Run one build and stream its diagnostic output.

    Rejects with 409 while another build is in progress. Once the 200 is
    returned, a failed build is only visible in the streamed text.
    """
    gate: AdmissionGate = request.app.state.gate
    if not gate.try_acquire():
        raise ConflictError()

    relay: DiagnosticRelay | None = None
    handed_off = False
    try:
        logger.info("Serving build request")
        build_request = await _read_build_request(request)

        relay = DiagnosticRelay(request.app.state.sink, request.app.state.pipe_factory)
        relay.begin()
        logger.info("Piping build output to response")

        channel = ResponseChannel(asyncio.get_running_loop())
        session = BuildSession(
            build_request.args,
            gate,
            relay,
            request.app.state.invoker,
            channel,
        )
        session.start()
        handed_off = True
    finally:
        if not handed_off:
            if relay is not None:
                relay.end()
            gate.release()

    request.app.state.last_session = session
    return ChannelStreamingResponse(channel, media_type=STREAM_MEDIA_TYPE)
