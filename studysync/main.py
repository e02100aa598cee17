from __future__ import annotations

import json
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from fastapi.staticfiles import StaticFiles
from pydantic import ValidationError
from starlette.middleware.httpsredirect import HTTPSRedirectMiddleware

from .access import BasicAuthGate
from .config import Settings
from .dispatch import Delivery, DeliveryKind, Dispatcher
from .persistence import Clock, MetadataGateway, SnapshotSink, sink_from_settings
from .realtime_ws import participant_channel
from .registry import ParticipantRegistry
from .relay import NotificationOutcome, StageRelay
from .schemas import (
    ClientConfig, HealthOut, IceServer, StageNotification, StudyWindowOut,
    UuidLookupRequest, UuidLookupResponse,
)
from .study_window import StudyWindow

logger = logging.getLogger(__name__)

ACK = "done"
LOOKUP_FAILED = "failed"


async def _read_payload(request: Request) -> dict:
    """Body as a dict, whether the survey platform sent JSON or a form."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            data = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return {}
        return data if isinstance(data, dict) else {}
    form = await request.form()
    return {k: v for k, v in form.items() if isinstance(v, str)}


def _log_delivery(delivery: Delivery):
    if delivery.ok:
        return
    if delivery.kind is DeliveryKind.RELAY:
        logger.debug(f"[{delivery.participant_id[:8]}] Relay dropped: {delivery.error}")
    else:
        logger.warning(f"[{delivery.participant_id[:8]}] {delivery.kind.value} failed: {delivery.error}")


def _ice_servers(settings: Settings) -> list[IceServer]:
    servers = []
    if settings.stun_url:
        servers.append(IceServer(urls=settings.stun_url))
    if settings.turn_url:
        servers.append(IceServer(
            urls=settings.turn_url,
            username=settings.turn_user or None,
            credential=settings.turn_pass or None,
        ))
    return servers


def create_app(
    settings: Optional[Settings] = None,
    sink: Optional[SnapshotSink] = None,
    clock: Optional[Clock] = None,
) -> FastAPI:
    """Build an isolated server: its own registry, relay and snapshot sink."""
    settings = settings or Settings.from_env()

    registry = ParticipantRegistry(settings.uuid_namespace)
    dispatcher = Dispatcher()
    dispatcher.observe(_log_delivery)
    gateway = MetadataGateway(sink or sink_from_settings(settings), clock=clock)
    relay = StageRelay(registry, gateway, dispatcher, clock=clock)
    window = StudyWindow(settings.maintenance_start, settings.maintenance_end, settings.study_timezone)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if dispatcher.pending:
            logger.info(f"Waiting for {dispatcher.pending} pending sends")
        await dispatcher.drain()

    app = FastAPI(title="StudySync - Study Coordination Server", lifespan=lifespan)
    app.state.settings = settings
    app.state.registry = registry
    app.state.dispatcher = dispatcher
    app.state.relay = relay

    # Middleware added last runs first; the gate sits inside CORS
    app.add_middleware(
        BasicAuthGate,
        prefix=settings.private_prefix,
        username=settings.auth_user,
        password=settings.auth_pass,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    if settings.force_https:
        app.add_middleware(HTTPSRedirectMiddleware)

    # ─── Survey platform endpoints ─────────────────────────────────

    @app.post("/qualtrics", response_class=PlainTextResponse)
    async def stage_notification(request: Request):
        """Stage transition from the survey. Always acknowledged with "done"."""
        payload = await _read_payload(request)
        try:
            note = StageNotification.model_validate(payload)
        except ValidationError as e:
            logger.warning(f"Malformed stage notification {payload}: {e.error_count()} error(s)")
            outcome = NotificationOutcome.INVALID
        else:
            outcome = relay.handle(note.uuid, note.video_name, note.location)
        logger.debug(f"Stage notification outcome: {outcome.value}")
        return ACK

    @app.post("/get_uuid")
    async def get_uuid(request: Request) -> UuidLookupResponse:
        """Participant id for a registered name, or "failed"."""
        payload = await _read_payload(request)
        try:
            req = UuidLookupRequest.model_validate(payload)
        except ValidationError:
            return UuidLookupResponse(uuid=LOOKUP_FAILED)
        return UuidLookupResponse(uuid=registry.lookup_name(req.name) or LOOKUP_FAILED)

    # ─── Browser support ───────────────────────────────────────────

    @app.get("/api/client-config")
    async def client_config() -> ClientConfig:
        return ClientConfig(
            peerjs_host=settings.peerjs_host,
            peerjs_path=settings.peerjs_path,
            host_peer_id=settings.host_peer_id,
            ice_servers=_ice_servers(settings),
            survey_url=settings.survey_url,
        )

    @app.get("/api/study-window")
    async def study_window() -> StudyWindowOut:
        is_open = window.is_open()
        return StudyWindowOut(open=is_open, message="" if is_open else window.message())

    @app.get("/healthz")
    async def healthz() -> HealthOut:
        return HealthOut(status="ok", participants=len(registry), pending_sends=dispatcher.pending)

    @app.websocket("/ws/participant")
    async def ws_participant(websocket: WebSocket):
        await participant_channel(websocket, registry)

    # ─── Static pages ──────────────────────────────────────────────

    os.makedirs(settings.private_dir, exist_ok=True)
    os.makedirs(settings.public_dir, exist_ok=True)
    app.mount(settings.private_prefix, StaticFiles(directory=settings.private_dir, html=True), name="private")
    app.mount("/", StaticFiles(directory=settings.public_dir, html=True), name="public")

    return app


def app_from_env() -> FastAPI:
    """uvicorn entry point: ``uvicorn --factory studysync.main:app_from_env``."""
    settings = Settings.from_env()
    logging.basicConfig(level=settings.log_level)
    return create_app(settings)
