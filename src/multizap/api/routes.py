"""Rotas HTTP e WebSocket de controle das sessões."""

from __future__ import annotations

from typing import Any

import anyio
from fastapi import APIRouter, Body, Depends, HTTPException, Response, WebSocket, status
from starlette.websockets import WebSocketDisconnect

from multizap.adapters.qr import render_qr_data_url
from multizap.api.dependencies import (
    get_session_manager,
    get_settings,
    get_ws_session_manager,
    get_ws_settings,
)
from multizap.application.broadcaster import QueueSubscriber
from multizap.application.session.manager import CreateOutcome, DestroyOutcome, SessionManager
from multizap.config.settings import Settings
from multizap.domain.names import InvalidSessionNameError
from multizap.domain.outbound import OutboundEvent, OutboundEventType
from multizap.observability.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()

# Código de fechamento WebSocket para nome de sessão inválido (policy violation)
WS_CLOSE_INVALID_NAME = 1008

_CREATE_STATUS: dict[CreateOutcome, int] = {
    CreateOutcome.ACCEPTED: status.HTTP_202_ACCEPTED,
    CreateOutcome.ALREADY_EXISTS: status.HTTP_409_CONFLICT,
    CreateOutcome.INVALID_NAME: status.HTTP_422_UNPROCESSABLE_CONTENT,
    CreateOutcome.DRIVER_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


@router.get("/health")
def health(settings: Settings = Depends(get_settings)) -> dict[str, str]:
    """Healthcheck simples."""
    return {"status": "ok", "service": settings.service_name, "version": settings.version}


@router.post("/sessions")
async def create_session(
    response: Response,
    payload: dict[str, Any] | None = Body(default=None),
    manager: SessionManager = Depends(get_session_manager),
) -> dict[str, Any]:
    """Cria uma sessão e inicia o pareamento em background.

    O resultado do pareamento chega pelo canal de eventos da sessão.
    """
    raw_name = (payload or {}).get("name")
    result = await manager.create_session(raw_name if isinstance(raw_name, str) else None)

    response.status_code = _CREATE_STATUS[result.outcome]
    body: dict[str, Any] = {"result": result.outcome.value, "session": result.session}
    if result.reason:
        body["reason"] = result.reason
    return body


@router.get("/sessions")
def list_sessions(manager: SessionManager = Depends(get_session_manager)) -> dict[str, Any]:
    """Lista as sessões ativas (ordem por nome)."""
    return {"sessions": [session.to_dict() for session in manager.list_sessions()]}


@router.get("/sessions/{name}")
def get_session(
    name: str, manager: SessionManager = Depends(get_session_manager)
) -> dict[str, Any]:
    """Status de uma sessão ativa."""
    session = manager.get_session_status(name)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="session_not_found")
    return session.to_dict()


@router.delete("/sessions/{name}")
async def destroy_session(
    name: str, manager: SessionManager = Depends(get_session_manager)
) -> dict[str, str]:
    """Destrói a sessão; o encerramento é concluído em background."""
    outcome = await manager.destroy_session(name)
    if outcome is DestroyOutcome.NOT_FOUND:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="session_not_found")
    return {"result": outcome.value, "session": name.strip()}


@router.get("/sessions/{name}/credentials")
async def get_credentials(
    name: str, manager: SessionManager = Depends(get_session_manager)
) -> dict[str, Any]:
    """Snapshot das credenciais persistidas da sessão."""
    try:
        snapshot = await manager.load_credentials(name)
    except InvalidSessionNameError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=exc.reason
        ) from exc
    return snapshot.to_dict()


@router.websocket("/sessions/{name}/events")
async def session_events(
    websocket: WebSocket,
    name: str,
    settings: Settings = Depends(get_ws_settings),
    manager: SessionManager = Depends(get_ws_session_manager),
) -> None:
    """Canal de eventos de uma sessão (qr, connected, message, sessionEnded...).

    A inscrição acontece antes do accept, então nenhum evento publicado depois
    do handshake se perde.
    """
    subscriber = QueueSubscriber(maxsize=settings.subscriber_queue_size)
    try:
        session_name = manager.subscribe(name, subscriber)
    except InvalidSessionNameError as exc:
        await websocket.close(code=WS_CLOSE_INVALID_NAME, reason=exc.reason)
        return

    await websocket.accept()
    logger.info("ws_subscriber_connected", extra={"session_name": session_name})

    try:
        # o primeiro dos dois a terminar cancela o outro
        async with anyio.create_task_group() as tg:
            tg.start_soon(
                _forward_events,
                websocket,
                subscriber,
                settings.qr_render_data_url,
                tg.cancel_scope,
                session_name,
            )
            tg.start_soon(_wait_client_disconnect, websocket, tg.cancel_scope)
    finally:
        # síncrono: roda mesmo se o handler for cancelado no fechamento
        manager.unsubscribe(session_name, subscriber)
        logger.info("ws_subscriber_disconnected", extra={"session_name": session_name})


async def _forward_events(
    websocket: WebSocket,
    subscriber: QueueSubscriber,
    render_qr: bool,
    scope: anyio.CancelScope,
    session_name: str,
) -> None:
    try:
        while True:
            event = await subscriber.get()
            await websocket.send_json(await _serialize(event, render_qr))
    except WebSocketDisconnect:
        pass
    except Exception as exc:
        logger.warning(
            "ws_subscriber_failed",
            extra={"session_name": session_name, "error": str(exc)},
        )
    finally:
        scope.cancel()


async def _serialize(event: OutboundEvent, render_qr: bool) -> dict[str, Any]:
    payload = event.to_dict()
    if render_qr and event.type is OutboundEventType.QR:
        # imagem gerada fora do event loop (PIL é bloqueante)
        payload["data"]["image"] = await anyio.to_thread.run_sync(
            render_qr_data_url, event.data["payload"]
        )
    return payload


async def _wait_client_disconnect(websocket: WebSocket, scope: anyio.CancelScope) -> None:
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                return
    finally:
        scope.cancel()
