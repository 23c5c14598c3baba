"""Dependências injetadas nas rotas."""

from __future__ import annotations

from fastapi import Request, WebSocket

from multizap.application.session.manager import SessionManager
from multizap.config.settings import Settings


def get_settings(request: Request) -> Settings:
    """Retorna settings da aplicação."""

    return request.app.state.settings


def get_session_manager(request: Request) -> SessionManager:
    """Retorna o gerenciador de sessões ativo."""

    return request.app.state.session_manager


def get_ws_settings(websocket: WebSocket) -> Settings:
    """Settings para rotas WebSocket (sem Request HTTP)."""

    return websocket.app.state.settings


def get_ws_session_manager(websocket: WebSocket) -> SessionManager:
    """Gerenciador de sessões para rotas WebSocket."""

    return websocket.app.state.session_manager
