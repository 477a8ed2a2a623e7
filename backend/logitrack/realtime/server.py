"""Socket.IO server wiring"""

import logging

import socketio
from fastapi import FastAPI

from logitrack.config import settings
from logitrack.core.database import SessionLocal
from logitrack.realtime.hub import ChatNamespace
from logitrack.realtime.registry import ConnectionRegistry

logger = logging.getLogger(__name__)


def create_socket_app(app: FastAPI, session_factory=SessionLocal) -> socketio.ASGIApp:
    """
    Mount the realtime hub in front of ``app``

    The hub is also exposed as ``app.state.chat_hub`` so HTTP routes can
    push events to live connections.
    """
    sio = socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins=settings.SOCKET_CORS_ORIGINS,
        logger=settings.DEBUG,
        engineio_logger=False,
    )
    hub = ChatNamespace("/", registry=ConnectionRegistry(), session_factory=session_factory)
    sio.register_namespace(hub)
    app.state.chat_hub = hub
    logger.info("Realtime hub registered")
    return socketio.ASGIApp(sio, other_asgi_app=app, socketio_path="socket.io")
