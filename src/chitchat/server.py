"""FastAPI application exposing the chat store over HTTP and websockets."""
from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles

from .broadcast import Broadcaster
from .config import load_config
from .documents import (
    CreateMessageParams,
    DeleteMessageParams,
    Message,
    UpdateMessageParams,
    User,
)
from .errors import ChitChatError
from .gateway import SessionGateway
from .store import Store

logger = logging.getLogger("chitchat.server")


# -----------------------------
# Utilities
# -----------------------------
def _make_store(cfg: Dict[str, Any]) -> Store:
    store_cfg = cfg.get("store", {}) or {}
    max_history = store_cfg.get("max_history")
    denylist = store_cfg.get("denylist") or []
    return Store(
        max_history=int(max_history) if max_history is not None else None,
        denylist=[str(w) for w in denylist],
    )


def _make_broadcaster(cfg: Dict[str, Any]) -> Broadcaster:
    queue_size = int((cfg.get("broadcast", {}) or {}).get("queue_size", 1000))
    return Broadcaster(queue_size=queue_size)


# -----------------------------
# App factory
# -----------------------------
def create_app(
    config_path: Optional[str] = None,
    store: Optional[Store] = None,
    broadcaster: Optional[Broadcaster] = None,
) -> FastAPI:
    cfg = load_config(config_path)
    server_cfg = cfg.get("server", {}) or {}

    store = store or _make_store(cfg)
    broadcaster = broadcaster or _make_broadcaster(cfg)
    # Every store call, reads included, runs under this lock.
    lock = threading.Lock()

    app = FastAPI(title="ChitChat", version="0.1.0")
    app.state.store = store
    app.state.broadcaster = broadcaster
    app.add_middleware(
        CORSMiddleware,
        allow_origins=server_cfg.get("cors_origins") or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ChitChatError)
    async def chitchat_error_handler(request: Request, exc: ChitChatError) -> JSONResponse:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc.detail)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    # Static UI
    static_dir = Path(server_cfg.get("static_dir") or "static")
    index_file = static_dir / "index.html"
    if static_dir.is_dir():
        app.mount("/static", StaticFiles(directory=str(static_dir)), name="static")
    else:
        logger.debug("static dir not found: %s", static_dir)

    @app.get("/")
    async def root():
        if index_file.exists():
            return FileResponse(str(index_file))
        return JSONResponse({"ok": True, "msg": "ChitChat API is running. No UI found."})

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        with lock:
            messages, users = store.message_count, store.user_count
        return {
            "ok": True,
            "messages": messages,
            "users": users,
            "subscribers": broadcaster.subscriber_count,
        }

    # ---------------- Users ----------------
    @app.post("/users", response_model=User)
    async def create_user() -> User:
        with lock:
            return store.register_user()

    # ---------------- Messages ----------------
    @app.get("/messages", response_model=List[Message])
    async def read_messages() -> List[Message]:
        # Pagination is not supported; max_history bounds the response size.
        with lock:
            return list(store.list_messages())

    @app.post("/messages", response_model=Message)
    async def create_message(params: CreateMessageParams) -> Message:
        with lock:
            message = store.create_message(params)
        broadcaster.publish(message)
        return message

    @app.put("/messages", response_model=Message)
    async def update_message(params: UpdateMessageParams) -> Message:
        with lock:
            message = store.update_message(params)
        broadcaster.publish(message)
        return message

    @app.delete("/messages", response_model=Message)
    async def delete_message(params: DeleteMessageParams) -> Message:
        # Deletions are not broadcast.
        with lock:
            return store.delete_message(params)

    # ---------------- Live updates ----------------
    @app.websocket("/websocket")
    async def websocket_endpoint(websocket: WebSocket) -> None:
        await SessionGateway(websocket, broadcaster).run()

    return app
