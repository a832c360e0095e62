"""FastAPI main application for the card party server"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from .errors import ROOM_FULL, ROOM_NOT_FOUND
from .models import ThiefCatcherRoom
from .registry import RoomRegistry
from .rules import RuleConfig
from .serialization import get_public_room_info
from .ws.server import Dispatcher, serve_connection

# Configure logging
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)

DEFAULT_ORIGINS = "http://localhost:5173,https://localhost:3001,http://localhost"


def create_app(rules: Optional[RuleConfig] = None, dispatcher: Optional[Dispatcher] = None) -> FastAPI:
    rules = rules or RuleConfig.from_env()
    dispatcher = dispatcher or Dispatcher(registry=RoomRegistry(rules), rules=rules)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        dispatcher.timers.cancel_all()

    app = FastAPI(title="Card Party API", version="1.0.0", lifespan=lifespan)
    app.state.dispatcher = dispatcher

    # Add CORS middleware
    origins = [o.strip() for o in os.getenv("CORS_ORIGINS", DEFAULT_ORIGINS).split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.get("/")
    async def root():
        return {"message": "Card Party API", "version": "1.0.0"}

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "rooms": dispatcher.registry.rooms_count(),
            "connections": dispatcher.manager.count,
        }

    @app.get("/api/room/{room_code}")
    async def room_info(room_code: str):
        """Let the join page check a code before opening a socket."""
        room = dispatcher.registry.find(room_code.strip().upper())
        if room is None:
            raise HTTPException(status_code=404, detail={"code": ROOM_NOT_FOUND, "message": "Room not found"})
        max_players = rules.max_players(room.game_type)
        if isinstance(room, ThiefCatcherRoom) and len(room.players) >= max_players:
            raise HTTPException(status_code=400, detail={"code": ROOM_FULL, "message": "Room is full"})
        return get_public_room_info(room, max_players)

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        await serve_connection(websocket, dispatcher)

    return app


app = create_app()
