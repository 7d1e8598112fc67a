# server/api.py
"""
FastAPI Backend API Module

Exposes the WebSocket endpoint /ws that carries behavior reports upstream and
risk updates downstream, plus a GET /health probe.

Each connection is served by its own coroutine and processes frames strictly
in arrival order, answering each behavior report with exactly one risk
update. The session correlation store is the only state shared between
connections; it is created when the application starts and cleared when it
shuts down.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from server.ingestion import TelemetryIngestor
from server.risk_scorer import RiskScorer
from server.session_store import SessionCorrelationStore

logger = logging.getLogger(__name__)


def create_app(store: Optional[SessionCorrelationStore] = None) -> FastAPI:
    """
    Build the risk API.

    Args:
        store: Correlation store to use. A fresh one is created at start-up
               when omitted.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        session_store = store if store is not None else SessionCorrelationStore()
        app.state.session_store = session_store
        app.state.ingestor = TelemetryIngestor(RiskScorer(), session_store)
        logger.info("Risk API started")
        yield
        session_store.clear()
        logger.info("Risk API stopped")

    app = FastAPI(title="SessionGuard Risk API", version="1.0.0", lifespan=lifespan)

    @app.get("/health")
    async def health_check():
        """Simple health endpoint."""
        return {"status": "healthy"}

    @app.websocket("/ws")
    async def telemetry_socket(websocket: WebSocket):
        """
        Duplex telemetry channel.

        Upstream frames: BEHAVIOR_REPORT, SESSION_INIT.
        Downstream frames: RISK_UPDATE, one per behavior report.
        Unknown frame types are ignored.
        """
        await websocket.accept()
        ingestor: TelemetryIngestor = websocket.app.state.ingestor
        source_address = websocket.client.host if websocket.client else "unknown"
        user_agent = websocket.headers.get("user-agent", "unknown")
        logger.info(f"Client connected to security monitor from {source_address}")

        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(message.get("code", 1000))
                raw = message.get("text")
                if raw is None:
                    raw = message.get("bytes")
                try:
                    reply = ingestor.handle(raw, source_address, user_agent)
                except Exception:
                    logger.exception(f"Dropping frame from {source_address}: handler failed")
                    continue
                if reply is not None:
                    await websocket.send_json(reply)
        except WebSocketDisconnect:
            logger.info(f"Client disconnected from {source_address}")

    return app


app = create_app()
