"""Web API and WebSocket feed for the arbitrage monitor"""
import logging
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from config import CORS_ALLOWED_ORIGINS, MAX_WS_CONNECTIONS
from src import __version__
from src.api import export_router
from src.api.dependencies import get_manager
from src.core.snapshot import MarketSnapshot, SnapshotStore

logger = logging.getLogger(__name__)

OVERLOADED_CLOSE_CODE = 1013


class DashboardManager:
    """Manages WebSocket connections to dashboard clients"""

    def __init__(
        self,
        snapshot_store: SnapshotStore,
        storage,
        metrics=None,
        max_connections: int = MAX_WS_CONNECTIONS,
    ):
        self.snapshot_store = snapshot_store
        self.storage = storage
        self.metrics = metrics
        self.max_connections = max_connections
        self.active_connections: list[WebSocket] = []

    async def connect(self, websocket: WebSocket) -> bool:
        """Accept a client; returns False when it was turned away"""
        await websocket.accept()
        if len(self.active_connections) >= self.max_connections:
            logger.warning(f"Rejecting dashboard client, limit of {self.max_connections} reached")
            await websocket.close(code=OVERLOADED_CLOSE_CODE, reason="Server overloaded")
            return False

        self.active_connections.append(websocket)
        self._update_connection_metric()
        logger.info(f"Dashboard client connected ({len(self.active_connections)}/{self.max_connections})")

        snapshot = self.snapshot_store.current.to_dict()
        await websocket.send_json({
            "type": "initial_data",
            "prices": snapshot["prices"],
            "opportunities": snapshot["opportunities"],
        })
        return True

    def disconnect(self, websocket: WebSocket):
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)
            self._update_connection_metric()
            logger.info(f"Dashboard client disconnected ({len(self.active_connections)}/{self.max_connections})")

    async def broadcast(self, message: dict):
        """Broadcast message to all connected clients"""
        for connection in list(self.active_connections):
            try:
                await connection.send_json(message)
            except Exception as e:
                logger.error(f"Broadcast error, dropping client: {e}")
                self.disconnect(connection)

    async def broadcast_snapshot(self, snapshot: MarketSnapshot):
        await self.broadcast({"type": "price_update", **snapshot.to_dict()})

    def _update_connection_metric(self):
        if self.metrics:
            self.metrics.record_websocket_connections(len(self.active_connections))


def create_app(manager: DashboardManager, lifespan=None) -> FastAPI:
    """Build the FastAPI app serving ``manager``'s snapshot and history"""
    app = FastAPI(title="BTC/JPY Arbitrage Monitor", version=__version__, lifespan=lifespan)
    app.state.manager = manager

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ALLOWED_ORIGINS,
        allow_credentials=False,
        allow_methods=["GET", "DELETE"],
        allow_headers=["*"],
    )
    app.include_router(export_router)

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        try:
            if not await manager.connect(websocket):
                return
            while True:
                # Keep connection alive, handle any client messages
                data = await websocket.receive_text()
                if data == "ping":
                    await websocket.send_text("pong")
        except WebSocketDisconnect:
            pass
        finally:
            manager.disconnect(websocket)

    @app.get("/api/prices")
    async def get_prices(manager: DashboardManager = Depends(get_manager)):
        """Quotes and ranked opportunities of the latest cycle"""
        return manager.snapshot_store.current.to_dict()

    @app.get("/api/history")
    def get_history(manager: DashboardManager = Depends(get_manager)):
        try:
            return {
                "priceHistory": manager.storage.get_recent_prices(100),
                "arbitrageHistory": manager.storage.get_arbitrage_history(50),
            }
        except Exception as e:
            logger.error(f"Error fetching history: {e}")
            raise HTTPException(status_code=500, detail="Failed to fetch history")

    @app.get("/api/price-history")
    def get_price_history(
        hours: int = Query(default=24, ge=1, le=168),
        manager: DashboardManager = Depends(get_manager),
    ):
        try:
            return {"priceHistory": manager.storage.get_price_history(hours)}
        except Exception as e:
            logger.error(f"Error fetching price history: {e}")
            raise HTTPException(status_code=500, detail="Failed to fetch price history")

    @app.delete("/api/clear-data")
    def clear_data(manager: DashboardManager = Depends(get_manager)):
        try:
            manager.storage.clear_all_data()
        except Exception as e:
            logger.error(f"Error clearing data: {e}")
            raise HTTPException(status_code=500, detail="Failed to clear data")
        return {"message": "All price history and arbitrage data cleared successfully"}

    @app.get("/metrics")
    async def metrics(manager: DashboardManager = Depends(get_manager)):
        """Prometheus metrics endpoint"""
        if manager.metrics is None:
            raise HTTPException(status_code=404, detail="Metrics disabled")
        return Response(
            content=manager.metrics.get_prometheus_metrics(),
            media_type=manager.metrics.get_prometheus_content_type(),
        )

    @app.get("/api/health")
    async def health(manager: DashboardManager = Depends(get_manager)):
        snapshot = manager.snapshot_store.current
        age: Optional[float] = manager.snapshot_store.age_seconds()
        return {
            "status": "ok",
            "cycle": snapshot.cycle,
            "snapshot_age_seconds": round(age, 3) if age is not None else None,
            "websocket_clients": len(manager.active_connections),
            "storage": manager.storage.get_state(),
            "metrics": manager.metrics.get_metrics_summary() if manager.metrics else {},
        }

    return app
