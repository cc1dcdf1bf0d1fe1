"""FastAPI application entry point."""

import asyncio
import json
import logging
import sys
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Query, Request, WebSocket, WebSocketDisconnect, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from starlette.middleware.base import BaseHTTPMiddleware

from pos_inventory.api.routes import api_router
from pos_inventory.core.config import settings
from pos_inventory.core.exceptions import InventoryError
from pos_inventory.core.rate_limit import limiter
from pos_inventory.core.security import decode_access_token
from pos_inventory.db.base import Base
from pos_inventory.db.session import SessionLocal, engine
from pos_inventory.services.order_usage_service import process_pending_tasks
from pos_inventory.services.scheduler_service import scheduler
from pos_inventory.services.websocket_service import INVENTORY_CHANNEL, manager as ws_manager

# Configure logging - use JSON format in production, human-readable in dev
root_logger = logging.getLogger()
root_logger.setLevel(getattr(logging, settings.log_level))
root_logger.handlers.clear()

if settings.debug:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
else:

    class JSONFormatter(logging.Formatter):
        def format(self, record):
            return json.dumps({
                "ts": self.formatTime(record, self.datefmt),
                "level": record.levelname,
                "logger": record.name,
                "msg": record.getMessage(),
                "module": record.module,
                "line": record.lineno,
            })

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())

root_logger.addHandler(handler)
logger = logging.getLogger(__name__)
request_logger = logging.getLogger("requests")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; "
            f"connect-src 'self' ws: wss: {' '.join(settings.cors_origins_list)}; "
            "frame-ancestors 'none';"
        )
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for logging all HTTP requests and responses."""

    async def dispatch(self, request: Request, call_next):
        if request.url.path in ["/health", "/", "/docs", "/openapi.json"]:
            return await call_next(request)

        start_time = time.time()
        client_ip = request.client.host if request.client else "unknown"
        request_logger.info(f"Request: {request.method} {request.url.path} - Client: {client_ip}")

        try:
            response = await call_next(request)
        except Exception as e:
            request_logger.error(
                f"Error: {request.method} {request.url.path} - "
                f"Exception: {e} - Time: {time.time() - start_time:.3f}s - Client: {client_ip}"
            )
            raise

        log_level = logging.WARNING if response.status_code >= 400 else logging.INFO
        request_logger.log(
            log_level,
            f"Response: {request.method} {request.url.path} - "
            f"Status: {response.status_code} - Time: {time.time() - start_time:.3f}s - Client: {client_ip}"
        )
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting POS inventory service")

    # Create tables if they don't exist (for SQLite dev)
    # In production, use Alembic migrations
    if settings.database_url.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created (SQLite mode)")

    # Pick up usage deductions left pending by a crash or a failed attempt
    scheduler.add_task("usage_outbox", process_pending_tasks, settings.usage_outbox_retry_seconds)
    scheduler_task = scheduler.run_in_background()

    yield

    scheduler.stop()
    try:
        await scheduler_task
    except asyncio.CancelledError:
        pass
    logger.info("Shutting down POS inventory service")


app = FastAPI(
    title="POS Inventory",
    description="Restaurant inventory, recipe costing and supplier ledger API",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# Rate limiting setup
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(InventoryError)
async def inventory_error_handler(request: Request, exc: InventoryError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)

# CORS middleware - added last so it runs first (Starlette LIFO order)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept", "Origin", "X-Requested-With"],
    max_age=600,
)

app.include_router(api_router, prefix=settings.api_v1_prefix)


@app.get("/health")
def health_check():
    """Liveness plus database connectivity."""
    database = "healthy"
    db = None
    try:
        db = SessionLocal()
        db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        database = "unhealthy"
    finally:
        if db:
            db.close()

    return {
        "status": "healthy" if database == "healthy" else "degraded",
        "version": "1.0.0",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {
            "database": database,
            "websocket": ws_manager.get_stats(),
            "scheduler": scheduler.get_status(),
        },
    }


# ===== WebSocket =====

async def _authenticate_websocket(websocket: WebSocket, token: Optional[str]) -> Optional[dict]:
    """Decode the query token (or access_token cookie); close with 1008 when invalid."""
    payload = decode_access_token(token) if token else None
    if not payload:
        cookie_token = websocket.cookies.get("access_token")
        if cookie_token:
            payload = decode_access_token(cookie_token)

    if not payload or not payload.get("sub"):
        logger.warning("WebSocket rejected for 'inventory': no valid token")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return None
    return payload


@app.websocket("/ws/inventory")
async def websocket_inventory(websocket: WebSocket, token: Optional[str] = Query(None)):
    """Stock balance, alert, delivery and usage events for the caller's venue. Requires JWT token."""
    payload = await _authenticate_websocket(websocket, token)
    if payload is None:
        return

    venue_id = int(payload.get("venue_id") or 1)
    await ws_manager.connect(websocket, venue_id, [INVENTORY_CHANNEL], user_id=int(payload["sub"]))
    try:
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        ws_manager.disconnect(websocket)
    except Exception as e:
        logger.error(f"WebSocket error in inventory channel: {e}", exc_info=True)
        ws_manager.disconnect(websocket)
