"""
WebSocket Gateway main application.

Pushes "new_notification" events to followers whose session is open on this
process, driven by broadcasts consumed from the notifications stream.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket, WebSocketDisconnect, Query
from fastapi.responses import JSONResponse
from starlette.websockets import WebSocketState

from shared.config.settings import settings
from shared.config.logging import setup_logging, ws_gateway_logger as logger
from shared.infrastructure.events import check_redis_health, close_redis_pool
from shared.utils.exceptions import BusConnectionError
from ws_gateway.components.core.constants import (
    MSG_PING_PLAIN,
    MSG_PONG_PLAIN,
    WSCloseCode,
)
from ws_gateway.core.connection import ConnectionLifecycle
from ws_gateway.core.notifications import (
    DeliveryRecorder,
    NotificationPipeline,
    PushDispatcher,
    SqlNotificationStore,
    SqlPublisherDirectory,
    SqlSubscriberResolver,
)
from ws_gateway.core.subscriber import ConsumerHandle


# Global connection lifecycle (owns the session registry)
lifecycle = ConnectionLifecycle()


def build_pipeline(lifecycle: ConnectionLifecycle) -> NotificationPipeline:
    """Wire the SQL collaborators and the live registry into a pipeline."""
    dispatcher = PushDispatcher(
        registry=lifecycle.registry,
        transport=lifecycle.transport,
        publishers=SqlPublisherDirectory(),
    )
    return NotificationPipeline(
        resolver=SqlSubscriberResolver(),
        recorder=DeliveryRecorder(SqlNotificationStore()),
        dispatcher=dispatcher,
    )


# =============================================================================
# Lifespan
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Starts the bus consumer on startup; on shutdown stops it (draining
    in-flight messages) before the shared Redis pool is closed.
    """
    setup_logging()
    logger.info(
        "Starting WebSocket Gateway",
        port=settings.ws_gateway_port,
        env=settings.environment,
    )
    for problem in settings.validate_bus_timeouts():
        logger.warning("Bus configuration problem", problem=problem)

    lifecycle.set_shutdown(False)
    pipeline = build_pipeline(lifecycle)
    consumer = ConsumerHandle(pipeline.handle_message)
    app.state.consumer = consumer

    try:
        await consumer.start()
    except BusConnectionError as e:
        # Sessions are still accepted; nothing is pushed until restart
        logger.error("Bus consumer not started", error=str(e))

    yield

    logger.info("Shutting down WebSocket Gateway")
    lifecycle.set_shutdown(True)
    await consumer.close()
    await close_redis_pool()


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="Feed Notifier WebSocket Gateway",
    description="Real-time notifications for followers of a publisher",
    version="0.1.0",
    lifespan=lifespan,
)


# =============================================================================
# Health Check
# =============================================================================


@app.get("/ws/health")
def health_check():
    """Basic health check endpoint."""
    consumer: ConsumerHandle | None = getattr(app.state, "consumer", None)
    consumer_started = consumer is not None and consumer.started
    return {
        "status": "healthy" if consumer_started else "degraded",
        "service": "ws-gateway",
        "version": app.version,
        "environment": settings.environment,
        "connections": lifecycle.total_connections,
        "consumer": {
            "started": consumer_started,
            "in_flight": consumer.in_flight if consumer is not None else 0,
        },
    }


@app.get("/ws/health/detailed")
async def detailed_health_check():
    """Health check including the shared Redis pool."""
    checks = health_check()
    bus_health = await check_redis_health()
    checks["dependencies"] = {"redis": bus_health}

    if bus_health["status"] != "healthy":
        checks["status"] = "degraded"
    if checks["status"] != "healthy":
        return JSONResponse(content=checks, status_code=503)
    return checks


# =============================================================================
# WebSocket Endpoints
# =============================================================================


@app.websocket("/ws/notifications")
async def notifications_websocket(
    websocket: WebSocket,
    subscriber_id: int = Query(..., description="Id of the user receiving notifications"),
):
    """
    WebSocket endpoint for notification subscribers.

    One session per subscriber: a new connection replaces the previous one.
    """
    try:
        await lifecycle.connect(websocket, subscriber_id)
    except ValueError as e:
        logger.warning("Connection rejected", subscriber_id=subscriber_id, error=str(e))
        await websocket.close(code=WSCloseCode.POLICY_VIOLATION, reason=str(e))
        return
    except ConnectionError as e:
        logger.warning("Connection rejected", subscriber_id=subscriber_id, error=str(e))
        await websocket.close(code=WSCloseCode.GOING_AWAY, reason=str(e))
        return

    reason = "client_disconnect"
    try:
        while True:
            data = await websocket.receive_text()
            if data.strip() == MSG_PING_PLAIN:
                await websocket.send_text(MSG_PONG_PLAIN)
                continue
            logger.debug(
                "Ignoring client message",
                subscriber_id=subscriber_id,
                size=len(data),
            )
    except WebSocketDisconnect:
        pass
    except RuntimeError as e:
        # Starlette raises RuntimeError on receive once the server side closed
        # the socket, e.g. after a newer session replaced this one
        if websocket.application_state == WebSocketState.DISCONNECTED:
            reason = "replaced"
        else:
            reason = "error"
            logger.error(
                "WebSocket session error",
                subscriber_id=subscriber_id,
                error=str(e),
            )
    except Exception as e:
        reason = "error"
        logger.error(
            "WebSocket session error",
            subscriber_id=subscriber_id,
            error=str(e),
        )
    finally:
        await lifecycle.disconnect(websocket, subscriber_id, reason=reason)


# =============================================================================
# Development entry point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "ws_gateway.main:app",
        host="0.0.0.0",
        port=settings.ws_gateway_port,
        reload=True,
    )
