"""HTTP endpoints served next to the Socket.IO relay.

Routes:
- GET  /health, /socket/health   relay liveness and connected client count
- POST /emit-notification        push a notification to one user's connections
- POST /broadcast-notification   push a notification to every connection
- OPTIONS *                      CORS preflight

Handlers reach the relay through the aiohttp application context; there is
no module-level relay instance.
"""
import logging
import time
from typing import Any, Dict

from aiohttp import web

from core.relay import EventRelay

logger = logging.getLogger(__name__)

RELAY_KEY = web.AppKey("relay", EventRelay)
STARTED_AT_KEY = web.AppKey("started_at", float)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

NOT_FOUND_TEXT = "Penci relay - see /health, /emit-notification or connect with Socket.IO"


class BadRequest(Exception):
    """Raised by body parsing helpers; turned into a 400 response."""


def make_cors_middleware(socketio_path: str):
    """Build a middleware adding CORS headers to every non Socket.IO response.

    Engine.IO sets its own CORS headers on the Socket.IO path, so that path is
    left untouched to avoid duplicate headers.
    """
    socketio_prefix = "/" + socketio_path.strip("/")

    @web.middleware
    async def cors_middleware(request: web.Request, handler):
        if request.path == socketio_prefix or request.path.startswith(socketio_prefix + "/"):
            return await handler(request)
        try:
            response = await handler(request)
        except web.HTTPException as exc:
            exc.headers.update(CORS_HEADERS)
            raise
        response.headers.update(CORS_HEADERS)
        return response

    return cors_middleware


async def _read_json_object(request: web.Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        raise BadRequest("Invalid JSON body") from None
    if not isinstance(body, dict):
        raise BadRequest("JSON body must be an object")
    return body


def _connected_clients(request: web.Request) -> int:
    return request.app[RELAY_KEY].registry.count()


def _error(status: int, message: str) -> web.Response:
    return web.json_response({"error": message}, status=status)


async def handle_health(request: web.Request) -> web.Response:
    return web.json_response({
        "status": "ok",
        "connectedClients": _connected_clients(request),
        "uptime": round(time.monotonic() - request.app[STARTED_AT_KEY], 3),
    })


async def handle_emit_notification(request: web.Request) -> web.Response:
    try:
        body = await _read_json_object(request)
        user_id = body.get("userId")
        if not isinstance(user_id, str) or not user_id.strip():
            raise BadRequest("userId is required")

        delivered = await request.app[RELAY_KEY].notify_user(user_id, body.get("data"))
        return web.json_response({
            "success": True,
            "message": f"Notification emitted to user {user_id}",
            "connectedClients": _connected_clients(request),
            "delivered": delivered,
        })
    except BadRequest as e:
        logger.warning(f"Rejected /emit-notification request: {e}")
        return _error(400, str(e))
    except Exception as e:
        logger.error(f"Error emitting notification: {e}", exc_info=True)
        return _error(500, "Internal server error")


async def handle_broadcast_notification(request: web.Request) -> web.Response:
    try:
        body = await _read_json_object(request)
        message = body.get("message")
        if not isinstance(message, str) or not message:
            raise BadRequest("message is required")

        delivered = await request.app[RELAY_KEY].broadcast_notification(body)
        return web.json_response({
            "success": True,
            "message": "Notification broadcast to all clients",
            "connectedClients": _connected_clients(request),
            "delivered": delivered,
        })
    except BadRequest as e:
        logger.warning(f"Rejected /broadcast-notification request: {e}")
        return _error(400, str(e))
    except Exception as e:
        logger.error(f"Error broadcasting notification: {e}", exc_info=True)
        return _error(500, "Internal server error")


async def handle_fallback(request: web.Request) -> web.Response:
    """CORS preflight for any path; 404 hint for everything else."""
    if request.method == "OPTIONS":
        return web.Response(status=200)
    return web.Response(status=404, text=NOT_FOUND_TEXT)


def setup_routes(app: web.Application, relay: EventRelay) -> None:
    """Attach the HTTP endpoints. Call after sio.attach so Socket.IO routes win."""
    app[RELAY_KEY] = relay
    app[STARTED_AT_KEY] = time.monotonic()

    app.router.add_get("/health", handle_health)
    app.router.add_get("/socket/health", handle_health)
    app.router.add_post("/emit-notification", handle_emit_notification)
    app.router.add_post("/broadcast-notification", handle_broadcast_notification)
    app.router.add_route("*", "/{tail:.*}", handle_fallback)
