"""WebSocket API for realtime notifications."""

from taskhive.api.websocket.routes import router as websocket_router

__all__ = ["websocket_router"]
