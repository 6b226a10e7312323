from routes.scan_routes import router as scan_router
from routes.websocket_routes import router as websocket_router

__all__ = [
    'scan_router',
    'websocket_router'
]
