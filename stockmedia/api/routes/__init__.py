"""
路由包初始化
"""

from stockmedia.api.routes.media import router as media_router
from stockmedia.api.routes.proxy import router as proxy_router
from stockmedia.api.routes.health import router as health_router
from stockmedia.api.routes.metrics import router as metrics_router

__all__ = [
    "media_router",
    "proxy_router",
    "health_router",
    "metrics_router",
]
