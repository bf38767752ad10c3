"""
API 层 - FastAPI 路由定义

提供 RESTful API 接口，作为系统的统一入口。

包含：
- /api/media/stock: 素材检索、下载地址、形状库、缓存管理
- /api/media/proxy: 需要凭证的素材地址代理
- /health: 健康检查
- /ready, /live: Kubernetes 探针
- /metrics: 监控指标
"""

from stockmedia.api.main import app, create_app
from stockmedia.api.schemas import (
    SearchResponse,
    MediaItemData,
    HealthResponse,
    ErrorResponse,
)
from stockmedia.api.dependencies import (
    get_coordinator,
    get_settings,
    ServiceContainer,
)

__all__ = [
    # 应用
    "app",
    "create_app",
    # 响应模型
    "SearchResponse",
    "MediaItemData",
    "HealthResponse",
    "ErrorResponse",
    # 依赖
    "get_coordinator",
    "get_settings",
    "ServiceContainer",
]
