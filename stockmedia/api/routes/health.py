"""
健康检查路由 - 系统状态监控 API
"""

from fastapi import APIRouter, Depends
from datetime import datetime

from stockmedia.api.schemas import HealthResponse
from stockmedia.api.dependencies import get_coordinator, get_settings, Settings
from stockmedia.orchestrator import StockMediaCoordinator


router = APIRouter(tags=["Health"])


@router.get(
    "/",
    summary="API 根节点",
    description="返回欢迎信息和 API 基本信息"
)
async def root(settings: Settings = Depends(get_settings)):
    """API 根节点"""
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "redoc": "/redoc",
    }


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="健康检查",
    description="检查各素材平台的配置状态和缓存状态"
)
def health_check(
    coordinator: StockMediaCoordinator = Depends(get_coordinator),
    settings: Settings = Depends(get_settings),
) -> HealthResponse:
    """健康检查"""
    components = {}

    # 各平台凭证/数据是否就绪
    for provider in coordinator.registry:
        components[provider.get_name()] = "healthy" if provider.is_configured() else "unconfigured"

    components["cache"] = "healthy" if coordinator.is_cache_enabled() else "disabled"

    # 总体状态：至少一个平台可用
    overall_status = "healthy" if all(
        v in ("healthy", "disabled") for v in components.values()
    ) else "degraded"
    if not any(provider.is_configured() for provider in coordinator.registry):
        overall_status = "unhealthy"

    return HealthResponse(
        status=overall_status,
        timestamp=datetime.now(),
        version=settings.APP_VERSION,
        components=components,
    )


@router.get(
    "/ready",
    summary="就绪检查",
    description="检查服务是否准备好接收请求（用于 Kubernetes 就绪探针）"
)
def readiness_check(coordinator: StockMediaCoordinator = Depends(get_coordinator)):
    """就绪检查"""
    return {"ready": len(coordinator.registry) > 0}


@router.get(
    "/live",
    summary="存活检查",
    description="检查服务是否存活（用于 Kubernetes 存活探针）"
)
async def liveness_check():
    """存活检查"""
    return {"alive": True}
