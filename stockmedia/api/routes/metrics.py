"""
监控指标路由 - 暴露检索与缓存数据

提供：
- 系统指标（检索数、平台调用、耗时）
- 缓存统计
- 平台限流快照
"""

from typing import Dict, Any
from fastapi import APIRouter, Depends

from stockmedia.api.dependencies import get_coordinator
from stockmedia.infrastructure import get_metrics_registry
from stockmedia.orchestrator import StockMediaCoordinator

router = APIRouter(prefix="/metrics", tags=["metrics"])


@router.get("/system", summary="获取系统指标")
async def get_system_metrics() -> Dict[str, Any]:
    """
    获取系统性能指标

    返回检索计数、平台调用耗时、缓存命中等核心指标。
    """
    registry = get_metrics_registry()
    return {
        "metrics": registry.get_all_metrics(),
    }


@router.get("/all", summary="获取所有指标")
def get_all_metrics(coordinator: StockMediaCoordinator = Depends(get_coordinator)) -> Dict[str, Any]:
    """
    获取所有监控指标的汇总

    一次性返回系统指标、缓存统计和平台限流快照。
    """
    return {
        "system": get_metrics_registry().get_all_metrics(),
        "cache": coordinator.get_cache_metrics(),
        "rate_limits": coordinator.get_rate_limit_status(),
    }
