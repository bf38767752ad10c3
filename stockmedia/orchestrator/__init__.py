"""
编排层 - 平台路由与检索编排

负责：
1. 按素材类型选择平台
2. 缓存优先的检索
3. 多类型并行检索与合并

包含：
- ProviderRegistry: 有序平台注册表
- build_registry: 按配置构建注册表
- StockMediaCoordinator: 统一检索协调器
- create_coordinator: 工厂函数
"""

from stockmedia.orchestrator.registry import ProviderRegistry, build_registry
from stockmedia.orchestrator.coordinator import (
    PROVIDER_ORDER,
    StockMediaCoordinator,
    create_coordinator,
)

__all__ = [
    "ProviderRegistry",
    "build_registry",
    "PROVIDER_ORDER",
    "StockMediaCoordinator",
    "create_coordinator",
]
