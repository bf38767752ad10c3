"""
依赖注入 - FastAPI 依赖配置

集中管理所有服务的创建和注入，
确保单一实例和正确的生命周期管理。
"""

from functools import lru_cache
from typing import Dict, Optional

import requests

from stockmedia.adapters.shape_adapter import ShapeAdapter
from stockmedia.config import Settings, get_settings
from stockmedia.infrastructure.cache import CacheCategory, CacheService, LRUCache
from stockmedia.infrastructure.http import get_http_session
from stockmedia.infrastructure.validator import ResponseValidator
from stockmedia.orchestrator import ProviderRegistry, StockMediaCoordinator, build_registry, create_coordinator


class ServiceContainer:
    """
    服务容器 - 管理所有服务实例

    采用单例模式确保服务实例的复用
    """

    _instance: Optional['ServiceContainer'] = None
    _initialized: bool = False

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        settings = get_settings()

        # 共享的 HTTP 会话和验证器
        self._session = get_http_session()
        self._validator = ResponseValidator()

        # 平台注册表（顺序即路由优先级）
        self._registry = build_registry(settings, session=self._session, validator=self._validator)

        # 缓存服务
        self._cache = CacheService(
            store=LRUCache(max_size=settings.CACHE_MAX_SIZE),
            ttls={CacheCategory(name): ttl for name, ttl in settings.cache_ttls.items()},
            enabled=settings.CACHE_ENABLED,
        )

        # 检索协调器
        self._coordinator = create_coordinator(
            registry=self._registry,
            cache=self._cache,
            default_timeout=settings.SEARCH_TIMEOUT,
        )

        self._initialized = True

    @property
    def coordinator(self) -> StockMediaCoordinator:
        """获取协调器实例"""
        return self._coordinator

    @property
    def registry(self) -> ProviderRegistry:
        """获取平台注册表"""
        return self._registry

    @property
    def cache(self) -> CacheService:
        """获取缓存服务"""
        return self._cache

    @property
    def session(self) -> requests.Session:
        """获取共享 HTTP 会话"""
        return self._session


@lru_cache()
def get_service_container() -> ServiceContainer:
    """
    获取服务容器单例

    使用 lru_cache 确保只创建一次
    """
    return ServiceContainer()


def get_coordinator() -> StockMediaCoordinator:
    """FastAPI 依赖：获取协调器"""
    container = get_service_container()
    return container.coordinator


def get_shape_adapter() -> Optional[ShapeAdapter]:
    """FastAPI 依赖：获取形状适配器（未启用时为 None）"""
    provider = get_coordinator().get_provider(ShapeAdapter.NAME)
    return provider if isinstance(provider, ShapeAdapter) else None


def get_proxy_session() -> requests.Session:
    """FastAPI 依赖：代理转发使用的 HTTP 会话"""
    container = get_service_container()
    return container.session


def get_proxy_auth_headers(url: str, coordinator: Optional[StockMediaCoordinator] = None) -> Dict[str, str]:
    """目标地址属于已配置平台时，转发请求需要带上的认证头"""
    coordinator = coordinator or get_coordinator()
    for provider in coordinator.registry:
        auth_headers_for = getattr(provider, "auth_headers_for", None)
        if auth_headers_for is None:
            continue
        headers = auth_headers_for(url)
        if headers:
            return headers
    return {}


def is_proxy_allowed(url: str, coordinator: Optional[StockMediaCoordinator] = None) -> bool:
    """目标地址是否属于某个已注册平台的素材域名"""
    coordinator = coordinator or get_coordinator()
    for provider in coordinator.registry:
        serves_host = getattr(provider, "serves_host", None)
        if serves_host is not None and serves_host(url):
            return True
    return False


__all__ = [
    "ServiceContainer",
    "Settings",
    "get_service_container",
    "get_coordinator",
    "get_shape_adapter",
    "get_proxy_session",
    "get_proxy_auth_headers",
    "is_proxy_allowed",
    "get_settings",
]
