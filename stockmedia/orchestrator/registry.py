"""
平台注册表 - 启动时按配置构建的有序平台列表

注册顺序即路由优先级：同一类型由第一个支持它的平台处理。
"""

from typing import Callable, Dict, Iterable, List, Optional
import logging

import requests

from stockmedia.adapters.iconfinder_adapter import IconfinderAdapter
from stockmedia.adapters.pexels_adapter import PexelsAdapter
from stockmedia.adapters.shape_adapter import ShapeAdapter
from stockmedia.adapters.shape_catalog import InMemoryShapeCatalog
from stockmedia.adapters.unsplash_adapter import UnsplashAdapter
from stockmedia.adapters.variety import NoVarietyPolicy, TimeSeededVarietyPolicy
from stockmedia.config import Settings
from stockmedia.domain.models import MediaType
from stockmedia.infrastructure.validator import ResponseValidator
from stockmedia.ports.interfaces import StockMediaProviderPort


logger = logging.getLogger(__name__)


class ProviderRegistry:
    """有序平台注册表"""

    def __init__(self, providers: Optional[Iterable[StockMediaProviderPort]] = None):
        self._providers: List[StockMediaProviderPort] = []
        for provider in providers or []:
            self.register(provider)

    def register(self, provider: StockMediaProviderPort) -> None:
        name = provider.get_name()
        if self.get(name) is not None:
            raise ValueError(f"平台 '{name}' 已注册")
        self._providers.append(provider)

    def get(self, name: str) -> Optional[StockMediaProviderPort]:
        for provider in self._providers:
            if provider.get_name() == name:
                return provider
        return None

    def find_for_type(self, media_type: MediaType) -> Optional[StockMediaProviderPort]:
        """第一个支持该类型的平台"""
        for provider in self._providers:
            if provider.supports_type(media_type):
                return provider
        return None

    def names(self) -> List[str]:
        return [provider.get_name() for provider in self._providers]

    def supported_types(self) -> List[MediaType]:
        types: List[MediaType] = []
        for provider in self._providers:
            for media_type in provider.get_supported_types():
                if media_type not in types:
                    types.append(media_type)
        return types

    def __iter__(self):
        return iter(list(self._providers))

    def __len__(self) -> int:
        return len(self._providers)


def build_registry(
    settings: Settings,
    session: Optional[requests.Session] = None,
    validator: Optional[ResponseValidator] = None
) -> ProviderRegistry:
    """
    按配置构建平台注册表

    Args:
        settings: 应用配置（STOCK_MEDIA_PROVIDERS 决定启用的平台和顺序）
        session: 共享 HTTP 会话
        validator: 共享响应验证器

    Returns:
        ProviderRegistry: 有序注册表
    """
    validator = validator or ResponseValidator()
    common = {
        "validator": validator,
        "session": session,
        "timeout": settings.REQUEST_TIMEOUT,
        "public_base_url": settings.PUBLIC_BASE_URL,
    }
    factories: Dict[str, Callable[[], StockMediaProviderPort]] = {
        "unsplash": lambda: UnsplashAdapter(
            settings.UNSPLASH_ACCESS_KEY,
            variety_policy=TimeSeededVarietyPolicy() if settings.VARIETY_ENABLED else NoVarietyPolicy(),
            **common,
        ),
        "pexels": lambda: PexelsAdapter(settings.PEXELS_API_KEY, **common),
        "iconfinder": lambda: IconfinderAdapter(settings.ICONFINDER_API_KEY, **common),
        "shapes": lambda: ShapeAdapter(
            InMemoryShapeCatalog.from_index_file(settings.SHAPES_INDEX_PATH),
            validator=validator,
            public_base_url=settings.PUBLIC_BASE_URL,
        ),
    }

    registry = ProviderRegistry()
    for name in settings.STOCK_MEDIA_PROVIDERS:
        factory = factories.get(name.lower())
        if factory is None or registry.get(name.lower()) is not None:
            logger.warning(f"未知或重复的素材平台 '{name}'，已忽略")
            continue
        provider = factory()
        registry.register(provider)
        if not provider.is_configured():
            logger.warning(f"素材平台 '{name}' 未配置，检索将返回空结果")

    logger.info(f"已注册素材平台: {', '.join(registry.names()) or '无'}")
    return registry
