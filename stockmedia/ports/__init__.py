"""
端口层 - 外部依赖的抽象接口
"""

from stockmedia.ports.interfaces import (
    StockMediaProviderPort,
    ShapeCatalogPort,
    CacheStorePort,
)

__all__ = [
    "StockMediaProviderPort",
    "ShapeCatalogPort",
    "CacheStorePort",
]
