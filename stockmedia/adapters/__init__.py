"""
适配器层 - 各素材平台的具体实现
"""

from stockmedia.adapters.base import HttpStockMediaAdapter
from stockmedia.adapters.unsplash_adapter import UnsplashAdapter
from stockmedia.adapters.pexels_adapter import PexelsAdapter
from stockmedia.adapters.iconfinder_adapter import IconfinderAdapter
from stockmedia.adapters.shape_adapter import ShapeAdapter
from stockmedia.adapters.shape_catalog import InMemoryShapeCatalog
from stockmedia.adapters.variety import (
    VarietyPolicy,
    NoVarietyPolicy,
    TimeSeededVarietyPolicy,
)

__all__ = [
    "HttpStockMediaAdapter",
    "UnsplashAdapter",
    "PexelsAdapter",
    "IconfinderAdapter",
    "ShapeAdapter",
    "InMemoryShapeCatalog",
    "VarietyPolicy",
    "NoVarietyPolicy",
    "TimeSeededVarietyPolicy",
]
