"""
领域层 - 素材检索的核心模型
"""

from stockmedia.domain.models import (
    MediaType,
    ErrorKind,
    MediaItem,
    SearchResult,
    RateLimitState,
    ShapeRecord,
    unique_ordered,
)

__all__ = [
    "MediaType",
    "ErrorKind",
    "MediaItem",
    "SearchResult",
    "RateLimitState",
    "ShapeRecord",
    "unique_ordered",
]
