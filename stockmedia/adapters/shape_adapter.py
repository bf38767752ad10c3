"""
本地形状适配器 - 矢量形状素材

与网络平台不同：
- 检索本地形状库，无 HTTP 请求、无限流
- 形状地址直接由本服务的静态目录提供，无需代理
- 额外提供分类列表、热门形状、检索建议和统计信息
"""

from typing import Any, Dict, List, Optional
from urllib.parse import quote
import logging
import re

from stockmedia.domain.models import MediaItem, MediaType, SearchResult, ShapeRecord
from stockmedia.infrastructure.proxy import DEFAULT_PUBLIC_BASE_URL
from stockmedia.infrastructure.validator import ResponseValidator
from stockmedia.ports.interfaces import ShapeCatalogPort, StockMediaProviderPort


logger = logging.getLogger(__name__)


class ShapeAdapter(StockMediaProviderPort):
    """本地形状适配器"""

    NAME = "shapes"
    SUPPORTED_TYPES = (MediaType.SHAPE,)
    MAX_PER_PAGE = 100
    STORAGE_PATH = "/storage/shapes/"
    POPULAR_CATEGORIES = ["mostlyused", "basic", "essential"]
    ID_PATTERN = re.compile(r"^(?:shape_)?(\d+)$")

    def __init__(
        self,
        catalog: ShapeCatalogPort,
        validator: Optional[ResponseValidator] = None,
        public_base_url: str = DEFAULT_PUBLIC_BASE_URL
    ):
        self.catalog = catalog
        self.validator = validator or ResponseValidator()
        self.public_base_url = public_base_url.rstrip("/")

    # ==================== 契约 ====================

    def get_name(self) -> str:
        return self.NAME

    def get_supported_types(self) -> List[MediaType]:
        return list(self.SUPPORTED_TYPES)

    def is_configured(self) -> bool:
        return self.catalog.count() > 0

    def search(
        self,
        query: str,
        page: int = 1,
        limit: int = 20,
        filters: Optional[Dict[str, Any]] = None
    ) -> SearchResult:
        filters = filters or {}
        page = max(1, int(page))
        limit = max(1, min(int(limit), self.MAX_PER_PAGE))
        category = filters.get("category") or None
        shape_category = filters.get("shape_category") or filters.get("shapeCategory") or None

        logger.info(f"[shapes] 检索 '{query}' category={category} shape_category={shape_category}")
        records, total = self.catalog.search(
            query or "",
            offset=(page - 1) * limit,
            limit=limit,
            category=category,
            shape_category=shape_category,
        )
        return self._to_result(records, total, page, limit)

    def download_media(self, media_id: str, quality: Optional[str] = None) -> Optional[str]:
        """形状只有一种清晰度，quality 被忽略"""
        match = self.ID_PATTERN.match(str(media_id).strip())
        record = self.catalog.get_by_id(int(match.group(1))) if match else None
        if record is None:
            logger.warning(f"[shapes] 形状 {media_id} 不存在")
            return None
        return self.shape_url(record)

    # ==================== 扩展查询 ====================

    def get_featured(self, limit: int = 20) -> List[MediaItem]:
        """热门分类下的形状"""
        return [self.to_media_item(r) for r in self.catalog.get_popular(self.POPULAR_CATEGORIES, limit)]

    def get_by_category(self, category: str, page: int = 1, limit: int = 20) -> SearchResult:
        page = max(1, int(page))
        limit = max(1, min(int(limit), self.MAX_PER_PAGE))
        records, total = self.catalog.get_by_category(category, offset=(page - 1) * limit, limit=limit)
        return self._to_result(records, total, page, limit)

    def get_categories(self) -> List[str]:
        return self.catalog.get_categories()

    def get_shape_categories(self) -> List[str]:
        return self.catalog.get_shape_categories()

    def get_suggestions(self, query: str, limit: int = 10) -> List[str]:
        """
        检索建议

        Args:
            query: 已输入的文本，至少 2 个字符
            limit: 最多返回的建议数

        Returns:
            包含该文本的分类和形状分类（去重）
        """
        term = (query or "").strip().lower()
        if len(term) < 2:
            return []

        suggestions: List[str] = []
        for name in self.get_categories() + self.get_shape_categories():
            if term in name.lower() and name not in suggestions:
                suggestions.append(name)
        return suggestions[:limit]

    def get_statistics(self) -> Dict[str, Any]:
        total = self.catalog.count()
        return {
            "total": total,
            "categories": len(self.get_categories()),
            "average_size": round(self.catalog.total_file_size() / total, 2) if total else 0.0,
        }

    def get_config_info(self) -> Dict[str, Any]:
        stats = self.get_statistics()
        return {
            "name": self.NAME,
            "configured": self.is_configured(),
            "supported_types": [t.value for t in self.SUPPORTED_TYPES],
            "total_shapes": stats["total"],
            "categories": self.get_categories(),
            "shape_categories": self.get_shape_categories(),
        }

    # ==================== 转换 ====================

    def shape_url(self, record: ShapeRecord) -> str:
        return f"{self.public_base_url}{self.STORAGE_PATH}{quote(record.path.lstrip('/'))}"

    def to_media_item(self, record: ShapeRecord) -> MediaItem:
        url = self.shape_url(record)
        return MediaItem(
            id=f"shape_{record.id}",
            name=self.validator.sanitize_string(record.original_filename),
            type=MediaType.SHAPE,
            mime_type="image/svg+xml",
            url=url,
            thumbnail_url=url,   # SVG 自身即可作为缩略图
            preview_url=url,
            width=None,
            height=None,
            file_size=record.file_size,
            source=self.NAME,
            source_id=str(record.id),
            license="Free for commercial use",
            attribution="",
            tags=tuple(self.validator.normalize_tags([*record.keywords, record.category, record.shape_category])),
            is_premium=False,
            metadata={
                "category": record.category,
                "shape_category": record.shape_category,
                "description": self.validator.sanitize_string(record.description),
                "keywords": list(record.keywords),
                "filename": record.filename,
                "original_filename": record.original_filename,
            },
        )

    def _to_result(self, records: List[ShapeRecord], total: int, page: int, limit: int) -> SearchResult:
        return SearchResult(
            items=tuple(self.to_media_item(r) for r in records),
            total=total,
            page=page,
            limit=limit,
            has_more=page * limit < total,
            providers=(self.NAME,),
        )
