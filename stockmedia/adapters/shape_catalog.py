"""
本地形状库 - 基于主索引文件的内存检索

主索引格式（JSON）：
{
    "total_files": 2,
    "categories": ["basic", "arrows"],
    "items": [
        {
            "original_filename": "Circle.svg",
            "normalized_filename": "circle.svg",
            "category": "basic",
            "path": "basic/circle.svg",
            "file_size": 512,
            "keywords": ["circle", "round"],
            "shape_category": "geometric",
            "description": "..."
        }
    ]
}
"""

from pathlib import Path
from threading import RLock
from typing import Any, Dict, List, Optional, Tuple, Union
import json
import logging

from stockmedia.domain.models import ShapeRecord
from stockmedia.ports.interfaces import ShapeCatalogPort


logger = logging.getLogger(__name__)


REQUIRED_ITEM_FIELDS = ("original_filename", "normalized_filename", "category", "path", "file_size")


class InMemoryShapeCatalog(ShapeCatalogPort):
    """
    内存形状库

    检索不区分大小写：查询中的每个词都必须出现在
    文件名、分类、形状分类、描述或关键词中的某一处。
    结果按原始文件名排序。
    """

    def __init__(self, records: Optional[List[ShapeRecord]] = None):
        self._lock = RLock()
        self._records: List[ShapeRecord] = []
        self._by_id: Dict[int, ShapeRecord] = {}
        self.load(records or [])

    # ==================== 加载 ====================

    def load(self, records: List[ShapeRecord]) -> None:
        """替换全部记录"""
        ordered = sorted(records, key=lambda r: (r.original_filename.lower(), r.id))
        with self._lock:
            self._records = ordered
            self._by_id = {record.id: record for record in ordered}

    @classmethod
    def from_index(cls, index: Dict[str, Any]) -> "InMemoryShapeCatalog":
        """从主索引字典构建，不完整的条目会被跳过"""
        records = []
        items = index.get("items") if isinstance(index, dict) else None
        if not isinstance(items, list):
            raise ValueError("主索引格式无效：缺少 items 数组")

        skipped = 0
        for position, item in enumerate(items, start=1):
            if not isinstance(item, dict) or any(item.get(f) in (None, "") for f in REQUIRED_ITEM_FIELDS):
                skipped += 1
                continue
            category = str(item["category"])
            keywords = item.get("keywords") or []
            try:
                records.append(ShapeRecord(
                    id=int(item.get("id", position)),
                    filename=str(item["normalized_filename"]),
                    original_filename=str(item["original_filename"]),
                    category=category,
                    path=str(item["path"]),
                    file_size=int(item["file_size"]),
                    shape_category=str(item.get("shape_category") or "general"),
                    description=str(item.get("description") or f"SVG shape from {category} category"),
                    keywords=tuple(str(k) for k in keywords if isinstance(k, (str, int))),
                ))
            except (TypeError, ValueError):
                skipped += 1

        if skipped:
            logger.warning(f"形状主索引中有 {skipped} 个条目不完整，已跳过")
        return cls(records)

    @classmethod
    def from_index_file(cls, path: Union[str, Path]) -> "InMemoryShapeCatalog":
        """从主索引文件构建；文件不存在或损坏时返回空库"""
        index_path = Path(path)
        if not index_path.exists():
            logger.warning(f"形状主索引不存在: {index_path}，形状库为空")
            return cls([])
        try:
            index = json.loads(index_path.read_text(encoding="utf-8"))
            catalog = cls.from_index(index)
        except (OSError, ValueError) as e:
            logger.error(f"形状主索引解析失败: {index_path} - {e}")
            return cls([])
        logger.info(f"已加载 {catalog.count()} 个形状: {index_path}")
        return catalog

    # ==================== 查询 ====================

    @staticmethod
    def _matches(record: ShapeRecord, tokens: List[str]) -> bool:
        fields = record.searchable_text
        return all(any(token in value for value in fields) for token in tokens)

    def _filter(
        self,
        query: str = "",
        category: Optional[str] = None,
        shape_category: Optional[str] = None
    ) -> List[ShapeRecord]:
        tokens = query.strip().lower().split()
        with self._lock:
            records = list(self._records)
        return [
            r for r in records
            if (category is None or r.category == category)
            and (shape_category is None or r.shape_category == shape_category)
            and self._matches(r, tokens)
        ]

    def search(
        self,
        query: str,
        offset: int = 0,
        limit: int = 20,
        category: Optional[str] = None,
        shape_category: Optional[str] = None
    ) -> Tuple[List[ShapeRecord], int]:
        matched = self._filter(query, category, shape_category)
        return matched[offset:offset + limit], len(matched)

    def get_by_id(self, shape_id: int) -> Optional[ShapeRecord]:
        with self._lock:
            return self._by_id.get(shape_id)

    def get_by_category(self, category: str, offset: int = 0, limit: int = 20) -> Tuple[List[ShapeRecord], int]:
        matched = self._filter(category=category)
        return matched[offset:offset + limit], len(matched)

    def get_popular(self, categories: List[str], limit: int = 20) -> List[ShapeRecord]:
        wanted = set(categories)
        with self._lock:
            return [r for r in self._records if r.category in wanted][:limit]

    def get_categories(self) -> List[str]:
        with self._lock:
            return sorted({r.category for r in self._records})

    def get_shape_categories(self) -> List[str]:
        with self._lock:
            return sorted({r.shape_category for r in self._records})

    def count(self) -> int:
        with self._lock:
            return len(self._records)

    def total_file_size(self) -> int:
        with self._lock:
            return sum(r.file_size for r in self._records)
