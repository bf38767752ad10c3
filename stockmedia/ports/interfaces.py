"""
端口接口定义 - 依赖倒置的核心

所有外部素材平台和存储都通过这些接口交互，
具体实现由适配器层和基础设施层提供。

设计原则：
1. 接口隔离：素材平台、形状库、缓存存储各自独立
2. 依赖倒置：协调器只依赖接口，不依赖具体平台
3. 异常抽象：平台错误统一为 ProviderError
"""

from abc import ABC, abstractmethod
from typing import Optional, List, Dict, Any, Tuple

from stockmedia.domain.models import MediaType, SearchResult, ShapeRecord


# ==================== 端口接口 ====================

class StockMediaProviderPort(ABC):
    """素材平台端口 - 检索、下载地址解析"""

    @abstractmethod
    def search(
        self,
        query: str,
        page: int = 1,
        limit: int = 20,
        filters: Optional[Dict[str, Any]] = None
    ) -> SearchResult:
        """
        检索素材

        Args:
            query: 检索关键词
            page: 页码（从 1 开始）
            limit: 每页数量（会被截断到平台上限）
            filters: 平台相关的过滤条件

        Returns:
            SearchResult: 标准化的检索结果

        Raises:
            ProviderError: 传输失败、认证失败、限流等
        """
        pass

    @abstractmethod
    def download_media(self, media_id: str, quality: Optional[str] = None) -> Optional[str]:
        """
        解析指定清晰度的下载地址

        Args:
            media_id: 平台素材 ID
            quality: 清晰度（high/regular/low 等）

        Returns:
            下载地址；素材不存在或查询失败时返回 None，不抛异常
        """
        pass

    @abstractmethod
    def get_name(self) -> str:
        """平台名称"""
        pass

    @abstractmethod
    def get_supported_types(self) -> List[MediaType]:
        """支持的素材类型"""
        pass

    def supports_type(self, media_type: Any) -> bool:
        """是否支持给定类型"""
        try:
            return MediaType(media_type) in self.get_supported_types()
        except ValueError:
            return False

    def is_configured(self) -> bool:
        """是否已配置（如 API Key）"""
        return True


class ShapeCatalogPort(ABC):
    """形状库端口 - 本地可检索的矢量形状存储"""

    @abstractmethod
    def search(
        self,
        query: str,
        offset: int = 0,
        limit: int = 20,
        category: Optional[str] = None,
        shape_category: Optional[str] = None
    ) -> Tuple[List[ShapeRecord], int]:
        """
        检索形状

        Returns:
            (当前页记录, 总匹配数)
        """
        pass

    @abstractmethod
    def get_by_id(self, shape_id: int) -> Optional[ShapeRecord]:
        """按 ID 获取形状"""
        pass

    @abstractmethod
    def get_by_category(self, category: str, offset: int = 0, limit: int = 20) -> Tuple[List[ShapeRecord], int]:
        """按分类获取形状"""
        pass

    @abstractmethod
    def get_popular(self, categories: List[str], limit: int = 20) -> List[ShapeRecord]:
        """获取热门分类下的形状"""
        pass

    @abstractmethod
    def get_categories(self) -> List[str]:
        """所有分类"""
        pass

    @abstractmethod
    def get_shape_categories(self) -> List[str]:
        """所有形状分类"""
        pass

    @abstractmethod
    def count(self) -> int:
        """形状总数"""
        pass

    @abstractmethod
    def total_file_size(self) -> int:
        """形状文件总大小（字节）"""
        pass


class CacheStorePort(ABC):
    """缓存存储端口 - 原子的单键读写"""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """读取，不存在或过期返回 None"""
        pass

    @abstractmethod
    def set(self, key: str, value: Any, ttl: int) -> None:
        """写入"""
        pass

    def delete(self, key: str) -> bool:
        """
        删除单个键

        Raises:
            NotImplementedError: 存储不支持按键删除
        """
        raise NotImplementedError

    @abstractmethod
    def clear(self) -> None:
        """清空全部"""
        pass
