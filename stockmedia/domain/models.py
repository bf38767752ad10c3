"""
核心领域模型 - 素材检索相关的实体和值对象

设计原则：
1. 不可变性：使用 frozen=True 确保模型不可变
2. 统一结构：无论来自哪个素材平台，输出字段保持一致
3. 元数据不透明：平台特有字段只放在 metadata 中
4. 可序列化：支持转换为 JSON 友好的字典
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Dict, Any, Iterable, Tuple


# ==================== 枚举类型 ====================

class MediaType(str, Enum):
    """素材类型"""
    IMAGE = "image"     # 图片
    VIDEO = "video"     # 视频
    ICON = "icon"       # 图标
    SHAPE = "shape"     # 本地矢量形状


class ErrorKind(str, Enum):
    """错误类型"""
    INVALID_RESPONSE = "invalid_response"              # 响应不是合法 JSON 对象
    MISSING_REQUIRED_FIELDS = "missing_required_fields"  # 缺少必需字段（软失败）
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"        # 429
    AUTHENTICATION_FAILED = "authentication_failed"    # 401
    QUOTA_EXCEEDED = "quota_exceeded"                  # 403
    TIMEOUT = "timeout"                                # 408 或传输超时
    SERVICE_UNAVAILABLE = "service_unavailable"        # 5xx 或连接失败
    REQUEST_FAILED = "request_failed"                  # 其他 4xx
    NO_PROVIDER_FOR_TYPE = "no_provider_for_type"      # 没有平台支持该类型
    INVALID_INPUT = "invalid_input"
    INTERNAL_ERROR = "internal_error"


# ==================== 工具函数 ====================

def unique_ordered(values: Iterable[str]) -> Tuple[str, ...]:
    """去重并保持首次出现的顺序"""
    seen = set()
    result = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        result.append(value)
    return tuple(result)


# ==================== 值对象 ====================

@dataclass(frozen=True)
class MediaItem:
    """标准化素材条目"""
    id: str
    name: str
    type: MediaType
    mime_type: str
    url: str                                   # 永不为空，无下载地址时回退到预览地址
    thumbnail_url: Optional[str] = None
    preview_url: Optional[str] = None
    width: Optional[int] = None                # 矢量形状没有固定尺寸
    height: Optional[int] = None
    duration: Optional[int] = None             # 视频时长（秒）
    file_size: Optional[int] = None
    source: str = ""                           # 平台名称
    source_id: str = ""
    license: str = ""
    attribution: str = ""
    tags: Tuple[str, ...] = ()
    is_premium: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.url:
            raise ValueError(f"素材 {self.id} 缺少可用的 URL")
        object.__setattr__(self, "type", MediaType(self.type))
        object.__setattr__(self, "tags", unique_ordered(self.tags))

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典"""
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "mime_type": self.mime_type,
            "url": self.url,
            "thumbnail_url": self.thumbnail_url,
            "preview_url": self.preview_url,
            "width": self.width,
            "height": self.height,
            "duration": self.duration,
            "file_size": self.file_size,
            "source": self.source,
            "source_id": self.source_id,
            "license": self.license,
            "attribution": self.attribution,
            "tags": list(self.tags),
            "is_premium": self.is_premium,
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class SearchResult:
    """检索结果，条目数永远不超过 limit"""
    items: Tuple[MediaItem, ...] = ()
    total: int = 0
    page: int = 1
    limit: int = 20
    has_more: bool = False
    providers: Tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "items", tuple(self.items)[:max(0, self.limit)])
        object.__setattr__(self, "providers", unique_ordered(self.providers))

    @property
    def count(self) -> int:
        return len(self.items)

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典"""
        return {
            "items": [item.to_dict() for item in self.items],
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
            "has_more": self.has_more,
            "providers": list(self.providers),
        }


@dataclass(frozen=True)
class RateLimitState:
    """平台限流快照（仅供参考，不做强制限制）"""
    provider: str
    requests_made: Optional[int] = None
    requests_remaining: Optional[int] = None
    reset_time: Optional[int] = None           # Unix 时间戳
    updated_at: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "requests_made": self.requests_made,
            "requests_remaining": self.requests_remaining,
            "reset_time": self.reset_time,
            "updated_at": self.updated_at,
        }


@dataclass(frozen=True)
class ShapeRecord:
    """本地形状库中的一条记录"""
    id: int
    filename: str
    original_filename: str
    category: str
    path: str
    file_size: int
    shape_category: str = "general"
    description: str = ""
    keywords: Tuple[str, ...] = ()

    @property
    def searchable_text(self) -> List[str]:
        """参与全文匹配的字段"""
        return [
            self.filename.lower(),
            self.original_filename.lower(),
            self.category.lower(),
            self.shape_category.lower(),
            self.description.lower(),
            *[keyword.lower() for keyword in self.keywords],
        ]
