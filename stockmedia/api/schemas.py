"""
API 请求/响应模型 - Pydantic Schema 定义

所有 API 的输入输出都通过这些模型定义，
确保类型安全和自动文档生成。
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum

from stockmedia.domain.models import MediaItem, SearchResult


# ==================== 枚举类型 ====================

class MediaTypeEnum(str, Enum):
    """素材类型"""
    IMAGE = "image"
    VIDEO = "video"
    ICON = "icon"
    SHAPE = "shape"


class QualityEnum(str, Enum):
    """下载清晰度"""
    RAW = "raw"
    FULL = "full"
    REGULAR = "regular"
    SMALL = "small"
    HIGH = "high"
    LOW = "low"


# ==================== 请求模型 ====================

class WarmCacheRequest(BaseModel):
    """缓存预热请求"""
    queries: Optional[List[str]] = Field(
        default=None,
        max_length=50,
        description="预热的关键词，留空使用常用关键词"
    )
    types: List[MediaTypeEnum] = Field(
        default_factory=lambda: [MediaTypeEnum.IMAGE, MediaTypeEnum.ICON],
        min_length=1,
        description="预热的素材类型"
    )
    pages: int = Field(default=2, ge=1, le=5, description="每个关键词预热的页数")

    @field_validator('queries')
    @classmethod
    def validate_queries(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        """去掉空关键词"""
        if v is None:
            return None
        cleaned = [q.strip() for q in v if q and q.strip()]
        return cleaned or None


# ==================== 响应模型 ====================

class MediaItemData(BaseModel):
    """素材条目"""
    id: str = Field(..., description="平台内的素材 ID（形状为 shape_{id}）")
    name: str = Field(..., description="素材名称")
    type: MediaTypeEnum = Field(..., description="素材类型")
    mime_type: str = Field(..., description="MIME 类型")
    url: str = Field(..., description="可访问的素材地址（需要凭证的地址已改写为代理地址）")
    thumbnail_url: Optional[str] = Field(default=None, description="缩略图地址")
    preview_url: Optional[str] = Field(default=None, description="预览地址")
    width: Optional[int] = None
    height: Optional[int] = None
    duration: Optional[int] = Field(default=None, description="视频时长（秒）")
    file_size: Optional[int] = Field(default=None, description="文件大小（字节）")
    source: str = Field(..., description="来源平台")
    source_id: str = Field(..., description="来源平台的原始 ID")
    license: str = Field(default="", description="授权说明")
    attribution: str = Field(default="", description="署名文本")
    tags: List[str] = Field(default_factory=list, description="标签")
    is_premium: bool = Field(default=False, description="是否付费素材")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="平台相关的附加信息")


class SearchResponse(BaseModel):
    """检索响应"""
    success: bool = Field(default=True, description="请求是否成功")
    items: List[MediaItemData] = Field(default_factory=list, description="素材列表")
    total: int = Field(..., description="平台报告的总数")
    page: int = Field(..., description="当前页码")
    limit: int = Field(..., description="每页数量")
    has_more: bool = Field(..., description="是否还有下一页")
    providers: List[str] = Field(default_factory=list, description="实际提供结果的平台")
    query: str = Field(..., description="检索关键词")
    timestamp: datetime = Field(default_factory=datetime.now, description="响应时间戳")


class ProviderInfo(BaseModel):
    """素材平台信息"""
    name: str = Field(..., description="平台名称")
    configured: bool = Field(..., description="是否已配置凭证")
    supported_types: List[str] = Field(default_factory=list, description="支持的素材类型")


class ProvidersResponse(BaseModel):
    """平台列表响应"""
    providers: List[ProviderInfo] = Field(default_factory=list, description="平台列表（按路由优先级）")
    rate_limits: Dict[str, Optional[Dict[str, Any]]] = Field(
        default_factory=dict,
        description="各平台最近一次的限流快照"
    )


class DownloadResponse(BaseModel):
    """下载地址响应"""
    success: bool = Field(default=True)
    provider: str = Field(..., description="平台名称")
    media_id: str = Field(..., description="素材 ID")
    quality: str = Field(..., description="请求的清晰度")
    download_url: str = Field(..., description="下载地址")


class CacheInvalidateResponse(BaseModel):
    """缓存失效响应"""
    success: bool = Field(default=True)
    provider: Optional[str] = Field(default=None, description="失效的平台，None 表示全部")
    removed: int = Field(..., description="删除的条目数")


class WarmCacheResponse(BaseModel):
    """缓存预热响应"""
    success: bool = Field(default=True)
    warmed: int = Field(..., description="成功预热的检索数")
    failed: int = Field(..., description="失败的检索数")
    duration_seconds: float = Field(..., description="耗时（秒）")


class HealthResponse(BaseModel):
    """健康检查响应"""
    status: str = Field(..., description="服务状态")
    timestamp: datetime = Field(..., description="检查时间")
    version: str = Field(..., description="API 版本")
    components: Dict[str, str] = Field(default_factory=dict, description="组件状态")


class ErrorResponse(BaseModel):
    """错误响应"""
    success: bool = Field(default=False)
    error_code: str = Field(..., description="错误码")
    error_message: str = Field(..., description="错误信息")
    details: Dict[str, Any] = Field(default_factory=dict, description="错误上下文")
    request_id: Optional[str] = Field(default=None, description="请求 ID")
    timestamp: datetime = Field(default_factory=datetime.now)


# ==================== 转换函数 ====================

def media_item_to_data(item: MediaItem) -> MediaItemData:
    """将 MediaItem 转换为 API 模型"""
    return MediaItemData(**item.to_dict())


def search_result_to_response(result: SearchResult, query: str) -> SearchResponse:
    """
    将 SearchResult 转换为 API 响应

    Args:
        result: 检索结果
        query: 原始检索关键词

    Returns:
        SearchResponse: API 响应对象
    """
    return SearchResponse(
        items=[media_item_to_data(item) for item in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
        has_more=result.has_more,
        providers=list(result.providers),
        query=query,
    )
