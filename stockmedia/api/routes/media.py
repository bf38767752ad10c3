"""
素材检索路由 - 核心业务 API

提供单类型/多类型检索、下载地址、形状库查询和缓存管理的 API 端点。
平台错误由应用级异常处理器统一转换为 HTTP 状态码。
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Any, Dict, List, Optional

from stockmedia.adapters.shape_adapter import ShapeAdapter
from stockmedia.api.dependencies import get_coordinator, get_shape_adapter
from stockmedia.api.schemas import (
    CacheInvalidateResponse,
    DownloadResponse,
    ErrorResponse,
    MediaItemData,
    MediaTypeEnum,
    ProviderInfo,
    ProvidersResponse,
    QualityEnum,
    SearchResponse,
    WarmCacheRequest,
    WarmCacheResponse,
    media_item_to_data,
    search_result_to_response,
)
from stockmedia.infrastructure.errors import ValidationError
from stockmedia.orchestrator import StockMediaCoordinator


router = APIRouter(prefix="/api/media/stock", tags=["Stock Media"])


ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "请求参数错误"},
    404: {"model": ErrorResponse, "description": "没有平台支持该类型"},
    429: {"model": ErrorResponse, "description": "平台限流"},
    502: {"model": ErrorResponse, "description": "平台返回错误"},
    503: {"model": ErrorResponse, "description": "平台不可用"},
    504: {"model": ErrorResponse, "description": "平台超时"},
}


def build_filters(**values: Optional[str]) -> Dict[str, Any]:
    """只保留有值的过滤条件"""
    return {key: value for key, value in values.items() if value not in (None, "")}


def _require_shapes(shapes: Optional[ShapeAdapter]) -> ShapeAdapter:
    if shapes is None:
        raise HTTPException(status_code=404, detail="形状库未启用")
    return shapes


# ==================== 检索 ====================

@router.get(
    "/search",
    response_model=SearchResponse,
    responses=ERROR_RESPONSES,
    summary="单类型检索",
    description="""
    按素材类型检索，由第一个支持该类型的平台处理：
    - image: Unsplash 照片
    - video: Pexels 视频
    - icon: Iconfinder 图标
    - shape: 本地矢量形状
    """
)
def search(
    query: str = Query(..., min_length=1, max_length=255, description="检索关键词"),
    type: MediaTypeEnum = Query(default=MediaTypeEnum.IMAGE, description="素材类型"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=50),
    orientation: Optional[str] = Query(default=None, description="方向：landscape, portrait, squarish"),
    color: Optional[str] = Query(default=None, description="主色"),
    size: Optional[str] = Query(default=None, description="尺寸"),
    style: Optional[str] = Query(default=None, description="图标风格"),
    category: Optional[str] = Query(default=None, description="分类"),
    shape_category: Optional[str] = Query(default=None, description="形状分类"),
    coordinator: StockMediaCoordinator = Depends(get_coordinator),
) -> SearchResponse:
    """单类型检索"""
    filters = build_filters(
        orientation=orientation,
        color=color,
        size=size,
        style=style,
        category=category,
        shape_category=shape_category,
    )
    result = coordinator.search(query.strip(), type.value, page, limit, filters)
    return search_result_to_response(result, query)


@router.get(
    "/search-multiple",
    response_model=SearchResponse,
    responses=ERROR_RESPONSES,
    summary="多类型检索",
    description="多个类型并行检索并合并：非付费素材在前，同一付费层级按平台优先级排序"
)
def search_multiple(
    query: str = Query(..., min_length=1, max_length=255, description="检索关键词"),
    types: str = Query(default="image,icon", description="逗号分隔的素材类型"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=50),
    orientation: Optional[str] = Query(default=None),
    color: Optional[str] = Query(default=None),
    style: Optional[str] = Query(default=None),
    coordinator: StockMediaCoordinator = Depends(get_coordinator),
) -> SearchResponse:
    """多类型检索"""
    requested = [t.strip().lower() for t in types.split(",") if t.strip()]
    if not requested:
        raise ValidationError("至少需要一个素材类型", field="types")

    filters = build_filters(orientation=orientation, color=color, style=style)
    result = coordinator.search_multiple(query.strip(), requested, page, limit, filters)
    return search_result_to_response(result, query)


@router.get("/types", summary="支持的素材类型")
def get_types(coordinator: StockMediaCoordinator = Depends(get_coordinator)) -> Dict[str, List[str]]:
    """当前已注册平台支持的素材类型"""
    return {"types": [t.value for t in coordinator.get_supported_types()]}


@router.get("/providers", response_model=ProvidersResponse, summary="素材平台列表")
def get_providers(coordinator: StockMediaCoordinator = Depends(get_coordinator)) -> ProvidersResponse:
    """已注册平台、配置状态和最近的限流快照"""
    return ProvidersResponse(
        providers=[ProviderInfo(**info) for info in coordinator.get_available_providers()],
        rate_limits=coordinator.get_rate_limit_status(),
    )


# ==================== 形状库 ====================

@router.get("/shapes/categories", summary="形状分类")
def get_shape_categories(shapes: Optional[ShapeAdapter] = Depends(get_shape_adapter)) -> Dict[str, Any]:
    shapes = _require_shapes(shapes)
    return {
        "categories": shapes.get_categories(),
        "shape_categories": shapes.get_shape_categories(),
        "statistics": shapes.get_statistics(),
    }


@router.get("/shapes/featured", response_model=List[MediaItemData], summary="热门形状")
def get_featured_shapes(
    limit: int = Query(default=20, ge=1, le=100),
    shapes: Optional[ShapeAdapter] = Depends(get_shape_adapter),
) -> List[MediaItemData]:
    shapes = _require_shapes(shapes)
    return [media_item_to_data(item) for item in shapes.get_featured(limit)]


@router.get("/shapes/suggestions", summary="形状检索建议")
def get_shape_suggestions(
    query: str = Query(..., max_length=255),
    limit: int = Query(default=10, ge=1, le=50),
    shapes: Optional[ShapeAdapter] = Depends(get_shape_adapter),
) -> Dict[str, List[str]]:
    shapes = _require_shapes(shapes)
    return {"suggestions": shapes.get_suggestions(query, limit)}


@router.get("/shapes/category/{category}", response_model=SearchResponse, summary="按分类浏览形状")
def get_shapes_by_category(
    category: str,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    shapes: Optional[ShapeAdapter] = Depends(get_shape_adapter),
) -> SearchResponse:
    shapes = _require_shapes(shapes)
    return search_result_to_response(shapes.get_by_category(category, page, limit), category)


# ==================== 缓存管理 ====================

@router.get("/cache", summary="缓存指标")
def get_cache_metrics(coordinator: StockMediaCoordinator = Depends(get_coordinator)) -> Dict[str, Any]:
    """命中率、写入数、各类别 TTL 等"""
    return coordinator.get_cache_metrics()


@router.delete("/cache", response_model=CacheInvalidateResponse, summary="失效缓存")
def invalidate_cache(
    provider: Optional[str] = Query(default=None, description="平台名称，留空清空全部"),
    coordinator: StockMediaCoordinator = Depends(get_coordinator),
) -> CacheInvalidateResponse:
    if provider:
        removed = coordinator.invalidate_provider_cache(provider)
    else:
        removed = coordinator.invalidate_all_cache()
    return CacheInvalidateResponse(provider=provider or None, removed=removed)


@router.post("/cache/warm", response_model=WarmCacheResponse, summary="缓存预热")
def warm_cache(
    request: WarmCacheRequest,
    coordinator: StockMediaCoordinator = Depends(get_coordinator),
) -> WarmCacheResponse:
    """用常用关键词预先填充检索缓存"""
    stats = coordinator.warm_cache(
        queries=request.queries,
        types=[t.value for t in request.types],
        pages=request.pages,
    )
    return WarmCacheResponse(**stats)


# ==================== 下载 ====================

@router.get(
    "/{provider}/{media_id}/download",
    response_model=DownloadResponse,
    responses={404: {"model": ErrorResponse, "description": "素材不存在"}},
    summary="获取下载地址",
)
def download_media(
    provider: str,
    media_id: str,
    quality: QualityEnum = Query(default=QualityEnum.REGULAR),
    coordinator: StockMediaCoordinator = Depends(get_coordinator),
) -> DownloadResponse:
    """解析素材的下载地址（带缓存）"""
    url = coordinator.download_media(provider, media_id, quality.value)
    if not url:
        raise HTTPException(status_code=404, detail=f"平台 '{provider}' 上没有素材 {media_id} 的下载地址")
    return DownloadResponse(provider=provider, media_id=media_id, quality=quality.value, download_url=url)
