"""
素材检索协调器 - 统一检索入口

设计原则：
1. 单一入口：所有检索通过 StockMediaCoordinator 处理
2. 依赖注入：平台注册表和缓存通过构造函数注入
3. 错误隔离：多类型检索中单个平台失败不影响其他平台
4. 确定性合并：合并顺序与平台返回先后无关

单次检索的状态流转：
Routing → CacheLookup → {CacheHit → Done,
                         CacheMiss → ProviderCall → {Success → CacheStore → Done,
                                                     Failure → 抛出（单类型）/ 跳过（多类型）}}
"""

from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError, wait
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional, Sequence
import logging
import time

from stockmedia.domain.models import MediaItem, MediaType, SearchResult
from stockmedia.infrastructure.cache import CacheCategory, CacheService
from stockmedia.infrastructure.errors import ProviderError, StockMediaError, ValidationError
from stockmedia.infrastructure.logging import LogContext
from stockmedia.infrastructure.metrics import (
    get_gauge,
    increment_counter,
    time_histogram,
)
from stockmedia.orchestrator.registry import ProviderRegistry
from stockmedia.ports.interfaces import StockMediaProviderPort


logger = logging.getLogger(__name__)


# 合并时的平台优先级（数值越小越靠前）
PROVIDER_ORDER: Dict[str, int] = {
    "unsplash": 1,
    "iconfinder": 2,
    "pexels": 3,
    "shapes": 4,
}
UNKNOWN_PROVIDER_ORDER = 99

# 缓存预热默认值
DEFAULT_WARM_QUERIES = [
    "business", "technology", "nature", "people", "design",
    "abstract", "office", "travel", "food", "music",
]
DEFAULT_WARM_TYPES = [MediaType.IMAGE, MediaType.ICON]


def merge_sort_key(item: MediaItem):
    """非付费优先，其次按平台优先级"""
    return (item.is_premium, PROVIDER_ORDER.get(item.source, UNKNOWN_PROVIDER_ORDER))


class StockMediaCoordinator:
    """
    素材检索协调器

    职责：
    1. 按类型选择平台（注册顺序优先）
    2. 缓存优先的单类型检索
    3. 并行的多类型检索与确定性合并
    4. 下载地址解析与缓存
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        cache: Optional[CacheService] = None,
        default_timeout: Optional[float] = None
    ):
        """
        初始化协调器

        Args:
            registry: 有序平台注册表
            cache: 缓存服务（None 表示不缓存）
            default_timeout: 调用方未指定时的整体超时（秒）
        """
        self.registry = registry
        self.cache = cache
        self.default_timeout = default_timeout

    # ==================== 路由 ====================

    @staticmethod
    def _coerce_type(media_type: Any) -> MediaType:
        try:
            return MediaType(media_type)
        except ValueError:
            raise ProviderError.no_provider_for_type(str(media_type))

    def _provider_for(self, media_type: MediaType) -> StockMediaProviderPort:
        provider = self.registry.find_for_type(media_type)
        if provider is None:
            raise ProviderError.no_provider_for_type(media_type.value)
        return provider

    # ==================== 单类型检索 ====================

    def search(
        self,
        query: str,
        media_type: Any = MediaType.IMAGE,
        page: int = 1,
        limit: int = 20,
        filters: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None
    ) -> SearchResult:
        """
        单类型检索

        Args:
            query: 检索关键词
            media_type: 素材类型
            page: 页码
            limit: 每页数量
            filters: 过滤条件
            timeout: 整体超时（秒），超时视为失败

        Returns:
            SearchResult: 检索结果，providers 为实际服务的平台

        Raises:
            ProviderError: 没有平台支持该类型，或平台调用失败/超时
        """
        media_type = self._coerce_type(media_type)
        provider = self._provider_for(media_type)
        name = provider.get_name()
        filters = dict(filters or {})
        key_parts = CacheService.search_key(name, query, media_type.value, page, limit, filters)

        increment_counter("stockmedia_searches_total", label=media_type.value)

        cached = self.cache.get(CacheCategory.SEARCH, key_parts) if self.cache else None
        if isinstance(cached, SearchResult):
            increment_counter("stockmedia_cache_hits_total", label=name)
            logger.info(f"[{name}] 缓存命中: '{query}' ({media_type.value}) page={page}")
            return replace(cached, providers=(name,))

        increment_counter("stockmedia_cache_misses_total", label=name)
        try:
            result = self._call_provider(provider, query, page, limit, filters, timeout or self.default_timeout)
        except StockMediaError:
            increment_counter("stockmedia_searches_failed", label=media_type.value)
            raise

        result = replace(result, providers=(name,))
        if self.cache:
            self.cache.set(CacheCategory.SEARCH, key_parts, result)
            self._store_rate_limit(provider)
        return result

    def _call_provider(
        self,
        provider: StockMediaProviderPort,
        query: str,
        page: int,
        limit: int,
        filters: Dict[str, Any],
        timeout: Optional[float]
    ) -> SearchResult:
        name = provider.get_name()
        increment_counter("stockmedia_provider_calls_total", label=name)

        try:
            with LogContext(logger, f"检索 '{query}'", provider=name, page=page, limit=limit), \
                    time_histogram("stockmedia_provider_duration_seconds"):
                if timeout is None:
                    return provider.search(query, page, limit, filters)

                executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"stockmedia-{name}")
                future = executor.submit(provider.search, query, page, limit, filters)
                try:
                    return future.result(timeout=timeout)
                except FutureTimeoutError:
                    future.cancel()
                    raise ProviderError.timeout(name, timeout)
                finally:
                    executor.shutdown(wait=False)
        except StockMediaError:
            increment_counter("stockmedia_provider_errors_total", label=name)
            raise

    def _store_rate_limit(self, provider: StockMediaProviderPort) -> None:
        state = getattr(provider, "rate_limit_state", None)
        if state is not None:
            self.cache.set_rate_limit(provider.get_name(), state)

    # ==================== 多类型检索 ====================

    def search_multiple(
        self,
        query: str,
        types: Sequence[Any],
        page: int = 1,
        limit: int = 20,
        filters: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None
    ) -> SearchResult:
        """
        多类型并行检索

        每个类型分到 max(1, limit // 类型数) 条；单个平台失败或超时只记录并跳过。
        合并后非付费条目在前，同一付费层级按平台优先级排序，最后截断到 limit。

        Returns:
            SearchResult: 合并结果；全部失败时为空结果
        """
        media_types = self._normalize_types(types)
        if not media_types:
            raise ValidationError("至少需要一个有效的素材类型", field="types")

        per_type_limit = max(1, limit // len(media_types))
        filters = dict(filters or {})
        timeout = timeout or self.default_timeout

        tasks: Dict[MediaType, StockMediaProviderPort] = {}
        for media_type in media_types:
            provider = self.registry.find_for_type(media_type)
            if provider is None:
                logger.warning(f"没有平台支持类型 '{media_type.value}'，已跳过")
                continue
            tasks[media_type] = provider

        if not tasks:
            logger.warning(f"多类型检索 '{query}' 没有可用的平台")
            return SearchResult(items=(), total=0, page=page, limit=limit, has_more=False, providers=())

        active = get_gauge("stockmedia_active_searches")
        if active:
            active.inc()
        executor = ThreadPoolExecutor(max_workers=len(tasks), thread_name_prefix="stockmedia-multi")
        try:
            futures = {
                media_type: executor.submit(self.search, query, media_type, page, per_type_limit, filters)
                for media_type in tasks
            }
            done, not_done = wait(list(futures.values()), timeout=timeout)
            for future in not_done:
                future.cancel()
        finally:
            executor.shutdown(wait=False)
            if active:
                active.dec()

        # 按请求的类型顺序收集，与完成先后无关
        results: List[SearchResult] = []
        for media_type, future in futures.items():
            name = tasks[media_type].get_name()
            if future not in done:
                logger.warning(f"[{name}] 检索超时（{timeout}秒），已跳过")
                continue
            try:
                results.append(future.result())
            except StockMediaError as e:
                logger.warning(f"[{name}] 检索失败，已跳过: {e.message}")
            except Exception as e:
                logger.error(f"[{name}] 检索出现未预期的错误，已跳过: {e}", exc_info=True)

        if not results:
            logger.warning(f"多类型检索 '{query}' 的所有平台都失败了，返回空结果")
            return SearchResult(items=(), total=0, page=page, limit=limit, has_more=False, providers=())

        return self.merge_results(results, page, limit)

    @staticmethod
    def merge_results(results: Iterable[SearchResult], page: int, limit: int) -> SearchResult:
        """确定性合并：稳定排序，同一平台内保持原有顺序"""
        results = list(results)
        merged = [item for result in results for item in result.items]
        merged.sort(key=merge_sort_key)

        providers: List[str] = []
        for result in results:
            providers.extend(result.providers)

        return SearchResult(
            items=tuple(merged[:limit]),
            total=sum(result.total for result in results),
            page=page,
            limit=limit,
            has_more=any(result.has_more for result in results) or len(merged) > limit,
            providers=tuple(providers),
        )

    def _normalize_types(self, types: Sequence[Any]) -> List[MediaType]:
        normalized: List[MediaType] = []
        for value in types:
            try:
                media_type = MediaType(value)
            except ValueError:
                logger.warning(f"未知的素材类型 '{value}'，已跳过")
                continue
            if media_type not in normalized:
                normalized.append(media_type)
        return normalized

    # ==================== 下载 ====================

    def download_media(self, provider_name: str, media_id: str, quality: str = "regular") -> Optional[str]:
        """
        解析下载地址（带缓存）

        Returns:
            下载地址；平台不存在、素材不存在或查询失败时为 None
        """
        provider = self.registry.get(provider_name)
        if provider is None:
            logger.warning(f"未知的素材平台 '{provider_name}'")
            return None

        if self.cache:
            cached = self.cache.get_download_url(provider_name, media_id, quality)
            if cached:
                return cached

        try:
            url = provider.download_media(media_id, quality)
        except Exception as e:
            logger.error(f"[{provider_name}] 获取下载地址异常: {e}", exc_info=True)
            return None

        if url and self.cache:
            self.cache.set_download_url(provider_name, media_id, quality, url)
        return url

    @staticmethod
    def transform_to_storage_format(item: MediaItem) -> Dict[str, Any]:
        """交给外部持久化层的标准字段"""
        return {
            "name": item.name,
            "type": item.type.value,
            "mime_type": item.mime_type,
            "url": item.url,
            "thumbnail_url": item.thumbnail_url,
            "width": item.width,
            "height": item.height,
            "size": item.file_size,
            "duration": item.duration,
            "source": item.source,
            "source_id": item.source_id,
            "license": item.license,
            "attribution": item.attribution,
            "tags": list(item.tags),
            "is_premium": item.is_premium,
            "metadata": dict(item.metadata),
        }

    # ==================== 平台信息 ====================

    def get_supported_types(self) -> List[MediaType]:
        return self.registry.supported_types()

    def get_provider(self, name: str) -> Optional[StockMediaProviderPort]:
        return self.registry.get(name)

    def is_provider_available(self, name: str) -> bool:
        provider = self.registry.get(name)
        return provider is not None and provider.is_configured()

    def get_available_providers(self) -> List[Dict[str, Any]]:
        """所有平台及其配置状态、支持类型"""
        providers = []
        for provider in self.registry:
            name = provider.get_name()
            info = self.cache.get_provider_metadata(name) if self.cache else None
            if info is None:
                info = {
                    "name": name,
                    "configured": provider.is_configured(),
                    "supported_types": [t.value for t in provider.get_supported_types()],
                }
                if self.cache:
                    self.cache.set_provider_metadata(name, info)
            providers.append(info)
        return providers

    def get_rate_limit_status(self) -> Dict[str, Any]:
        """各平台最近一次的限流快照（仅供参考）"""
        status = {}
        for provider in self.registry:
            name = provider.get_name()
            state = self.cache.get_rate_limit(name) if self.cache else None
            if state is None:
                state = getattr(provider, "rate_limit_state", None)
            status[name] = state.to_dict() if state is not None else None
        return status

    # ==================== 缓存管理 ====================

    def is_cache_enabled(self) -> bool:
        return self.cache is not None and self.cache.enabled

    def invalidate_provider_cache(self, provider_name: str) -> int:
        if not self.cache:
            return 0
        return self.cache.invalidate(provider_name)

    def invalidate_all_cache(self) -> int:
        if not self.cache:
            return 0
        return self.cache.invalidate()

    def get_cache_metrics(self) -> Dict[str, Any]:
        if not self.cache:
            return {"enabled": False}
        return self.cache.get_metrics()

    def warm_cache(
        self,
        queries: Optional[Sequence[str]] = None,
        types: Optional[Sequence[Any]] = None,
        pages: int = 2,
        limit: int = 20
    ) -> Dict[str, Any]:
        """
        缓存预热

        对每个 (关键词, 类型, 页码) 组合执行一次单类型检索，失败只计数不中断。

        Returns:
            预热统计：成功数、失败数、耗时
        """
        queries = list(queries or DEFAULT_WARM_QUERIES)
        media_types = self._normalize_types(types or DEFAULT_WARM_TYPES)
        start_time = time.time()
        warmed = 0
        failed = 0

        logger.info(f"开始缓存预热: {len(queries)} 个关键词 × {len(media_types)} 个类型 × {pages} 页")
        for query in queries:
            for media_type in media_types:
                for page in range(1, max(1, pages) + 1):
                    try:
                        self.search(query, media_type, page, limit)
                        warmed += 1
                    except StockMediaError as e:
                        failed += 1
                        logger.warning(f"预热失败 '{query}' ({media_type.value}) page={page}: {e.message}")

        duration = round(time.time() - start_time, 2)
        logger.info(f"缓存预热完成: 成功 {warmed}，失败 {failed}，耗时 {duration}秒")
        return {"warmed": warmed, "failed": failed, "duration_seconds": duration}


def create_coordinator(
    registry: ProviderRegistry,
    cache: Optional[CacheService] = None,
    default_timeout: Optional[float] = None
) -> StockMediaCoordinator:
    """
    创建 StockMediaCoordinator 实例

    便于依赖注入和测试
    """
    return StockMediaCoordinator(registry=registry, cache=cache, default_timeout=default_timeout)
