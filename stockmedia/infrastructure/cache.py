"""
缓存系统 - 素材检索结果缓存

提供：
- 内存缓存（LRU + TTL，线程安全）
- 按数据类别的 TTL 策略
- 稳定的缓存键（过滤条件顺序无关）
- 按平台精确失效（键索引），存储不支持删除时退化为全量清空
- 缓存命中率统计
"""

import hashlib
import json
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from threading import RLock
from typing import Any, Callable, Dict, List, Optional, Set

from stockmedia.ports.interfaces import CacheStorePort


logger = logging.getLogger(__name__)


class CacheCategory(str, Enum):
    """缓存数据类别"""
    SEARCH = "stock_media_search"              # 检索结果
    PROVIDER_METADATA = "stock_media_provider"  # 平台元数据
    RATE_LIMIT = "stock_media_rate_limit"       # 限流快照
    MEDIA_DETAILS = "stock_media_details"       # 单个素材详情
    DOWNLOAD_URL = "stock_media_download"       # 下载地址
    STATISTICS = "stock_media_stats"            # 统计信息


DEFAULT_TTLS: Dict[CacheCategory, int] = {
    CacheCategory.SEARCH: 3600,              # 1小时
    CacheCategory.PROVIDER_METADATA: 86400,  # 24小时
    CacheCategory.RATE_LIMIT: 3600,          # 1小时
    CacheCategory.MEDIA_DETAILS: 7200,       # 2小时
    CacheCategory.DOWNLOAD_URL: 1800,        # 30分钟，短于平台链接有效期
    CacheCategory.STATISTICS: 600,           # 10分钟
}


@dataclass
class CacheEntry:
    """缓存条目"""
    value: Any
    created_at: float
    ttl: int
    hits: int = 0

    @property
    def expires_at(self) -> float:
        return self.created_at + self.ttl

    @property
    def is_expired(self) -> bool:
        """检查是否过期"""
        if self.ttl <= 0:  # 永不过期
            return False
        return time.time() >= self.expires_at

    def touch(self) -> None:
        """记录命中"""
        self.hits += 1


@dataclass
class CacheStats:
    """缓存统计"""
    hits: int = 0
    misses: int = 0
    writes: int = 0
    errors: int = 0
    invalidations: int = 0
    full_clears: int = 0

    @property
    def hit_rate(self) -> float:
        """命中率"""
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        """转为字典"""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "writes": self.writes,
            "errors": self.errors,
            "invalidations": self.invalidations,
            "full_clears": self.full_clears,
            "hit_rate": round(self.hit_rate * 100, 2),
        }


class LRUCache(CacheStorePort):
    """
    LRU缓存实现

    支持：
    - 最大容量限制
    - TTL过期
    - 线程安全（每个操作持锁）
    - 移除回调（淘汰或过期时通知上层）
    """

    def __init__(self, max_size: int = 1000):
        self.max_size = max_size
        self._cache: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = RLock()
        self.evictions = 0
        self._removal_listeners: List[Callable[[str], None]] = []

    def add_removal_listener(self, listener: Callable[[str], None]) -> None:
        """注册回调，条目因容量淘汰或过期被移除时以键调用"""
        self._removal_listeners.append(listener)

    def _notify_removed(self, keys: List[str]) -> None:
        for key in keys:
            for listener in self._removal_listeners:
                listener(key)

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return None

            if not entry.is_expired:
                # 移到末尾（最近使用）
                self._cache.move_to_end(key)
                entry.touch()
                return entry.value

            del self._cache[key]

        self._notify_removed([key])
        return None

    def set(self, key: str, value: Any, ttl: int) -> None:
        evicted = []
        with self._lock:
            if key in self._cache:
                del self._cache[key]

            while len(self._cache) >= self.max_size:
                evicted_key, _ = self._cache.popitem(last=False)
                evicted.append(evicted_key)
                self.evictions += 1

            self._cache[key] = CacheEntry(value=value, created_at=time.time(), ttl=ttl)

        self._notify_removed(evicted)

    def delete(self, key: str) -> bool:
        with self._lock:
            if key in self._cache:
                del self._cache[key]
                return True
            return False

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def cleanup_expired(self) -> int:
        """
        清理过期条目

        Returns:
            清理的条目数
        """
        with self._lock:
            expired_keys = [k for k, v in self._cache.items() if v.is_expired]
            for key in expired_keys:
                del self._cache[key]

        self._notify_removed(expired_keys)
        return len(expired_keys)

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)


def build_cache_key(category: CacheCategory, key_parts: Dict[str, Any]) -> str:
    """
    生成缓存键

    查询文本会去除首尾空白并转为小写，其余部分以 sort_keys 的 JSON
    编码后做 SHA-256，因此过滤条件的键顺序不影响结果。

    Args:
        category: 数据类别
        key_parts: 组成键的各部分（provider、query、type、page、limit、filters 等）

    Returns:
        形如 "stock_media_search:unsplash:<digest>" 的键
    """
    normalized = dict(key_parts)
    query = normalized.get("query")
    if isinstance(query, str):
        normalized["query"] = query.strip().lower()
    provider = str(normalized.get("provider") or "global")

    payload = json.dumps(normalized, sort_keys=True, default=str, ensure_ascii=False)
    digest = hashlib.sha256(payload.encode("utf-8")).hexdigest()
    return f"{category.value}:{provider}:{digest}"


class CacheService:
    """
    素材缓存服务

    缓存只是性能优化：存储层的任何异常都会被记录并当作未命中处理，
    不会让检索失败。
    """

    def __init__(
        self,
        store: Optional[CacheStorePort] = None,
        ttls: Optional[Dict[CacheCategory, int]] = None,
        enabled: bool = True
    ):
        """
        初始化缓存服务

        Args:
            store: 底层键值存储，默认使用内存 LRU
            ttls: 各类别 TTL 覆盖
            enabled: 是否启用缓存
        """
        self.store = store if store is not None else LRUCache()
        self.ttls = {**DEFAULT_TTLS, **(ttls or {})}
        self.enabled = enabled
        self._stats = CacheStats()
        self._provider_keys: Dict[str, Set[str]] = {}
        self._lock = RLock()

        # 存储自行淘汰或过期的键同步移出平台索引
        add_removal_listener = getattr(self.store, "add_removal_listener", None)
        if add_removal_listener is not None:
            add_removal_listener(self._forget_key)

    # ==================== 基本操作 ====================

    def get(self, category: CacheCategory, key_parts: Dict[str, Any]) -> Optional[Any]:
        """读取缓存，未命中或存储异常时返回 None"""
        if not self.enabled:
            return None

        key = build_cache_key(category, key_parts)
        try:
            value = self.store.get(key)
        except Exception as e:
            logger.warning(f"缓存读取失败，按未命中处理: {key} - {e}")
            with self._lock:
                self._stats.errors += 1
                self._stats.misses += 1
            return None

        with self._lock:
            if value is None:
                self._stats.misses += 1
            else:
                self._stats.hits += 1

        if value is None:
            self._forget_key(key)

        logger.debug(f"缓存{'命中' if value is not None else '未命中'}: {key}")
        return value

    def set(
        self,
        category: CacheCategory,
        key_parts: Dict[str, Any],
        value: Any,
        ttl: Optional[int] = None
    ) -> bool:
        """
        写入缓存

        Args:
            category: 数据类别
            key_parts: 键组成部分
            value: 缓存值
            ttl: 过期时间（秒），默认按类别

        Returns:
            是否写入成功
        """
        if not self.enabled or value is None:
            return False

        key = build_cache_key(category, key_parts)
        effective_ttl = ttl if ttl is not None else self.ttls.get(category, DEFAULT_TTLS[CacheCategory.SEARCH])
        try:
            self.store.set(key, value, effective_ttl)
        except Exception as e:
            logger.warning(f"缓存写入失败，已忽略: {key} - {e}")
            with self._lock:
                self._stats.errors += 1
            return False

        provider = str(key_parts.get("provider") or "global")
        with self._lock:
            self._provider_keys.setdefault(provider, set()).add(key)
            self._stats.writes += 1
        return True

    def invalidate(self, provider: Optional[str] = None) -> int:
        """
        失效缓存

        Args:
            provider: 平台名称；为 None 时清空全部

        Returns:
            删除的条目数（全量清空时为清空前索引中的条目数）
        """
        if provider is None:
            return self._clear_all()

        with self._lock:
            keys = self._provider_keys.pop(provider, set())

        removed = 0
        for key in keys:
            try:
                if self.store.delete(key):
                    removed += 1
            except NotImplementedError:
                logger.warning(f"缓存存储不支持按键删除，失效平台 '{provider}' 时退化为全量清空")
                return self._clear_all()
            except Exception as e:
                logger.warning(f"删除缓存条目失败: {key} - {e}")
                with self._lock:
                    self._stats.errors += 1

        with self._lock:
            self._stats.invalidations += 1
        logger.info(f"已失效平台 '{provider}' 的缓存，共 {removed} 条")
        return removed

    def _forget_key(self, key: str) -> None:
        """把已不在存储中的键移出平台索引"""
        parts = key.split(":", 2)
        if len(parts) < 3:
            return
        provider = parts[1]
        with self._lock:
            keys = self._provider_keys.get(provider)
            if keys is None:
                return
            keys.discard(key)
            if not keys:
                del self._provider_keys[provider]

    def _clear_all(self) -> int:
        with self._lock:
            count = sum(len(keys) for keys in self._provider_keys.values())
            self._provider_keys.clear()
            self._stats.invalidations += 1
            self._stats.full_clears += 1
        try:
            self.store.clear()
        except Exception as e:
            logger.error(f"清空缓存失败: {e}")
            with self._lock:
                self._stats.errors += 1
            return 0
        logger.info("已清空全部素材缓存")
        return count

    # ==================== 便捷方法 ====================

    @staticmethod
    def search_key(
        provider: str,
        query: str,
        media_type: str,
        page: int,
        limit: int,
        filters: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """检索结果的键组成"""
        return {
            "provider": provider,
            "query": query,
            "type": media_type,
            "page": page,
            "limit": limit,
            "filters": filters or {},
        }

    def get_download_url(self, provider: str, media_id: str, quality: str) -> Optional[str]:
        return self.get(CacheCategory.DOWNLOAD_URL, {"provider": provider, "id": media_id, "quality": quality})

    def set_download_url(self, provider: str, media_id: str, quality: str, url: str) -> bool:
        return self.set(CacheCategory.DOWNLOAD_URL, {"provider": provider, "id": media_id, "quality": quality}, url)

    def get_rate_limit(self, provider: str) -> Optional[Any]:
        return self.get(CacheCategory.RATE_LIMIT, {"provider": provider})

    def set_rate_limit(self, provider: str, state: Any) -> bool:
        return self.set(CacheCategory.RATE_LIMIT, {"provider": provider}, state)

    def get_provider_metadata(self, provider: str) -> Optional[Any]:
        return self.get(CacheCategory.PROVIDER_METADATA, {"provider": provider})

    def set_provider_metadata(self, provider: str, metadata: Dict[str, Any]) -> bool:
        return self.set(CacheCategory.PROVIDER_METADATA, {"provider": provider}, metadata)

    def get_statistics(self, name: str) -> Optional[Any]:
        return self.get(CacheCategory.STATISTICS, {"name": name})

    def set_statistics(self, name: str, value: Any) -> bool:
        return self.set(CacheCategory.STATISTICS, {"name": name}, value)

    # ==================== 统计 ====================

    @property
    def stats(self) -> CacheStats:
        with self._lock:
            return self._stats

    def get_metrics(self) -> Dict[str, Any]:
        """缓存指标，包括命中率和各类别 TTL"""
        with self._lock:
            metrics = self._stats.to_dict()
            metrics["indexed_keys"] = {
                provider: len(keys) for provider, keys in self._provider_keys.items()
            }
        try:
            metrics["size"] = len(self.store)
        except TypeError:
            metrics["size"] = None
        metrics["evictions"] = getattr(self.store, "evictions", None)
        metrics["enabled"] = self.enabled
        metrics["ttl_settings"] = {category.value: ttl for category, ttl in self.ttls.items()}
        return metrics
