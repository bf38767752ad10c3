"""
基础设施层 - 横切关注点

提供日志、缓存、监控、错误处理、HTTP 传输等基础服务。

包含：
- logging: 结构化日志系统
- metrics: 指标收集系统
- errors: 错误定义和 HTTP 状态码归类
- validator: 平台响应验证与清洗
- cache: LRU缓存与缓存服务
- http: 带重试的 HTTP 会话
- proxy: 代理地址编码
- security: 安全中间件和 SSRF 检查
"""

from stockmedia.infrastructure.logging import (
    setup_logging,
    get_logger,
    LogContext,
    StructuredFormatter,
    SimpleFormatter,
)
from stockmedia.infrastructure.metrics import (
    MetricsRegistry,
    Counter,
    Gauge,
    Histogram,
    Timer,
    get_metrics_registry,
    increment_counter,
    record_histogram,
    time_histogram,
)
from stockmedia.infrastructure.errors import (
    StockMediaError,
    ValidationError,
    ProviderError,
    ErrorHandler,
)
from stockmedia.infrastructure.validator import ResponseValidator
from stockmedia.infrastructure.cache import (
    CacheCategory,
    CacheService,
    LRUCache,
    build_cache_key,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "LogContext",
    "StructuredFormatter",
    "SimpleFormatter",
    "MetricsRegistry",
    "Counter",
    "Gauge",
    "Histogram",
    "Timer",
    "get_metrics_registry",
    "increment_counter",
    "record_histogram",
    "time_histogram",
    "StockMediaError",
    "ValidationError",
    "ProviderError",
    "ErrorHandler",
    "ResponseValidator",
    "CacheCategory",
    "CacheService",
    "LRUCache",
    "build_cache_key",
]
