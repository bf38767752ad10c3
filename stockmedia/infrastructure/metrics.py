"""
指标系统 - 素材检索监控

提供：
- 检索与平台调用计数（支持按平台分组）
- 平台调用耗时分布
- 缓存命中计数
- 并发检索数
"""

import time
from typing import Dict, Any, Optional, List
from collections import defaultdict
from threading import Lock, RLock


class Counter:
    """计数器 - 只增不减的指标，可按标签分组"""

    def __init__(self, name: str, description: str = ""):
        self.name = name
        self.description = description
        self._value = 0.0
        self._by_label: Dict[str, float] = defaultdict(float)
        self._lock = Lock()

    def inc(self, value: float = 1.0, label: Optional[str] = None):
        """增加计数"""
        with self._lock:
            self._value += value
            if label:
                self._by_label[label] += value

    def get(self, label: Optional[str] = None) -> float:
        """获取当前值"""
        with self._lock:
            if label:
                return self._by_label.get(label, 0.0)
            return self._value

    def get_labels(self) -> Dict[str, float]:
        with self._lock:
            return dict(self._by_label)


class Gauge:
    """仪表盘 - 可增可减的指标"""

    def __init__(self, name: str, description: str = ""):
        self.name = name
        self.description = description
        self._value = 0.0
        self._lock = Lock()

    def set(self, value: float):
        with self._lock:
            self._value = value

    def inc(self, value: float = 1.0):
        with self._lock:
            self._value += value

    def dec(self, value: float = 1.0):
        with self._lock:
            self._value -= value

    def get(self) -> float:
        with self._lock:
            return self._value


class Histogram:
    """直方图 - 记录值的分布"""

    DEFAULT_BUCKETS = [0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 15]

    def __init__(
        self,
        name: str,
        description: str = "",
        buckets: Optional[List[float]] = None
    ):
        self.name = name
        self.description = description
        self.buckets = sorted(buckets or self.DEFAULT_BUCKETS)
        self._counts = defaultdict(int)
        self._sum = 0.0
        self._count = 0
        self._lock = RLock()  # get_stats 中嵌套调用 get_percentile

    def observe(self, value: float):
        """记录一个观察值"""
        with self._lock:
            self._sum += value
            self._count += 1
            for bucket in self.buckets:
                if value <= bucket:
                    self._counts[bucket] += 1
                    break

    def get_percentile(self, p: float) -> float:
        """获取百分位数（桶上界）"""
        with self._lock:
            if self._count == 0:
                return 0.0
            target = self._count * p / 100
            cumulative = 0
            for bucket in self.buckets:
                cumulative += self._counts[bucket]
                if cumulative >= target:
                    return bucket
            return self.buckets[-1]

    def get_stats(self) -> Dict[str, float]:
        """获取统计信息"""
        with self._lock:
            return {
                "count": self._count,
                "sum": self._sum,
                "avg": self._sum / self._count if self._count > 0 else 0,
                "p50": self.get_percentile(50),
                "p95": self.get_percentile(95),
            }


class Timer:
    """计时器 - 用于测量代码执行时间"""

    def __init__(self, histogram: Histogram):
        self.histogram = histogram
        self.start_time = None

    def __enter__(self):
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.histogram.observe(time.time() - self.start_time)
        return False


class MetricsRegistry:
    """指标注册表 - 管理所有指标"""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._metrics: Dict[str, Any] = {}
        self._lock = Lock()
        self._initialized = True

        self._setup_default_metrics()

    def _setup_default_metrics(self):
        """设置默认指标"""
        # 检索
        self.register_counter("stockmedia_searches_total", "检索请求数（按类型）")
        self.register_counter("stockmedia_searches_failed", "失败的检索请求数")
        self.register_gauge("stockmedia_active_searches", "正在进行的多类型检索数")

        # 平台调用
        self.register_counter("stockmedia_provider_calls_total", "平台调用次数（按平台）")
        self.register_counter("stockmedia_provider_errors_total", "平台调用失败次数（按平台）")
        self.register_histogram("stockmedia_provider_duration_seconds", "平台调用耗时")

        # 缓存
        self.register_counter("stockmedia_cache_hits_total", "检索缓存命中（按平台）")
        self.register_counter("stockmedia_cache_misses_total", "检索缓存未命中（按平台）")

    def register_counter(self, name: str, description: str = "") -> Counter:
        """注册计数器"""
        with self._lock:
            if name not in self._metrics:
                self._metrics[name] = Counter(name, description)
            return self._metrics[name]

    def register_gauge(self, name: str, description: str = "") -> Gauge:
        """注册仪表盘"""
        with self._lock:
            if name not in self._metrics:
                self._metrics[name] = Gauge(name, description)
            return self._metrics[name]

    def register_histogram(
        self,
        name: str,
        description: str = "",
        buckets: Optional[List[float]] = None
    ) -> Histogram:
        """注册直方图"""
        with self._lock:
            if name not in self._metrics:
                self._metrics[name] = Histogram(name, description, buckets)
            return self._metrics[name]

    def get(self, name: str) -> Any:
        """获取指标"""
        with self._lock:
            return self._metrics.get(name)

    def get_all_metrics(self) -> Dict[str, Any]:
        """获取所有指标的当前值"""
        result = {}
        with self._lock:
            for name, metric in self._metrics.items():
                if isinstance(metric, Counter):
                    result[name] = {"type": "counter", "value": metric.get(), "labels": metric.get_labels()}
                elif isinstance(metric, Gauge):
                    result[name] = {"type": "gauge", "value": metric.get()}
                elif isinstance(metric, Histogram):
                    result[name] = {"type": "histogram", **metric.get_stats()}
        return result


# 全局指标注册表
_registry = None


def get_metrics_registry() -> MetricsRegistry:
    """获取全局指标注册表"""
    global _registry
    if _registry is None:
        _registry = MetricsRegistry()
    return _registry


# 便捷函数
def increment_counter(name: str, value: float = 1.0, label: Optional[str] = None):
    """增加计数器"""
    counter = get_metrics_registry().get(name)
    if counter:
        counter.inc(value, label)


def record_histogram(name: str, value: float):
    """记录直方图值"""
    histogram = get_metrics_registry().get(name)
    if histogram:
        histogram.observe(value)


def get_gauge(name: str) -> Optional[Gauge]:
    """获取仪表盘"""
    return get_metrics_registry().get(name)


def time_histogram(name: str) -> Timer:
    """创建计时器"""
    histogram = get_metrics_registry().get(name)
    return Timer(histogram) if histogram else Timer(Histogram(name))
