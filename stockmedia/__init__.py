"""
stockmedia - 素材聚合检索服务

基于 Clean/Hex 六边形架构构建，提供：
- Unsplash 照片检索
- Pexels 视频检索
- Iconfinder 图标检索
- 本地矢量形状库
- 多类型并行检索与合并
- 检索结果缓存

架构层次：
- domain: 核心领域模型
- ports: 端口接口定义
- adapters: 素材平台适配器
- orchestrator: 平台路由与检索编排
- infrastructure: 基础设施（日志、缓存、验证、错误、指标）
- api: FastAPI 路由

快速开始：
```python
from stockmedia.config import Settings
from stockmedia.orchestrator import build_registry, create_coordinator
from stockmedia.infrastructure import CacheService

coordinator = create_coordinator(build_registry(Settings()), CacheService())
result = coordinator.search("mountain", "image", limit=10)

# 或者启动 FastAPI 应用
from stockmedia.api import create_app
app = create_app()
```
"""

__version__ = "1.0.0"
__author__ = "Stock Media Team"

# 核心领域模型
from stockmedia.domain.models import (
    MediaType,
    ErrorKind,
    MediaItem,
    SearchResult,
    RateLimitState,
)

# 编排器
from stockmedia.orchestrator import (
    ProviderRegistry,
    StockMediaCoordinator,
    build_registry,
    create_coordinator,
)

__all__ = [
    # 版本信息
    "__version__",
    "__author__",
    # 领域模型
    "MediaType",
    "ErrorKind",
    "MediaItem",
    "SearchResult",
    "RateLimitState",
    # 编排器
    "ProviderRegistry",
    "StockMediaCoordinator",
    "build_registry",
    "create_coordinator",
]
