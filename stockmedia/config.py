"""
应用配置 - 从环境变量（及 .env 文件）读取

所有可调参数集中在 Settings 中，
平台注册表和缓存服务都基于这里的配置构建。
"""

from functools import lru_cache
from typing import Dict, List, Optional
import os

from dotenv import load_dotenv

# 加载 .env 中的环境变量
load_dotenv()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("true", "1", "yes")


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _env_list(name: str, default: str) -> List[str]:
    return [part.strip() for part in os.getenv(name, default).split(",") if part.strip()]


class Settings:
    """应用配置"""

    def __init__(self, **overrides):
        # 基本配置
        self.APP_NAME: str = os.getenv("APP_NAME", "Stock Media API")
        self.APP_VERSION: str = os.getenv("APP_VERSION", "1.0.0")
        self.DEBUG: bool = _env_bool("DEBUG")

        # 服务配置
        self.HOST: str = os.getenv("HOST", "0.0.0.0")
        self.PORT: int = _env_int("PORT", 8000)
        self.CORS_ORIGINS: List[str] = _env_list("CORS_ORIGINS", "*")
        self.PUBLIC_BASE_URL: str = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000")

        # 日志配置
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
        self.LOG_JSON: bool = _env_bool("LOG_JSON")
        self.LOG_FILE: Optional[str] = os.getenv("LOG_FILE") or None

        # 素材平台凭证
        self.UNSPLASH_ACCESS_KEY: str = os.getenv("UNSPLASH_ACCESS_KEY", "")
        self.PEXELS_API_KEY: str = os.getenv("PEXELS_API_KEY", "")
        self.ICONFINDER_API_KEY: str = os.getenv("ICONFINDER_API_KEY", "")

        # 启用的平台（顺序即路由优先级）
        self.STOCK_MEDIA_PROVIDERS: List[str] = _env_list(
            "STOCK_MEDIA_PROVIDERS", "unsplash,iconfinder,pexels,shapes"
        )
        self.SHAPES_INDEX_PATH: str = os.getenv("SHAPES_INDEX_PATH", "storage/shapes/master_index.json")

        # 超时配置（秒）
        self.REQUEST_TIMEOUT: int = _env_int("REQUEST_TIMEOUT", 10)
        self.SEARCH_TIMEOUT: int = _env_int("SEARCH_TIMEOUT", 15)
        self.PROXY_TIMEOUT: int = _env_int("PROXY_TIMEOUT", 30)

        # 缓存配置
        self.CACHE_ENABLED: bool = _env_bool("CACHE_ENABLED", "true")
        self.CACHE_MAX_SIZE: int = _env_int("CACHE_MAX_SIZE", 1000)
        self.CACHE_TTL_SEARCH: int = _env_int("CACHE_TTL_SEARCH", 3600)
        self.CACHE_TTL_PROVIDER_METADATA: int = _env_int("CACHE_TTL_PROVIDER_METADATA", 86400)
        self.CACHE_TTL_RATE_LIMIT: int = _env_int("CACHE_TTL_RATE_LIMIT", 3600)
        self.CACHE_TTL_MEDIA_DETAILS: int = _env_int("CACHE_TTL_MEDIA_DETAILS", 7200)
        self.CACHE_TTL_DOWNLOAD_URL: int = _env_int("CACHE_TTL_DOWNLOAD_URL", 1800)
        self.CACHE_TTL_STATISTICS: int = _env_int("CACHE_TTL_STATISTICS", 600)

        # 图片结果多样化
        self.VARIETY_ENABLED: bool = _env_bool("VARIETY_ENABLED", "true")

        for key, value in overrides.items():
            if not hasattr(self, key):
                raise AttributeError(f"未知配置项: {key}")
            setattr(self, key, value)

    @property
    def cache_ttls(self) -> Dict[str, int]:
        """按缓存类别名称组织的 TTL"""
        return {
            "stock_media_search": self.CACHE_TTL_SEARCH,
            "stock_media_provider": self.CACHE_TTL_PROVIDER_METADATA,
            "stock_media_rate_limit": self.CACHE_TTL_RATE_LIMIT,
            "stock_media_details": self.CACHE_TTL_MEDIA_DETAILS,
            "stock_media_download": self.CACHE_TTL_DOWNLOAD_URL,
            "stock_media_stats": self.CACHE_TTL_STATISTICS,
        }


@lru_cache()
def get_settings() -> Settings:
    """获取应用配置"""
    return Settings()
