"""
Iconfinder 适配器 - 图标素材

接口：GET https://api.iconfinder.com/v4/icons/search
认证：Authorization: Bearer <api key>
"""

from typing import Any, Dict, List, Optional
import logging

from stockmedia.adapters.base import HttpStockMediaAdapter
from stockmedia.domain.models import MediaItem, MediaType


logger = logging.getLogger(__name__)


class IconfinderAdapter(HttpStockMediaAdapter):
    """
    Iconfinder 图标适配器

    格式的 download_url 需要 Bearer 凭证，统一改写为代理地址；
    preview_url 是公开的 CDN 地址，直接返回。
    """

    NAME = "iconfinder"
    BASE_URL = "https://api.iconfinder.com/v4"
    SEARCH_PATH = "/icons/search"
    MAX_PER_PAGE = 100
    SUPPORTED_TYPES = (MediaType.ICON,)
    ASSET_DOMAINS = ("iconfinder.com",)

    SEARCH_REQUIRED_FIELDS = ("total_count", "icons")
    ITEMS_FIELD = "icons"
    ITEM_REQUIRED_FIELDS = ("icon_id",)
    TOTAL_FIELD = "total_count"

    AUTH_REQUIRED_FIELDS = {
        "format.download_url": True,
        "format.preview_url": False,
    }

    PREFERRED_SIZES = (128, 64, 256, 512, 32, 48, 96)
    MIN_SIZE = 32
    MAX_SIZE = 512

    def _auth_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "application/json",
        }

    def _build_search_params(self, query: str, page: int, limit: int, filters: Dict[str, Any]) -> Dict[str, Any]:
        params = {
            "query": query,
            "offset": (page - 1) * limit,
            "count": limit,
            "license": "free,commercial",
            "vector": 1,
            "minimum_size": self.MIN_SIZE,
            "maximum_size": self.MAX_SIZE,
        }
        if filters.get("style"):
            params["style"] = filters["style"]
        if filters.get("category"):
            params["category"] = filters["category"]
        return params

    def _has_more(self, payload: Dict[str, Any], page: int, limit: int, total: int) -> bool:
        return (page - 1) * limit + limit < total

    # ==================== 格式选择 ====================

    def find_best_raster(self, raster_sizes: List[Any]) -> Optional[Dict[str, Any]]:
        """按首选尺寸选择位图格式（每个尺寸取第一个格式）"""
        by_size: Dict[int, Dict[str, Any]] = {}
        for raster in raster_sizes:
            if not isinstance(raster, dict):
                continue
            size = self.validator.extract_int(raster, "size", 0)
            formats = [f for f in self.validator.extract_list(raster, "formats") if isinstance(f, dict)]
            if size and formats and size not in by_size:
                by_size[size] = {**formats[0], "size": size}

        for size in self.PREFERRED_SIZES:
            if size in by_size:
                return by_size[size]
        return next(iter(by_size.values()), None)

    def find_vector(self, vector_sizes: List[Any]) -> Optional[Dict[str, Any]]:
        """优先 SVG，其次第一个矢量格式"""
        candidates = []
        for vector in vector_sizes:
            if not isinstance(vector, dict):
                continue
            size = self.validator.extract_int(vector, "size", 512)
            for fmt in self.validator.extract_list(vector, "formats"):
                if isinstance(fmt, dict):
                    candidates.append({**fmt, "size": size})

        for fmt in candidates:
            if str(fmt.get("format", "")).lower() == "svg":
                return fmt
        return candidates[0] if candidates else None

    # ==================== 转换 ====================

    def _transform_item(self, raw: Dict[str, Any]) -> Optional[MediaItem]:
        v = self.validator
        icon_id = v.extract_string(raw, "icon_id", "")
        if not icon_id:
            return None

        raster = self.find_best_raster(v.extract_list(raw, "raster_sizes"))
        vector = self.find_vector(v.extract_list(raw, "vector_sizes"))
        primary = vector or raster
        if not primary:
            logger.warning(f"[iconfinder] 图标 {icon_id} 没有可用格式")
            return None

        download_url = v.extract_url(primary, "download_url")
        raster_preview = v.extract_url(raster, "preview_url") if raster else None
        preview_url = v.extract_url(primary, "preview_url") or raster_preview

        proxied_url = self._resolve_asset_url(download_url, "format.download_url")
        url = proxied_url or self._resolve_asset_url(preview_url, "format.preview_url")
        if not url:
            logger.warning(f"[iconfinder] 图标 {icon_id} 没有有效的 URL")
            return None

        tags = self._build_tags(raw)
        size = v.extract_int(primary, "size", 64)
        license_name = self._determine_license(raw)

        return MediaItem(
            id=icon_id,
            name=self._build_name(raw, tags, icon_id),
            type=MediaType.ICON,
            mime_type="image/svg+xml" if vector else "image/png",
            url=url,
            thumbnail_url=raster_preview or preview_url,
            preview_url=preview_url,
            width=size,
            height=size,
            source=self.NAME,
            source_id=icon_id,
            license=license_name,
            attribution=self._build_attribution(raw, icon_id),
            tags=tuple(tags),
            is_premium=v.extract_bool(raw, "is_premium", False),
            metadata={
                "icon_id": icon_id,
                "type": v.extract_string(raw, "type", "icon"),
                "published_at": v.extract_string(raw, "published_at", None),
                "is_icon_glyph": v.extract_bool(raw, "is_icon_glyph", False),
                "vector_available": vector is not None,
                "formats_available": sorted({
                    v.extract_int(r, "size", 0) for r in v.extract_list(raw, "raster_sizes") if isinstance(r, dict)
                } - {0}),
                "original_urls": {
                    "download": download_url,
                    "preview": preview_url,
                    "thumbnail": raster_preview,
                },
                "proxy_info": {
                    "download_proxied": proxied_url is not None and proxied_url != download_url,
                    "preview_direct": True,
                    "thumbnail_direct": True,
                },
            },
        )

    def _named_entries(self, raw: Dict[str, Any], field: str) -> List[str]:
        names = []
        for entry in self.validator.extract_list(raw, field):
            name = self.validator.extract_string(entry, "name", "") if isinstance(entry, dict) else entry
            if name:
                names.append(name)
        return names

    def _build_tags(self, raw: Dict[str, Any]) -> List[str]:
        """分类名、风格名和平台标签"""
        candidates: List[Any] = []
        candidates.extend(self._named_entries(raw, "categories"))
        candidates.extend(self._named_entries(raw, "styles"))

        icon_tags = self.validator.extract_field(raw, "tags")
        if isinstance(icon_tags, str):
            icon_tags = icon_tags.split(",")
        if isinstance(icon_tags, list):
            candidates.extend(str(t).strip() for t in icon_tags)

        return self.validator.normalize_tags(candidates)

    def _build_name(self, raw: Dict[str, Any], tags: List[str], icon_id: str) -> str:
        meaningful = [t for t in tags if 2 < len(t) < 20]
        if meaningful:
            return " ".join(meaningful[:3]).title() + " Icon"
        categories = self._named_entries(raw, "categories")
        if categories:
            return categories[0].title() + " Icon"
        return f"Icon #{icon_id}"

    def _determine_license(self, raw: Dict[str, Any]) -> str:
        if self.validator.extract_bool(raw, "is_premium", False):
            return "Premium Commercial License"
        licenses = self._named_entries(raw, "licenses")
        return licenses[0] if licenses else "Free License"

    def _build_attribution(self, raw: Dict[str, Any], icon_id: str) -> str:
        licenses = self._named_entries(raw, "licenses")
        if licenses:
            return f"Icon #{icon_id} by Iconfinder ({licenses[0]})"
        return f"Icon #{icon_id} by Iconfinder"

    # ==================== 下载 ====================

    def _resolve_download_url(self, media_id: str, quality: str) -> Optional[str]:
        """high 优先矢量，其余取首选位图；返回代理地址"""
        icon = self._request_json(f"/icons/{media_id}", None, ("icon_id",))
        if icon is None:
            return None

        if quality == "high":
            vector = self.find_vector(self.validator.extract_list(icon, "vector_sizes"))
            url = self.validator.extract_url(vector, "download_url") if vector else None
            if url:
                return self._resolve_asset_url(url, "format.download_url")

        raster = self.find_best_raster(self.validator.extract_list(icon, "raster_sizes"))
        url = self.validator.extract_url(raster, "download_url") if raster else None
        return self._resolve_asset_url(url, "format.download_url") if url else None
