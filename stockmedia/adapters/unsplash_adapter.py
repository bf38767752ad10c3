"""
Unsplash 适配器 - 图片素材

接口：GET https://api.unsplash.com/search/photos
认证：Authorization: Client-ID <access key>
"""

from typing import Any, Dict, List, Optional
import logging

import requests

from stockmedia.adapters.base import HttpStockMediaAdapter
from stockmedia.adapters.variety import NoVarietyPolicy, VarietyPolicy
from stockmedia.domain.models import MediaItem, MediaType


logger = logging.getLogger(__name__)


class UnsplashAdapter(HttpStockMediaAdapter):
    """
    Unsplash 图片适配器

    图片地址（images.unsplash.com）可直接访问，只有 links.download
    需要凭证，因此只有它会被改写为代理地址。
    """

    NAME = "unsplash"
    BASE_URL = "https://api.unsplash.com"
    SEARCH_PATH = "/search/photos"
    MAX_PER_PAGE = 30
    SUPPORTED_TYPES = (MediaType.IMAGE,)
    ASSET_DOMAINS = ("unsplash.com",)
    API_VERSION = "v1"

    SEARCH_REQUIRED_FIELDS = ("results", "total")
    ITEMS_FIELD = "results"
    ITEM_REQUIRED_FIELDS = ("id", "urls")
    TOTAL_FIELD = "total"

    AUTH_REQUIRED_FIELDS = {
        "urls.raw": False,
        "urls.full": False,
        "urls.regular": False,
        "urls.small": False,
        "urls.thumb": False,
        "links.download": True,
    }

    ORIENTATIONS = ("landscape", "portrait", "squarish")

    def __init__(self, *args, variety_policy: Optional[VarietyPolicy] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.variety_policy = variety_policy or NoVarietyPolicy()

    def _auth_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Client-ID {self.api_key}",
            "Accept-Version": self.API_VERSION,
        }

    def _build_search_params(self, query: str, page: int, limit: int, filters: Dict[str, Any]) -> Dict[str, Any]:
        params = {
            "query": query,
            "page": page,
            "per_page": limit,
            "order_by": "relevant",
        }
        orientation = filters.get("orientation")
        if orientation in self.ORIENTATIONS:
            params["orientation"] = orientation
        if filters.get("color"):
            params["color"] = filters["color"]
        return params

    def _prepare_query(self, query: str, filters: Dict[str, Any]) -> str:
        return self.variety_policy.expand_query(query, filters)

    def _post_process(self, items: List[MediaItem], query: str, filters: Dict[str, Any]) -> List[MediaItem]:
        return self.variety_policy.reorder(items, query, filters)

    def _has_more(self, payload: Dict[str, Any], page: int, limit: int, total: int) -> bool:
        return self.validator.extract_int(payload, "total_pages", 0) > page

    def _transform_item(self, raw: Dict[str, Any]) -> Optional[MediaItem]:
        v = self.validator
        photo_id = v.extract_string(raw, "id", "")
        urls = v.extract_mapping(raw, "urls")
        if not photo_id or not urls:
            logger.warning(f"[unsplash] 图片缺少必要字段: {photo_id or 'unknown'}")
            return None

        regular_url = self._resolve_asset_url(v.extract_url(urls, "regular"), "urls.regular")
        if not regular_url:
            logger.warning(f"[unsplash] 图片 {photo_id} 没有有效的 URL")
            return None
        thumbnail_url = self._resolve_asset_url(v.extract_url(urls, "small"), "urls.small") or regular_url
        preview_url = self._resolve_asset_url(v.extract_url(urls, "thumb"), "urls.thumb") or thumbnail_url

        description = v.extract_string(raw, "description", "")
        alt_description = v.extract_string(raw, "alt_description", "")

        user = v.extract_mapping(raw, "user")
        photographer = v.extract_string(user, "name", "Unknown") or "Unknown"
        username = v.extract_string(user, "username", "unknown") or "unknown"

        download_url = self._resolve_asset_url(v.extract_url(raw, "links.download"), "links.download")

        return MediaItem(
            id=photo_id,
            name=alt_description or description or f"Photo by {photographer}",
            type=MediaType.IMAGE,
            mime_type="image/jpeg",
            url=regular_url,
            thumbnail_url=thumbnail_url,
            preview_url=preview_url,
            width=max(1, v.extract_int(raw, "width", 1920)),
            height=max(1, v.extract_int(raw, "height", 1080)),
            source=self.NAME,
            source_id=photo_id,
            license="Unsplash License",
            attribution=f"Photo by {photographer} on Unsplash",
            tags=tuple(self._build_tags(raw, description, alt_description)),
            is_premium=v.extract_bool(raw, "premium", False),
            metadata={
                "photographer": photographer,
                "photographer_username": username,
                "download_url": download_url or "",
                "unsplash_url": v.extract_url(raw, "links.html") or "",
                "color": v.extract_string(raw, "color", "#ffffff"),
                "blur_hash": v.extract_string(raw, "blur_hash", ""),
                "likes": v.extract_int(raw, "likes", 0),
                "downloads": v.extract_int(raw, "downloads", 0),
                "created_at": v.extract_string(raw, "created_at", ""),
            },
        )

    def _build_tags(self, raw: Dict[str, Any], description: str, alt_description: str) -> List[str]:
        """描述前 5 个词、替代文本前 3 个词、平台标签和分类"""
        candidates: List[Any] = []
        description_words = [w for w in description.lower().split() if 2 < len(w) < 20]
        candidates.extend(description_words[:5])
        alt_words = [w for w in alt_description.lower().split() if 2 < len(w) < 20]
        candidates.extend(alt_words[:3])

        for tag in self.validator.extract_list(raw, "tags")[:5]:
            title = tag.get("title") if isinstance(tag, dict) else tag
            candidates.append(title)

        for category in self.validator.extract_list(raw, "categories")[:3]:
            title = category.get("title") if isinstance(category, dict) else category
            candidates.append(title)

        return self.validator.normalize_tags(candidates)

    def _resolve_download_url(self, media_id: str, quality: str) -> Optional[str]:
        photo = self._request_json(f"/photos/{media_id}", None, ("urls",))
        if photo is None:
            return None

        urls = self.validator.extract_mapping(photo, "urls")
        download_url = self.validator.extract_url(urls, quality) or self.validator.extract_url(urls, "regular")
        if not download_url:
            logger.warning(f"[unsplash] 图片 {media_id} 可用尺寸: {', '.join(urls.keys())}")
            return None

        self._track_download(photo)
        return download_url

    def _track_download(self, photo: Dict[str, Any]) -> None:
        """按平台要求上报下载，失败不影响结果"""
        location = self.validator.extract_url(photo, "links.download_location")
        if not location:
            return
        try:
            self.session.get(location, headers=self._auth_headers(), timeout=5)
        except requests.exceptions.RequestException as e:
            logger.warning(f"[unsplash] 下载上报失败: {e}")
