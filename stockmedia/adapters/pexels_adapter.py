"""
Pexels 适配器 - 视频素材

接口：GET https://api.pexels.com/v1/videos/search
认证：Authorization: <api key>
"""

from typing import Any, Dict, List, Optional
from urllib.parse import urlparse
import logging

from stockmedia.adapters.base import HttpStockMediaAdapter
from stockmedia.domain.models import MediaItem, MediaType


logger = logging.getLogger(__name__)


class PexelsAdapter(HttpStockMediaAdapter):
    """
    Pexels 视频适配器

    视频文件地址是公开的 CDN 链接，无需代理。
    """

    NAME = "pexels"
    BASE_URL = "https://api.pexels.com"
    SEARCH_PATH = "/v1/videos/search"
    MAX_PER_PAGE = 80
    SUPPORTED_TYPES = (MediaType.VIDEO,)
    ASSET_DOMAINS = ("pexels.com",)

    SEARCH_REQUIRED_FIELDS = ("total_results", "videos")
    ITEMS_FIELD = "videos"
    ITEM_REQUIRED_FIELDS = ("id",)
    TOTAL_FIELD = "total_results"

    AUTH_REQUIRED_FIELDS = {
        "video_files.link": False,
        "image": False,
    }

    PREFERRED_QUALITIES = ("hd", "sd", "uhd")
    GENERIC_TAGS = ("video", "stock", "footage")
    ORIENTATIONS = ("landscape", "portrait", "square")
    SIZES = ("large", "medium", "small")

    def _auth_headers(self) -> Dict[str, str]:
        return {
            "Authorization": self.api_key,
            "Accept": "application/json",
        }

    def _build_search_params(self, query: str, page: int, limit: int, filters: Dict[str, Any]) -> Dict[str, Any]:
        params = {
            "query": query,
            "page": page,
            "per_page": limit,
            "locale": "en-US",
        }
        if filters.get("orientation") in self.ORIENTATIONS:
            params["orientation"] = filters["orientation"]
        if filters.get("size") in self.SIZES:
            params["size"] = filters["size"]
        return params

    def _has_more(self, payload: Dict[str, Any], page: int, limit: int, total: int) -> bool:
        return bool(self.validator.extract_field(payload, "next_page"))

    # ==================== 文件选择 ====================

    @staticmethod
    def _is_mp4(video_file: Dict[str, Any]) -> bool:
        return video_file.get("file_type") in (None, "video/mp4")

    def find_best_file(self, video_files: List[Any]) -> Optional[Dict[str, Any]]:
        """按 hd > sd > uhd 选择 mp4 文件，找不到时退回第一个 mp4，再退回第一个文件"""
        files = [f for f in video_files if isinstance(f, dict)]
        if not files:
            return None

        for quality in self.PREFERRED_QUALITIES:
            for video_file in files:
                if video_file.get("quality") == quality and self._is_mp4(video_file):
                    return video_file

        for video_file in files:
            if self._is_mp4(video_file):
                return video_file

        return files[0]

    def find_preview_file(self, video_files: List[Any]) -> Optional[Dict[str, Any]]:
        """标清文件作为预览"""
        for video_file in video_files:
            if isinstance(video_file, dict) and video_file.get("quality") == "sd" and self._is_mp4(video_file):
                return video_file
        return self.find_best_file(video_files)

    # ==================== 转换 ====================

    def _transform_item(self, raw: Dict[str, Any]) -> Optional[MediaItem]:
        v = self.validator
        video_id = v.extract_string(raw, "id", "")
        if not video_id:
            return None

        video_files = v.extract_list(raw, "video_files")
        best_file = self.find_best_file(video_files)
        if not best_file:
            logger.warning(f"[pexels] 视频 {video_id} 没有可用的文件")
            return None

        file_url = self._resolve_asset_url(v.extract_url(best_file, "link"), "video_files.link")
        if not file_url:
            logger.warning(f"[pexels] 视频 {video_id} 的文件地址无效")
            return None

        preview_file = self.find_preview_file(video_files) or best_file
        preview_url = self._resolve_asset_url(v.extract_url(preview_file, "link"), "video_files.link") or file_url
        thumbnail_url = self._resolve_asset_url(v.extract_url(raw, "image"), "image") or preview_url

        page_url = v.extract_url(raw, "url")
        photographer = v.extract_string(raw, "user.name", "Unknown") or "Unknown"
        photographer_url = v.extract_url(raw, "user.url")

        tags = self._build_tags(page_url)
        duration = v.extract_int(raw, "duration", None)
        file_type = v.extract_string(best_file, "file_type", "video/mp4") or "video/mp4"

        return MediaItem(
            id=video_id,
            name=self._build_name(raw, tags, photographer),
            type=MediaType.VIDEO,
            mime_type=file_type,
            url=file_url,
            thumbnail_url=thumbnail_url,
            preview_url=preview_url,
            width=v.extract_int(best_file, "width", None) or v.extract_int(raw, "width", 1920),
            height=v.extract_int(best_file, "height", None) or v.extract_int(raw, "height", 1080),
            duration=duration,
            source=self.NAME,
            source_id=video_id,
            license="Pexels License",
            attribution=self._build_attribution(photographer, photographer_url),
            tags=tuple(tags),
            is_premium=False,
            metadata={
                "photographer": photographer,
                "photographer_url": photographer_url or "",
                "pexels_url": page_url or "",
                "duration": duration,
                "fps": v.extract_float(best_file, "fps", None),
                "quality": v.extract_string(best_file, "quality", ""),
                "available_qualities": self._available_qualities(video_files),
                "file_type": file_type,
                "video_pictures": [
                    url for url in (v.extract_url(p, "picture") for p in v.extract_list(raw, "video_pictures")) if url
                ],
            },
        )

    def _build_tags(self, page_url: Optional[str]) -> List[str]:
        """从页面地址的 slug 中提取标签，例如 /video/ocean-waves-at-sunset-123/"""
        candidates: List[str] = []
        if page_url:
            slug = urlparse(page_url).path.rstrip("/").rsplit("/", 1)[-1]
            words = [w for w in slug.split("-") if len(w) > 2 and not w.isdigit()]
            candidates.extend(words[:5])
        candidates.extend(self.GENERIC_TAGS)
        return self.validator.normalize_tags(candidates, min_length=3)

    def _build_name(self, raw: Dict[str, Any], tags: List[str], photographer: str) -> str:
        meaningful = [t for t in tags if 2 < len(t) < 15 and t not in self.GENERIC_TAGS]
        if meaningful:
            return " ".join(meaningful[:3]).title() + " Video"
        if photographer and photographer != "Unknown":
            return f"Video by {photographer}"
        return f"Pexels Video #{self.validator.extract_string(raw, 'id', '')}"

    @staticmethod
    def _build_attribution(photographer: str, photographer_url: Optional[str]) -> str:
        if photographer_url:
            return f"Video by {photographer} ({photographer_url}) on Pexels"
        return f"Video by {photographer} on Pexels"

    def _available_qualities(self, video_files: List[Any]) -> List[str]:
        qualities: List[str] = []
        for video_file in video_files:
            quality = self.validator.extract_string(video_file, "quality", "")
            if quality and quality not in qualities:
                qualities.append(quality)
        return qualities

    # ==================== 下载 ====================

    def _resolve_download_url(self, media_id: str, quality: str) -> Optional[str]:
        video = self._request_json(f"/videos/videos/{media_id}", None, ("id", "video_files"))
        if video is None:
            return None

        video_files = [f for f in self.validator.extract_list(video, "video_files") if isinstance(f, dict)]
        if not video_files:
            return None

        if quality == "high":
            wanted = ("uhd", "hd")
        elif quality == "low":
            wanted = ("sd",)
        else:
            wanted = ()

        for video_file in video_files:
            if video_file.get("quality") in wanted:
                url = self.validator.extract_url(video_file, "link")
                if url:
                    return url

        best = self.find_best_file(video_files)
        return self.validator.extract_url(best, "link") if best else None
