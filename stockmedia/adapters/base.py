"""
HTTP 素材平台适配器基类

封装各网络平台共用的流程：
- 参数截断（每页上限）
- 单次 GET 请求与错误归类
- 响应验证与逐条转换（坏条目丢弃并记录）
- 限流响应头记录
- 需要凭证的 URL 改写为代理地址
"""

from abc import abstractmethod
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse
import logging
import time

import requests

from stockmedia.domain.models import MediaItem, MediaType, RateLimitState, SearchResult
from stockmedia.infrastructure.errors import ErrorHandler, ProviderError
from stockmedia.infrastructure.http import get_http_session
from stockmedia.infrastructure.proxy import DEFAULT_PUBLIC_BASE_URL, encode_proxy_url
from stockmedia.infrastructure.validator import ResponseValidator
from stockmedia.ports.interfaces import StockMediaProviderPort


logger = logging.getLogger(__name__)


class HttpStockMediaAdapter(StockMediaProviderPort):
    """
    网络素材平台适配器基类

    子类需要提供：
    - NAME / BASE_URL / SEARCH_PATH / MAX_PER_PAGE / SUPPORTED_TYPES
    - _auth_headers: 平台认证头
    - _build_search_params: 检索参数
    - _transform_item: 单个条目转换
    - _resolve_download_url: 下载地址解析
    """

    NAME: str = ""
    BASE_URL: str = ""
    SEARCH_PATH: str = ""
    MAX_PER_PAGE: int = 30
    SUPPORTED_TYPES: Tuple[MediaType, ...] = ()

    # 检索响应结构
    SEARCH_REQUIRED_FIELDS: Tuple[str, ...] = ()
    ITEMS_FIELD: str = ""
    ITEM_REQUIRED_FIELDS: Tuple[str, ...] = ()
    TOTAL_FIELD: str = ""

    # 各 URL 字段是否需要平台凭证才能访问；未声明的字段按子串规则判断
    AUTH_REQUIRED_FIELDS: Dict[str, bool] = {}
    PUBLIC_URL_MARKERS: Tuple[str, ...] = ("preview", "thumbnail")

    # 代理允许转发的素材域名，子域名同样放行
    ASSET_DOMAINS: Tuple[str, ...] = ()

    def __init__(
        self,
        api_key: str = "",
        validator: Optional[ResponseValidator] = None,
        session: Optional[requests.Session] = None,
        timeout: float = 10,
        public_base_url: str = DEFAULT_PUBLIC_BASE_URL
    ):
        """
        初始化适配器

        Args:
            api_key: 平台 API Key
            validator: 响应验证器
            session: requests 会话（测试时可注入）
            timeout: 单次请求超时（秒）
            public_base_url: 本服务对外地址，用于生成代理 URL
        """
        self.api_key = api_key or ""
        self.validator = validator or ResponseValidator()
        self.session = session or get_http_session()
        self.timeout = timeout
        self.public_base_url = public_base_url
        self.rate_limit_state: Optional[RateLimitState] = None

    # ==================== 契约 ====================

    def get_name(self) -> str:
        return self.NAME

    def get_supported_types(self) -> List[MediaType]:
        return list(self.SUPPORTED_TYPES)

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def clamp_limit(self, limit: int) -> int:
        """截断到平台每页上限"""
        return max(1, min(int(limit), self.MAX_PER_PAGE))

    def search(
        self,
        query: str,
        page: int = 1,
        limit: int = 20,
        filters: Optional[Dict[str, Any]] = None
    ) -> SearchResult:
        filters = dict(filters or {})
        page = max(1, int(page))
        limit = self.clamp_limit(limit)

        if not self.is_configured():
            logger.warning(f"[{self.NAME}] 未配置 API Key，返回空结果")
            return self._empty_result(page, limit)

        effective_query = self._prepare_query(query, filters)
        params = self._build_search_params(effective_query, page, limit, filters)
        logger.info(f"[{self.NAME}] 检索 '{effective_query}' page={page} limit={limit}")

        payload = self._request_json(self.SEARCH_PATH, params, self.SEARCH_REQUIRED_FIELDS)
        if payload is None:
            return self._empty_result(page, limit)

        raw_items = self.validator.extract_items(payload, self.ITEMS_FIELD, self.ITEM_REQUIRED_FIELDS)
        items = self._transform_items(raw_items)
        items = self._post_process(items, query, filters)

        total = self.validator.extract_int(payload, self.TOTAL_FIELD, len(items))
        logger.info(f"[{self.NAME}] 检索完成: 总数 {total}，返回 {len(items)} 条")

        return SearchResult(
            items=tuple(items),
            total=total,
            page=page,
            limit=limit,
            has_more=self._has_more(payload, page, limit, total),
            providers=(self.NAME,),
        )

    def download_media(self, media_id: str, quality: Optional[str] = None) -> Optional[str]:
        quality = quality or "regular"
        if not self.is_configured():
            logger.warning(f"[{self.NAME}] 未配置 API Key，无法获取下载地址")
            return None

        try:
            url = self._resolve_download_url(str(media_id), quality)
        except ProviderError as e:
            logger.warning(f"[{self.NAME}] 获取素材 {media_id} 下载地址失败: {e.message}")
            return None

        if not url:
            logger.warning(f"[{self.NAME}] 素材 {media_id} 没有可用的下载地址（quality={quality}）")
            return None
        return url

    # ==================== 子类钩子 ====================

    @abstractmethod
    def _auth_headers(self) -> Dict[str, str]:
        pass

    @abstractmethod
    def _build_search_params(
        self,
        query: str,
        page: int,
        limit: int,
        filters: Dict[str, Any]
    ) -> Dict[str, Any]:
        pass

    @abstractmethod
    def _transform_item(self, raw: Dict[str, Any]) -> Optional[MediaItem]:
        pass

    @abstractmethod
    def _resolve_download_url(self, media_id: str, quality: str) -> Optional[str]:
        pass

    def _prepare_query(self, query: str, filters: Dict[str, Any]) -> str:
        return query

    def _post_process(self, items: List[MediaItem], query: str, filters: Dict[str, Any]) -> List[MediaItem]:
        return items

    def _has_more(self, payload: Dict[str, Any], page: int, limit: int, total: int) -> bool:
        return page * limit < total

    # ==================== 内部工具 ====================

    def _request_json(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        required_fields: Tuple[str, ...] = ()
    ) -> Optional[Dict[str, Any]]:
        """
        发起 GET 请求并验证响应

        Returns:
            验证通过的字典；空响应或缺字段时为 None

        Raises:
            ProviderError: 传输失败或 HTTP 错误状态
        """
        url = path if path.startswith("http") else f"{self.BASE_URL}{path}"
        try:
            response = self.session.get(
                url,
                params=params,
                headers=self._auth_headers(),
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            error = ErrorHandler.wrap_provider_exception(self.NAME, e, self.timeout)
            logger.error(f"[{self.NAME}] 请求失败: {error.message}")
            raise error

        self._record_rate_limit(response.headers)

        if response.status_code >= 400:
            error = ProviderError.from_http_status(self.NAME, response.status_code, response.text or "")
            logger.error(f"[{self.NAME}] HTTP {response.status_code}: {error.message}")
            raise error

        return self.validator.parse_and_validate(response.text, required_fields, self.NAME)

    def _record_rate_limit(self, headers: Any) -> None:
        """记录限流响应头（X-Ratelimit-*）"""
        if not headers:
            return

        def header_int(name: str) -> Optional[int]:
            value = headers.get(name)
            if value is None:
                return None
            try:
                return int(value)
            except (TypeError, ValueError):
                return None

        limit = header_int("X-Ratelimit-Limit")
        remaining = header_int("X-Ratelimit-Remaining")
        if limit is None and remaining is None:
            return

        self.rate_limit_state = RateLimitState(
            provider=self.NAME,
            requests_made=limit - remaining if limit is not None and remaining is not None else None,
            requests_remaining=remaining,
            reset_time=header_int("X-Ratelimit-Reset"),
            updated_at=time.time(),
        )

    def _transform_items(self, raw_items: List[Dict[str, Any]]) -> List[MediaItem]:
        items = []
        for raw in raw_items:
            try:
                item = self._transform_item(raw)
            except (KeyError, TypeError, ValueError, OverflowError) as e:
                logger.warning(f"[{self.NAME}] 条目转换失败，已跳过: {e}")
                continue
            if item is None:
                continue
            if not self.validator.validate_url(item.url):
                logger.warning(f"[{self.NAME}] 条目 {item.id} 的 URL 无效，已跳过")
                continue
            items.append(item)
        return items

    def requires_auth(self, field: str, url: str) -> bool:
        """判断 URL 是否需要平台凭证"""
        flag = self.AUTH_REQUIRED_FIELDS.get(field)
        if flag is not None:
            return flag
        lowered = url.lower()
        return not any(marker in lowered for marker in self.PUBLIC_URL_MARKERS)

    def auth_headers_for(self, url: str) -> Dict[str, str]:
        """代理转发时使用：目标属于本平台 API 域名时返回认证头"""
        if not self.is_configured():
            return {}
        host = urlparse(url).hostname
        if host and host == urlparse(self.BASE_URL).hostname:
            return self._auth_headers()
        return {}

    def serves_host(self, url: str) -> bool:
        """目标地址是否属于本平台的素材域名（精确匹配或子域名）"""
        host = (urlparse(url).hostname or "").lower().rstrip(".")
        if not host:
            return False
        return any(host == domain or host.endswith("." + domain) for domain in self.ASSET_DOMAINS)

    def _resolve_asset_url(self, url: Optional[str], field: str) -> Optional[str]:
        """需要凭证的 URL 改写为代理地址，公开 URL 原样返回"""
        url = self.validator.validate_url(url)
        if not url:
            return None
        if self.requires_auth(field, url):
            return encode_proxy_url(url, self.public_base_url)
        return url

    def _empty_result(self, page: int, limit: int) -> SearchResult:
        return SearchResult(items=(), total=0, page=page, limit=limit, has_more=False, providers=(self.NAME,))
