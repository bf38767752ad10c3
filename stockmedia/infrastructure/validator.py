"""
响应验证器 - 防御性解析第三方 JSON

提供：
- 安全 JSON 解码与必需字段检查
- 点路径字段提取与类型转换
- 字符串清洗（防止存储型 XSS）
- URL 校验
- 条目数组过滤（单个坏条目不影响整页结果）
"""

from typing import Any, Dict, Iterable, List, Optional, Sequence, Union
from urllib.parse import urlparse
import html
import json
import logging
import math
import re

from stockmedia.infrastructure.errors import ProviderError


logger = logging.getLogger(__name__)

_MISSING = object()


class ResponseValidator:
    """
    第三方响应验证器

    所有来自素材平台的数据都先经过这里，
    保证进入系统的字段类型正确且不含可执行内容。
    """

    # 允许保留的行内格式标签
    ALLOWED_TAGS = ("strong", "em", "b", "i", "u", "br", "p")

    BLOCK_PATTERN = re.compile(r"<(script|style)\b[^>]*>.*?(</\1\s*>|$)", re.IGNORECASE | re.DOTALL)
    TAG_PATTERN = re.compile(r"</?\s*([a-zA-Z][a-zA-Z0-9]*)\b[^>]*>")
    DANGEROUS_SCHEME_PATTERN = re.compile(r"(javascript|data)\s*:", re.IGNORECASE)
    CONTROL_CHAR_PATTERN = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")

    TRUE_STRINGS = ("true", "1", "yes", "on")
    FALSE_STRINGS = ("false", "0", "no", "off", "")

    # ==================== 解析 ====================

    def parse_and_validate(
        self,
        body: Union[str, bytes, None],
        required_fields: Sequence[str],
        provider: str = "unknown"
    ) -> Optional[Dict[str, Any]]:
        """
        解码并验证响应体

        Args:
            body: 原始响应体
            required_fields: 必需字段（支持点路径，如 "links.download"）
            provider: 平台名称

        Returns:
            验证通过的字典；空响应或缺少必需字段时返回 None

        Raises:
            ProviderError: JSON 解码失败或顶层不是对象（INVALID_RESPONSE）
        """
        if isinstance(body, bytes):
            try:
                body = body.decode("utf-8")
            except UnicodeDecodeError as e:
                raise ProviderError.invalid_response(provider, f"响应编码错误: {e}")

        if body is None or not body.strip():
            logger.warning(f"[{provider}] 响应体为空")
            return None

        try:
            data = json.loads(body)
        except ValueError as e:
            logger.error(f"[{provider}] JSON 解析失败: {e}")
            raise ProviderError.invalid_response(provider, f"JSON 解析失败: {e}")

        if not isinstance(data, dict):
            raise ProviderError.invalid_response(provider, f"期望 JSON 对象，实际为 {type(data).__name__}")

        missing = [path for path in required_fields if not self.has_field(data, path)]
        if missing:
            logger.warning(f"[{provider}] 响应缺少必需字段: {', '.join(missing)}")
            return None

        return data

    # ==================== 字段提取 ====================

    def _lookup(self, data: Any, path: str) -> Any:
        current = data
        for segment in path.split("."):
            if not isinstance(current, dict) or segment not in current:
                return _MISSING
            current = current[segment]
        return current

    def has_field(self, data: Any, path: str) -> bool:
        """点路径字段是否存在"""
        return self._lookup(data, path) is not _MISSING

    def extract_field(self, data: Any, path: str, default: Any = None) -> Any:
        """按点路径取值，任何一段缺失或不是字典时返回默认值"""
        value = self._lookup(data, path)
        return default if value is _MISSING or value is None else value

    def extract_string(
        self,
        data: Any,
        path: str,
        default: Optional[str] = "",
        sanitize: bool = True
    ) -> Optional[str]:
        """提取字符串字段，数字会被转为字符串"""
        value = self.extract_field(data, path)
        if isinstance(value, bool):
            return default
        if isinstance(value, (int, float)):
            value = str(value)
        if not isinstance(value, str):
            return default
        return self.sanitize_string(value) if sanitize else value.strip()

    def extract_int(self, data: Any, path: str, default: Optional[int] = 0) -> Optional[int]:
        """提取整数字段"""
        value = self.extract_field(data, path)
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, int):
            return value
        if isinstance(value, str):
            try:
                value = float(value.strip())
            except ValueError:
                return default
        if isinstance(value, float):
            # inf / nan 无法转为整数
            if not math.isfinite(value):
                return default
            try:
                return int(value)
            except OverflowError:
                return default
        return default

    def extract_float(self, data: Any, path: str, default: Optional[float] = 0.0) -> Optional[float]:
        """提取浮点数字段"""
        value = self.extract_field(data, path)
        if isinstance(value, bool):
            return float(value)
        if isinstance(value, str):
            try:
                value = float(value.strip())
            except ValueError:
                return default
        if isinstance(value, (int, float)):
            try:
                value = float(value)
            except OverflowError:
                return default
            return value if math.isfinite(value) else default
        return default

    def extract_bool(self, data: Any, path: str, default: bool = False) -> bool:
        """提取布尔字段，支持 "true"/"1"/"yes" 等字符串"""
        value = self.extract_field(data, path)
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return value != 0
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in self.TRUE_STRINGS:
                return True
            if lowered in self.FALSE_STRINGS:
                return False
        return default

    def extract_list(self, data: Any, path: str, default: Optional[List[Any]] = None) -> List[Any]:
        """提取数组字段"""
        value = self.extract_field(data, path)
        if isinstance(value, list):
            return value
        return list(default) if default is not None else []

    def extract_mapping(self, data: Any, path: str, default: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """提取对象字段"""
        value = self.extract_field(data, path)
        if isinstance(value, dict):
            return value
        return dict(default) if default is not None else {}

    def extract_url(self, data: Any, path: str) -> Optional[str]:
        """提取并校验 URL 字段（不做 HTML 转义，保留查询参数）"""
        value = self.extract_field(data, path)
        return self.validate_url(value) if isinstance(value, str) else None

    def extract_items(
        self,
        data: Any,
        field: str,
        required_item_fields: Sequence[str] = ()
    ) -> List[Dict[str, Any]]:
        """
        提取条目数组并过滤掉不完整的条目

        Args:
            data: 已解析的响应
            field: 数组字段路径
            required_item_fields: 每个条目的必需字段

        Returns:
            合格条目列表
        """
        items = self.extract_list(data, field)
        valid = []
        dropped = 0
        for item in items:
            if not isinstance(item, dict):
                dropped += 1
                continue
            if any(not self.has_field(item, path) for path in required_item_fields):
                dropped += 1
                continue
            valid.append(item)

        if dropped:
            logger.warning(f"字段 '{field}' 中有 {dropped} 个条目不完整，已跳过")
        return valid

    # ==================== 清洗与校验 ====================

    def sanitize_string(self, value: Any) -> str:
        """
        清洗第三方文本

        移除 script/style 块和非白名单标签，HTML 转义剩余内容，
        并反复移除 javascript:/data: 协议直到不再出现。
        """
        if value is None:
            return ""
        text = str(value)
        text = self.CONTROL_CHAR_PATTERN.sub("", text)
        text = self.BLOCK_PATTERN.sub("", text)
        text = self.TAG_PATTERN.sub(
            lambda m: m.group(0) if m.group(1).lower() in self.ALLOWED_TAGS else "",
            text,
        )
        text = html.escape(text, quote=True)

        previous = None
        while previous != text:
            previous = text
            text = self.DANGEROUS_SCHEME_PATTERN.sub("", text)

        return text.strip()

    def validate_url(self, url: Any) -> Optional[str]:
        """只接受带主机名的 http/https URL"""
        if not isinstance(url, str):
            return None
        url = url.strip()
        if not url or any(ch.isspace() for ch in url):
            return None
        try:
            parsed = urlparse(url)
            hostname = parsed.hostname
        except ValueError:
            return None
        if parsed.scheme.lower() not in ("http", "https") or not hostname:
            return None
        return url

    def normalize_tags(
        self,
        candidates: Iterable[Any],
        min_length: int = 2,
        max_length: int = 30
    ) -> List[str]:
        """
        标签归一化：清洗、小写、去重、按长度过滤

        Args:
            candidates: 候选标签
            min_length: 最短长度
            max_length: 最长长度

        Returns:
            保持原始顺序的标签列表
        """
        tags = []
        seen = set()
        for candidate in candidates:
            if not isinstance(candidate, (str, int, float)) or isinstance(candidate, bool):
                continue
            tag = self.sanitize_string(candidate).lower()
            if not (min_length <= len(tag) <= max_length) or tag in seen:
                continue
            seen.add(tag)
            tags.append(tag)
        return tags
