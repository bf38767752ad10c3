"""
错误处理 - 统一错误定义和处理

提供：
- 业务异常类层次
- 平台错误工厂方法（按 HTTP 状态码归类）
- requests 异常到 ProviderError 的转换
"""

from typing import Optional, Dict, Any
import logging

import requests

from stockmedia.domain.models import ErrorKind


logger = logging.getLogger(__name__)


# ==================== 异常类层次 ====================

class StockMediaError(Exception):
    """素材服务基础异常"""

    def __init__(
        self,
        message: str,
        error_code: ErrorKind = ErrorKind.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典"""
        return {
            "error_code": self.error_code.value,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(StockMediaError):
    """输入验证错误"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(
            message=message,
            error_code=ErrorKind.INVALID_INPUT,
            details={"field": field} if field else {}
        )


class ProviderError(StockMediaError):
    """
    素材平台错误

    携带平台名称、错误类型、HTTP 状态码和上下文信息。
    """

    def __init__(
        self,
        provider: str,
        kind: ErrorKind,
        message: Optional[str] = None,
        http_status: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        self.provider = provider
        self.kind = kind
        self.http_status = http_status
        self.context = dict(context or {})
        details = {"provider": provider, "http_status": http_status, **self.context}
        super().__init__(
            message=message or f"素材平台 '{provider}' 请求失败（{kind.value}）",
            error_code=kind,
            details=details,
        )

    # ---------- 工厂方法 ----------

    @classmethod
    def rate_limit_exceeded(cls, provider: str, retry_after: Optional[int] = None) -> "ProviderError":
        message = f"素材平台 '{provider}' 请求频率超限"
        if retry_after:
            message += f"，请在 {retry_after} 秒后重试"
        return cls(provider, ErrorKind.RATE_LIMIT_EXCEEDED, message, 429, {"retry_after": retry_after})

    @classmethod
    def authentication_failed(cls, provider: str) -> "ProviderError":
        return cls(provider, ErrorKind.AUTHENTICATION_FAILED, f"素材平台 '{provider}' 认证失败，请检查 API Key", 401)

    @classmethod
    def quota_exceeded(cls, provider: str) -> "ProviderError":
        return cls(provider, ErrorKind.QUOTA_EXCEEDED, f"素材平台 '{provider}' 配额已用尽", 403)

    @classmethod
    def timeout(cls, provider: str, timeout_seconds: Optional[float] = None) -> "ProviderError":
        message = f"素材平台 '{provider}' 请求超时"
        if timeout_seconds:
            message += f"（{timeout_seconds}秒）"
        return cls(provider, ErrorKind.TIMEOUT, message, 408, {"timeout": timeout_seconds})

    @classmethod
    def service_unavailable(cls, provider: str, http_status: int = 503, reason: Optional[str] = None) -> "ProviderError":
        message = f"素材平台 '{provider}' 暂时不可用"
        if reason:
            message += f": {reason}"
        return cls(provider, ErrorKind.SERVICE_UNAVAILABLE, message, http_status)

    @classmethod
    def invalid_response(cls, provider: str, reason: str) -> "ProviderError":
        return cls(provider, ErrorKind.INVALID_RESPONSE, f"素材平台 '{provider}' 返回了无效响应: {reason}", None, {"reason": reason})

    @classmethod
    def no_provider_for_type(cls, media_type: str) -> "ProviderError":
        return cls("none", ErrorKind.NO_PROVIDER_FOR_TYPE, f"没有可用的素材平台支持类型 '{media_type}'", None, {"media_type": media_type})

    @classmethod
    def from_http_status(cls, provider: str, status_code: int, body: str = "") -> "ProviderError":
        """根据 HTTP 状态码构造错误"""
        if status_code == 401:
            return cls.authentication_failed(provider)
        if status_code == 403:
            return cls.quota_exceeded(provider)
        if status_code == 408:
            return cls.timeout(provider)
        if status_code == 429:
            return cls.rate_limit_exceeded(provider)
        if status_code >= 500:
            return cls.service_unavailable(provider, status_code)
        return cls(
            provider,
            ErrorKind.REQUEST_FAILED,
            f"素材平台 '{provider}' 请求失败（HTTP {status_code}）",
            status_code,
            {"body": body[:200]} if body else {},
        )


# ==================== 错误处理工具 ====================

class ErrorHandler:
    """错误处理器"""

    @staticmethod
    def wrap_provider_exception(
        provider: str,
        e: Exception,
        timeout_seconds: Optional[float] = None
    ) -> ProviderError:
        """
        将传输层异常转换为 ProviderError

        Args:
            provider: 平台名称
            e: 原始异常
            timeout_seconds: 请求超时设置

        Returns:
            ProviderError: 标准化的错误
        """
        if isinstance(e, ProviderError):
            return e

        # ConnectTimeout 同时是 ConnectionError，需先判断超时
        if isinstance(e, requests.exceptions.Timeout):
            return ProviderError.timeout(provider, timeout_seconds)

        if isinstance(e, requests.exceptions.ConnectionError):
            return ProviderError.service_unavailable(provider, 503, str(e))

        if isinstance(e, requests.exceptions.HTTPError) and e.response is not None:
            return ProviderError.from_http_status(provider, e.response.status_code)

        return ProviderError(
            provider,
            ErrorKind.REQUEST_FAILED,
            f"素材平台 '{provider}' 请求失败: {e}",
            None,
            {"original_type": type(e).__name__},
        )
