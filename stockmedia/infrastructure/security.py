"""
安全中间件 - 基本安全防护

提供：
- 安全头设置
- 代理目标地址的 SSRF 检查
"""

from typing import Callable
from urllib.parse import urlparse
import ipaddress
import socket

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    安全头中间件

    添加基本的安全响应头。
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        # 检索接口不缓存，代理的素材由上游缓存头决定
        if request.url.path.startswith("/api/media/stock"):
            response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate"

        return response


BLOCKED_HOSTS = {"localhost", "127.0.0.1", "0.0.0.0", "::1"}


def _is_public_ip(address: str) -> bool:
    try:
        ip = ipaddress.ip_address(address.split("%", 1)[0])
    except ValueError:
        return False
    return not (ip.is_private or ip.is_loopback or ip.is_link_local or ip.is_reserved or ip.is_multicast)


def _is_ip_literal(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


def is_safe_url(url: str, resolve: bool = True) -> bool:
    """
    检查代理目标是否安全

    只允许 http/https，拒绝本机、内网及保留地址。

    Args:
        url: 目标地址
        resolve: 是否解析域名后检查 IP
    """
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    if parsed.scheme not in ("http", "https"):
        return False
    host = parsed.hostname
    if not host:
        return False
    lowered = host.lower()
    if lowered in BLOCKED_HOSTS:
        return False
    if lowered.endswith(".local") or lowered.endswith(".internal"):
        return False
    if _is_ip_literal(lowered):
        return _is_public_ip(lowered)
    if not resolve:
        return True
    try:
        infos = socket.getaddrinfo(host, None)
    except (socket.gaierror, UnicodeError):
        return False
    return all(_is_public_ip(str(info[4][0])) for info in infos)
