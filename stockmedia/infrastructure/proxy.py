"""
素材代理地址 - 需要平台凭证的 URL 改写为内部代理路径
"""

from typing import Optional
import base64
import binascii


PROXY_PATH = "/api/media/proxy/"
DEFAULT_PUBLIC_BASE_URL = "http://localhost:8000"


def encode_proxy_token(url: str) -> str:
    """URL 安全的 base64 编码（去掉填充）"""
    return base64.urlsafe_b64encode(url.encode("utf-8")).decode("ascii").rstrip("=")


def decode_proxy_token(token: str) -> Optional[str]:
    """
    解码代理令牌

    同时接受标准 base64 和 URL 安全 base64，填充可省略。

    Returns:
        原始 URL；令牌无效时返回 None
    """
    if not token:
        return None
    padded = token + "=" * (-len(token) % 4)
    try:
        return base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8")
    except (binascii.Error, ValueError):
        return None


def encode_proxy_url(url: str, public_base_url: str = "") -> str:
    """
    生成代理地址

    Args:
        url: 需要凭证才能访问的原始地址
        public_base_url: 本服务对外地址，如 http://localhost:8000

    Returns:
        {public_base_url}/api/media/proxy/{token}
    """
    return f"{public_base_url.rstrip('/')}{PROXY_PATH}{encode_proxy_token(url)}"
