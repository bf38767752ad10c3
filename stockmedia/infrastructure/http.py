"""
HTTP 传输 - 带重试的共享 requests 会话
"""

from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry


DEFAULT_USER_AGENT = "stockmedia/1.0"

_HTTP_SESSION: Optional[requests.Session] = None


def create_http_session(
    retries: int = 3,
    backoff_factor: float = 0.3,
    pool_size: int = 10
) -> requests.Session:
    """
    创建带重试的会话

    429/5xx 会按退避重试，但最终状态码仍返回给调用方，
    由适配器统一转换为 ProviderError。
    """
    retry = Retry(
        total=retries,
        backoff_factor=backoff_factor,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["GET", "HEAD"],
        raise_on_status=False,
        respect_retry_after_header=False,
    )
    adapter = HTTPAdapter(max_retries=retry, pool_connections=pool_size, pool_maxsize=pool_size)
    session = requests.Session()
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    session.headers.update({"User-Agent": DEFAULT_USER_AGENT})
    return session


def get_http_session() -> requests.Session:
    """获取进程内共享会话"""
    global _HTTP_SESSION
    if _HTTP_SESSION is None:
        _HTTP_SESSION = create_http_session()
    return _HTTP_SESSION
