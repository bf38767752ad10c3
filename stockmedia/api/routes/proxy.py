"""
素材代理路由 - 转发需要平台凭证的素材地址

前端拿到的 /api/media/proxy/{token} 中，token 是原始地址的 base64url 编码。
只转发已注册平台素材域名下的地址，并拒绝非 http(s) 地址和指向本机/内网的地址。
上游重定向由本路由逐跳跟随，每一跳都重新做同样的检查。
"""

from urllib.parse import urljoin

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask
import logging

import requests

from stockmedia.api.dependencies import (
    Settings,
    get_coordinator,
    get_proxy_auth_headers,
    get_proxy_session,
    get_settings,
    is_proxy_allowed,
)
from stockmedia.infrastructure.proxy import decode_proxy_token
from stockmedia.infrastructure.security import is_safe_url
from stockmedia.orchestrator import StockMediaCoordinator


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/media/proxy", tags=["Proxy"])

CHUNK_SIZE = 64 * 1024
DEFAULT_CACHE_CONTROL = "public, max-age=86400"
REDIRECT_STATUSES = (301, 302, 303, 307, 308)
MAX_REDIRECTS = 3


def _check_target(url: str, coordinator: StockMediaCoordinator) -> None:
    if not is_proxy_allowed(url, coordinator):
        logger.warning(f"拒绝代理白名单外的地址: {url}")
        raise HTTPException(status_code=403, detail="目标域名不在代理白名单中")
    if not is_safe_url(url):
        logger.warning(f"拒绝代理不安全的地址: {url}")
        raise HTTPException(status_code=403, detail="目标地址不允许代理")


@router.get("/{token}", summary="素材代理", include_in_schema=False)
def proxy_media(
    token: str,
    session: requests.Session = Depends(get_proxy_session),
    coordinator: StockMediaCoordinator = Depends(get_coordinator),
    settings: Settings = Depends(get_settings),
):
    """流式转发原始地址的内容"""
    url = decode_proxy_token(token)
    if not url:
        raise HTTPException(status_code=400, detail="无效的代理令牌")

    for _ in range(MAX_REDIRECTS + 1):
        _check_target(url, coordinator)

        # 认证头按每一跳的目标重新计算，凭证不会带到其他域名
        headers = get_proxy_auth_headers(url, coordinator)
        try:
            upstream = session.get(
                url,
                headers=headers,
                stream=True,
                timeout=settings.PROXY_TIMEOUT,
                allow_redirects=False,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"代理请求失败: {url} - {e}")
            raise HTTPException(status_code=502, detail="上游素材请求失败")

        if upstream.status_code not in REDIRECT_STATUSES:
            break

        location = upstream.headers.get("Location")
        upstream.close()
        if not location:
            logger.warning(f"代理上游重定向缺少 Location: {url}")
            raise HTTPException(status_code=502, detail="上游重定向无效")
        url = urljoin(url, location)
    else:
        logger.warning(f"代理上游重定向超过 {MAX_REDIRECTS} 次: {url}")
        raise HTTPException(status_code=502, detail="上游重定向次数过多")

    if upstream.status_code >= 400:
        upstream.close()
        logger.warning(f"代理上游返回 HTTP {upstream.status_code}: {url}")
        status_code = 404 if upstream.status_code == 404 else 502
        raise HTTPException(status_code=status_code, detail=f"上游返回 HTTP {upstream.status_code}")

    response_headers = {"Cache-Control": upstream.headers.get("Cache-Control") or DEFAULT_CACHE_CONTROL}
    content_length = upstream.headers.get("Content-Length")
    if content_length:
        response_headers["Content-Length"] = content_length

    return StreamingResponse(
        upstream.iter_content(chunk_size=CHUNK_SIZE),
        media_type=upstream.headers.get("Content-Type", "application/octet-stream"),
        headers=response_headers,
        background=BackgroundTask(upstream.close),
    )
