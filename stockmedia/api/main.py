"""
Stock Media API - 主应用入口

聚合多个素材平台的检索服务。

特性：
- 按类型路由到素材平台（照片/视频/图标/形状）
- 多类型并行检索与确定性合并
- 检索结果缓存
- 需要凭证的素材地址代理
- 完整的错误处理
- 可观测性支持
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import time
import logging

from stockmedia.api.routes import health_router, media_router, metrics_router, proxy_router
from stockmedia.api.dependencies import get_settings, get_service_container
from stockmedia.api.schemas import ErrorResponse
from stockmedia.domain.models import ErrorKind
from stockmedia.infrastructure.errors import StockMediaError
from stockmedia.infrastructure.logging import setup_logging
from stockmedia.infrastructure.security import SecurityHeadersMiddleware


logger = logging.getLogger(__name__)


# 错误类型到 HTTP 状态码
ERROR_STATUS_CODES = {
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.NO_PROVIDER_FOR_TYPE: 404,
    ErrorKind.RATE_LIMIT_EXCEEDED: 429,
    ErrorKind.TIMEOUT: 504,
    ErrorKind.SERVICE_UNAVAILABLE: 503,
    ErrorKind.AUTHENTICATION_FAILED: 503,
    ErrorKind.QUOTA_EXCEEDED: 503,
    ErrorKind.INVALID_RESPONSE: 502,
    ErrorKind.MISSING_REQUIRED_FIELDS: 502,
    ErrorKind.REQUEST_FAILED: 502,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    settings = get_settings()
    setup_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON, log_file=settings.LOG_FILE)

    # 启动时初始化
    logger.info("Stock Media API 正在启动...")

    # 预热服务容器
    try:
        get_service_container()
        logger.info("服务容器初始化完成")
    except Exception as e:
        logger.error(f"服务容器初始化失败: {e}")

    yield

    # 关闭时清理
    logger.info("Stock Media API 正在关闭...")


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    settings = get_settings()

    app = FastAPI(
        title=settings.APP_NAME,
        description="""
# Stock Media API

聚合 Unsplash、Pexels、Iconfinder 和本地形状库的素材检索 API。

## 素材类型

- `image`：Unsplash 照片
- `video`：Pexels 视频
- `icon`：Iconfinder 图标
- `shape`：本地矢量形状

## 快速开始

```python
import requests

response = requests.get(
    "http://localhost:8000/api/media/stock/search",
    params={"query": "mountain", "type": "image", "limit": 10}
)
print(response.json()["items"])
```
        """,
        version=settings.APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # CORS 中间件
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 安全头中间件
    app.add_middleware(SecurityHeadersMiddleware)

    # 请求日志中间件
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()

        # 生成请求 ID
        request_id = request.headers.get("X-Request-ID", str(time.time()))

        # 记录请求
        logger.info(f"[{request_id}] {request.method} {request.url.path}")

        try:
            response = await call_next(request)

            # 记录响应
            duration = (time.time() - start_time) * 1000
            logger.info(
                f"[{request_id}] 完成 {response.status_code} - {duration:.2f}ms"
            )

            # 添加响应头
            response.headers["X-Request-ID"] = request_id
            response.headers["X-Response-Time"] = f"{duration:.2f}ms"

            return response

        except Exception as e:
            duration = (time.time() - start_time) * 1000
            logger.error(
                f"[{request_id}] 错误 - {duration:.2f}ms - {str(e)}"
            )
            raise

    # 业务异常处理
    @app.exception_handler(StockMediaError)
    async def stock_media_exception_handler(request: Request, exc: StockMediaError):
        status_code = ERROR_STATUS_CODES.get(exc.error_code, 500)
        logger.warning(f"请求失败 {status_code}: {exc.message}")
        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(
                success=False,
                error_code=exc.error_code.value,
                error_message=exc.message,
                details=exc.details,
                request_id=request.headers.get("X-Request-ID"),
            ).model_dump(mode="json"),
        )

    # 全局异常处理
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"未处理的异常: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                success=False,
                error_code="internal_error",
                error_message="服务器内部错误，请稍后重试",
            ).model_dump(mode="json"),
        )

    # 注册路由
    app.include_router(health_router)
    app.include_router(media_router)
    app.include_router(proxy_router)
    app.include_router(metrics_router)

    return app


# 创建应用实例
app = create_app()


def main():
    """命令行入口"""
    import uvicorn
    settings = get_settings()
    uvicorn.run(
        "stockmedia.api.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )


if __name__ == "__main__":
    main()
