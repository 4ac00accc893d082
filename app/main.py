"""
app.main
~~~~~~~~

FastAPI 应用入口 —— 注册路由、挂载中间件、定义生命周期。
"""
from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api import media_endpoints, offline_cache, relay_ws
from app.core.exceptions import MediaBackendError
from app.core.logging import get_logger, setup_logging
from app.core.rate_limit import limiter
from app.core.settings import settings
from app.schemas.api_response import ApiResponse
from app.services.media_backend import YouTubeBackend
from app.services.relay_system import RelaySystem

# 初始化日志系统（必须在其他模块之前）
setup_logging()
logger = get_logger(__name__)


# ── 生命周期 ──────────────────────────────────────────────────────────

def _log_unhandled_async_error(loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
    """记录未被任何协程处理的异步异常，进程继续运行。"""
    exc = context.get("exception")
    logger.error("未处理的异步异常: %s", context.get("message"), exc_info=exc)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期钩子，仅在 worker 启动/关闭时各执行一次。"""
    # ── 启动 ──
    asyncio.get_running_loop().set_exception_handler(_log_unhandled_async_error)

    app.state.relay_system = RelaySystem(
        admin_secret=settings.ADMIN_SECRET,
        rate_limit_interval=settings.WS_RATE_LIMIT_INTERVAL,
    )
    try:
        app.state.media_backend = YouTubeBackend()
    except Exception as e:
        # 后端初始化失败不影响聊天中继，代理接口返回 503
        logger.error("视频后端初始化失败: %s", e, exc_info=True)
        app.state.media_backend = None

    logger.info(
        "🚀 应用已启动 | env=%s | debug=%s | log_level=%s | ytdlp=%s",
        settings.ENVIRONMENT,
        settings.debug,
        settings.effective_log_level,
        app.state.media_backend is not None,
    )
    yield
    # ── 关闭 ──
    if app.state.media_backend is not None:
        await app.state.media_backend.aclose()
    logger.info("👋 应用已关闭")


# ── 创建 FastAPI 实例 ─────────────────────────────────────────────────

app: FastAPI = FastAPI(
    title=settings.PROJECT_NAME,
    description="房间聊天中继 + 视频代理",
    version=settings.VERSION,
    debug=settings.debug,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

if settings.allow_cors_all_origins:
    # dev / test 环境：允许所有来源，方便本地调试
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
else:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

# ── 路由挂载 ──────────────────────────────────────────────────────────
app.include_router(media_endpoints.router, prefix="/api", tags=["Video Proxy"])
app.include_router(relay_ws.router, tags=["Chat Relay"])
app.include_router(offline_cache.router, tags=["Static"])


# ── 异常处理器 ────────────────────────────────────────────────────────

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """4xx / 5xx 业务错误统一包装为 ``ApiResponse.fail()``。"""
    response = ApiResponse.fail(msg=str(exc.detail), code=exc.status_code)
    return JSONResponse(status_code=exc.status_code, content=response.model_dump(), headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """参数校验失败统一按 400 返回，只给出第一处错误。"""
    errors = exc.errors()
    first = errors[0] if errors else {}
    loc = ".".join(str(part) for part in first.get("loc", ()))
    response = ApiResponse.fail(msg=f"参数无效: {loc} {first.get('msg', '')}".strip(), code=400)
    return JSONResponse(status_code=400, content=response.model_dump())


@app.exception_handler(MediaBackendError)
async def media_backend_exception_handler(request: Request, exc: MediaBackendError) -> JSONResponse:
    """外部依赖错误：503（未就绪）或 502（超时 / 调用失败），只返回通用提示。"""
    logger.warning("外部依赖错误: %s %s -> %s(%s)", request.method, request.url.path, type(exc).__name__, exc)
    response = ApiResponse.fail(msg=exc.public_message, code=exc.status_code)
    return JSONResponse(status_code=exc.status_code, content=response.model_dump())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """捕获所有未处理异常，返回统一的 ApiResponse.fail() 格式。"""
    logger.error("未捕获异常: %s %s -> %s", request.method, request.url, exc, exc_info=True)
    # 非 prod 环境返回详细错误信息，prod 环境隐藏内部细节
    detail = str(exc) if not settings.is_prod else "服务器内部错误"
    response = ApiResponse.fail(msg=detail, code=500, data=None)
    return JSONResponse(status_code=500, content=response.model_dump())


# 静态资源最后挂载，避免覆盖上面的路由
if Path(settings.STATIC_DIR).is_dir():
    app.mount("/", StaticFiles(directory=settings.STATIC_DIR, html=True), name="static")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.reload,  # 仅 dev 环境开启热重载
        log_level=settings.effective_log_level.lower(),
    )
