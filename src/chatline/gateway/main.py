"""FastAPI 应用主文件

app 创建 + lifespan 管理：DB 初始化/关闭 + PushHub 初始化 + 路由注册。
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from chatline.core.config import get_db_path
from chatline.core.exceptions import MessagingError
from chatline.core.store import create_store_group
from fastapi import FastAPI, Request
from starlette.responses import JSONResponse

from .middleware.logging_config import setup_logfire, setup_logging
from .middleware.logging_mw import LoggingMiddleware
from .middleware.trace_mw import TraceMiddleware
from .routes import health, messages, stream
from .services.push_hub import PushHub

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理：启动时初始化 DB 与 PushHub，关闭时清理连接"""
    db_path = get_db_path()
    app.state.store_group = await create_store_group(db_path)
    app.state.push_hub = PushHub()
    await log.ainfo("gateway_started", db_path=db_path)

    yield

    if getattr(app.state, "store_group", None):
        await app.state.store_group.conn.close()
    await log.ainfo("gateway_stopped")


async def messaging_error_handler(request: Request, exc: MessagingError) -> JSONResponse:
    """MessagingError -> {"error": {"code", "message"}}"""
    if exc.status_code >= 500:
        await log.aerror("request_failed", code=exc.code, error=exc.message)
    else:
        await log.ainfo("request_rejected", code=exc.code, status_code=exc.status_code)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": {"code": exc.code, "message": exc.message}},
    )


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="Chatline Gateway",
        version="0.1.0",
        description="一对一私信 API 与实时推送",
        lifespan=lifespan,
    )

    # 注册中间件（先 Trace 后 Logging，Logging 位于最外层）
    app.add_middleware(TraceMiddleware)
    app.add_middleware(LoggingMiddleware)
    app.add_exception_handler(MessagingError, messaging_error_handler)

    setup_logging()
    setup_logfire(app)

    app.include_router(messages.router, tags=["messages"])
    app.include_router(stream.router, tags=["stream"])
    app.include_router(health.router, tags=["health"])

    return app


# 默认 app 实例（uvicorn 入口）
app = create_app()
