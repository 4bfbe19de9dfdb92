"""structlog 配置模块

dev 模式：ConsoleRenderer 可读输出
json 模式：每行一个 JSON 对象，便于日志采集
标准库 logging（uvicorn、aiosqlite）经 ProcessorFormatter 桥接到同一渲染器。
Logfire APM 由 LOGFIRE_SEND_TO_LOGFIRE 控制，未安装或初始化失败时仅保留本地日志。
"""

import logging
import os

import structlog


def setup_logging() -> None:
    """初始化 structlog 配置

    环境变量：
    - CHATLINE_LOG_FORMAT: "json" 或 "dev"（默认）
    - CHATLINE_LOG_LEVEL: 标准库日志级别名，默认 INFO
    """
    log_format = os.environ.get("CHATLINE_LOG_FORMAT", "dev")
    log_level = os.environ.get("CHATLINE_LOG_LEVEL", "INFO")

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer(
            ensure_ascii=False
        )
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=shared_processors,
    )
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def setup_logfire(app=None) -> bool:
    """Logfire 可选初始化

    LOGFIRE_SEND_TO_LOGFIRE=true 时启用（需要 apm extra 与 LOGFIRE_TOKEN）。

    Returns:
        是否已启用 Logfire
    """
    if os.environ.get("LOGFIRE_SEND_TO_LOGFIRE", "false").lower() != "true":
        return False
    try:
        import logfire

        logfire.configure(service_name="chatline")
        if app is not None:
            logfire.instrument_fastapi(app)
    except Exception as e:
        structlog.get_logger().warning(
            "logfire_init_failed",
            error_type=type(e).__name__,
            message="Logfire 初始化失败，仅保留本地日志",
        )
        return False
    return True
