"""structlog 配置模块 -- CLI 日志输出到 stderr，stdout 只留给命令结果

dev 模式：可读输出，仅在终端中着色
json 模式：结构化 JSON 输出，便于脚本收集
"""

import logging
import os
import sys

import structlog

LOG_FORMATS = ("dev", "json")


def _resolve_level(debug: bool) -> tuple[int, str | None]:
    """返回 (日志级别, 无法识别的原始配置值)"""
    if debug:
        return logging.DEBUG, None
    raw = os.environ.get("TASKMASTER_LOG_LEVEL", "INFO")
    level = logging.getLevelNamesMapping().get(raw.strip().upper())
    if level is None:
        return logging.INFO, raw
    return level, None


def setup_logging(debug: bool = False, command: str | None = None) -> None:
    """初始化 structlog 配置

    Args:
        debug: 调试模式下日志级别降为 DEBUG，忽略 TASKMASTER_LOG_LEVEL
        command: 当前 CLI 命令，绑定到本次调用的每条日志
    """
    raw_format = os.environ.get("TASKMASTER_LOG_FORMAT", "dev")
    log_format = raw_format.strip().lower()
    level, invalid_level = _resolve_level(debug)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == "json":
        renderer = structlog.processors.JSONRenderer(ensure_ascii=False)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=shared_processors,
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # httpx 每个请求都会打 INFO 日志
    logging.getLogger("httpx").setLevel(logging.WARNING)

    structlog.contextvars.clear_contextvars()
    if command:
        structlog.contextvars.bind_contextvars(command=command)

    log = structlog.get_logger()
    if log_format not in LOG_FORMATS:
        log.warning("unknown_log_format", value=raw_format, fallback="dev")
    if invalid_level is not None:
        log.warning("invalid_log_level", value=invalid_level, fallback="INFO")
