from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from structlog.types import Processor

SERVICE_NAME = "web3-tx-guard"

# 敏感字段（Etherscan 的 key 以 apikey 查询参数传递）
SENSITIVE_KEYS = {"api_key", "apikey", "authorization", "password", "secret", "token"}

# calldata / 合约源码可能很长，日志中只保留前缀
MAX_VALUE_CHARS = 256


def _scrub(data: Any, depth: int = 0) -> Any:
    """递归脱敏并截断超长字符串"""
    if depth > 10:
        return data
    if isinstance(data, dict):
        return {
            k: "***MASKED***" if str(k).lower() in SENSITIVE_KEYS else _scrub(v, depth + 1)
            for k, v in data.items()
        }
    if isinstance(data, (list, tuple)):
        return [_scrub(item, depth + 1) for item in data]
    if isinstance(data, str) and len(data) > MAX_VALUE_CHARS:
        return f"{data[:MAX_VALUE_CHARS]}...({len(data)} chars)"
    return data


def _scrub_processor(logger: logging.Logger, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    return _scrub(event_dict)


def _add_service_info(logger: logging.Logger, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    event_dict["service"] = SERVICE_NAME
    return event_dict


def configure_logging(log_level: str = "INFO", log_format: str = "json") -> None:
    """配置日志系统（json: 生产环境; console: 本地开发）"""
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        _add_service_info,
        _scrub_processor,
        structlog.processors.StackInfoRenderer(),
    ]
    if log_format.lower() == "json":
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """绑定上下文变量到当前请求"""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


@contextmanager
def request_context(**kwargs: Any) -> Iterator[None]:
    """请求范围内绑定 trace_id 等字段，退出时清除"""
    bind_context(**{k: v for k, v in kwargs.items() if v is not None})
    try:
        yield
    finally:
        clear_context()
