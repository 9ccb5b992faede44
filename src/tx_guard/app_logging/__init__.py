from .logger import bind_context, clear_context, configure_logging, get_logger, request_context
from .tracer import TraceStep, Tracer

__all__ = [
    "configure_logging",
    "get_logger",
    "bind_context",
    "clear_context",
    "request_context",
    "Tracer",
    "TraceStep",
]
