from __future__ import annotations

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tx_guard import __version__
from tx_guard.analyzer import TransactionAnalyzer
from tx_guard.api import ErrorResponse, router
from tx_guard.app_logging import configure_logging, get_logger
from tx_guard.config import Settings, get_settings
from tx_guard.errors import ConfigurationError, TxGuardError

logger = get_logger(__name__)

_STATUS_BY_KIND = {
    "invalid_input": 400,
    "decode_error": 400,
    "configuration_error": 503,
}


def _format_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts)


def create_app(settings: Settings | None = None, analyzer: TransactionAnalyzer | None = None) -> FastAPI:
    """创建 FastAPI 应用"""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """应用生命周期管理"""
        configure_logging(settings.log_level, settings.log_format)
        logger.info("app_starting", env=settings.app_env, port=settings.port)

        app.state.settings = settings
        app.state.analyzer = analyzer or TransactionAnalyzer.from_settings(settings)

        if not settings.etherscan_api_key:
            logger.warning("etherscan_not_configured")
        if not app.state.analyzer.reasoning_available:
            logger.warning("reasoning_not_configured", endpoint="/tx/ai-analyze")
        logger.info(
            "analyzer_initialized",
            abi_fallback_policy=settings.abi_fallback_policy,
            reasoning_model=settings.reasoning_model,
        )

        yield

        logger.info("app_stopped")

    app = FastAPI(
        title="Web3 Transaction Guard",
        description="交易解码、分类与风险评估服务",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS 中间件
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning("request_validation_error", path=request.url.path, errors=exc.errors())
        return JSONResponse(
            status_code=400,
            content=ErrorResponse(error="Invalid request body", details=_format_validation_errors(exc)).model_dump(),
        )

    @app.exception_handler(TxGuardError)
    async def tx_guard_exception_handler(request: Request, exc: TxGuardError):
        status_code = _STATUS_BY_KIND.get(exc.kind, 500)
        if isinstance(exc, ConfigurationError):
            logger.error("configuration_error", path=request.url.path, error=exc.message, details=exc.details)
        else:
            logger.warning("request_rejected", path=request.url.path, kind=exc.kind, error=exc.message)
        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(error=exc.message, details=exc.details).model_dump(),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception("unhandled_exception", path=request.url.path, error=str(exc))
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(error="Internal server error").model_dump(),
        )

    app.include_router(router)

    return app


def run() -> None:
    settings = get_settings()
    uvicorn.run(
        "tx_guard.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=settings.port,
        reload=settings.app_env == "local",
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
