from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from tx_guard import __version__
from tx_guard.analyzer import TransactionAnalyzer
from tx_guard.analyzer.schemas import AnalysisResult, DecodedTransaction, utc_timestamp
from tx_guard.analyzer.tx_decoder import SUPPORTED_TYPES, transaction_type_label, transaction_type_number
from tx_guard.analyzer.value_codec import to_ether_decimal, to_gwei_decimal
from tx_guard.app_logging import get_logger, request_context
from tx_guard.errors import InputValidationError

from .schemas import HealthResponse, RawTxRequest, RpcRequest, TxTypeInfo, TxTypesResponse

logger = get_logger(__name__)
router = APIRouter()


def get_analyzer(request: Request) -> TransactionAnalyzer:
    """获取分析器实例"""
    return request.app.state.analyzer


def format_transaction(transaction: DecodedTransaction) -> dict[str, Any]:
    """附加便于展示的格式化字段"""
    data = transaction.to_dict()
    data["valueFormatted"] = to_ether_decimal(transaction.value)
    if transaction.gas_price is not None:
        data["gasPriceFormatted"] = to_gwei_decimal(transaction.gas_price)
    if transaction.max_fee_per_gas is not None:
        data["maxFeePerGasFormatted"] = to_gwei_decimal(transaction.max_fee_per_gas)
    if transaction.max_priority_fee_per_gas is not None:
        data["maxPriorityFeePerGasFormatted"] = to_gwei_decimal(transaction.max_priority_fee_per_gas)
    data["transactionTypeFormatted"] = transaction_type_label(transaction.envelope_kind, transaction.envelope_type_byte)
    data["transactionTypeNumber"] = transaction_type_number(transaction.envelope_kind, transaction.envelope_type_byte)
    return data


def _result_body(result: AnalysisResult) -> dict[str, Any]:
    body = result.to_dict()
    if isinstance(result.transaction, DecodedTransaction):
        body["transaction"] = format_transaction(result.transaction)
    return body


def _first_param(req: RpcRequest) -> Any:
    if not req.params or req.params[0] is None:
        raise InputValidationError("Missing params[0] transaction object")
    return req.params[0]


@router.get("/healthz", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """健康检查"""
    analyzer = get_analyzer(request)
    dependencies = {
        "etherscan": "configured" if analyzer.resolver.client.configured else "not_configured",
        "reasoning": "configured" if analyzer.reasoning_available else "not_configured",
    }
    status = "ok" if analyzer.reasoning_available else "degraded"
    return HealthResponse(status=status, version=__version__, dependencies=dependencies)


@router.post("/tx/decode")
async def decode_transaction(req: RawTxRequest, request: Request) -> dict[str, Any]:
    """解码原始交易"""
    analyzer = get_analyzer(request)
    tracer = analyzer.new_tracer("decode")

    with request_context(trace_id=tracer.trace_id):
        logger.info("decode_request", raw_prefix=req.raw_tx[:20])
        transaction = await analyzer.decode_raw(req.raw_tx, tracer)
        logger.info("decode_done", classification=transaction.classification, timings=tracer.get_timings())
        return {
            "success": True,
            "transaction": format_transaction(transaction),
            "timestamp": utc_timestamp(),
        }


@router.post("/tx/analyze")
async def analyze_transaction(req: RawTxRequest, request: Request) -> JSONResponse:
    """原始交易的确定性分析"""
    analyzer = get_analyzer(request)
    tracer = analyzer.new_tracer("analyze")

    with request_context(trace_id=tracer.trace_id):
        result = await analyzer.analyze_raw(req.raw_tx, tracer)
        if not result.success:
            logger.warning("analyze_rejected", error=result.error)
        return JSONResponse(status_code=200 if result.success else 400, content=_result_body(result))


@router.post("/tx/rpc")
async def analyze_rpc_transaction(req: RpcRequest, request: Request) -> dict[str, Any]:
    """JSON-RPC 交易对象的确定性分析"""
    analyzer = get_analyzer(request)
    tracer = analyzer.new_tracer("rpc")

    with request_context(trace_id=tracer.trace_id, rpc_method=req.method):
        result = await analyzer.analyze_payload(_first_param(req), tracer)
        return {"id": req.id, "method": req.method, **_result_body(result)}


@router.post("/tx/ai-analyze")
async def ai_analyze_transaction(req: RpcRequest, request: Request) -> dict[str, Any]:
    """JSON-RPC 交易对象的欺诈评估"""
    analyzer = get_analyzer(request)
    tracer = analyzer.new_tracer("ai_analyze")

    with request_context(trace_id=tracer.trace_id, rpc_method=req.method):
        assessment = await analyzer.assess_payload(_first_param(req), tracer)
        return {"id": req.id, "method": req.method, **assessment.to_dict()}


@router.get("/tx/types", response_model=TxTypesResponse)
async def list_transaction_types() -> TxTypesResponse:
    """支持的交易信封类型"""
    return TxTypesResponse(
        supported_types=[
            TxTypeInfo(type=t["type"], type_number=t["typeNumber"], name=t["name"], description=t["description"])
            for t in SUPPORTED_TYPES
        ],
        timestamp=utc_timestamp(),
    )
