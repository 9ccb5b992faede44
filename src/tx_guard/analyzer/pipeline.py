"""
请求级分析流水线

decode -> classify -> resolve interface -> decode call -> risk tier -> (可选) fraud assessment
"""
from __future__ import annotations

from typing import Any

import httpx

from tx_guard.app_logging import Tracer, get_logger
from tx_guard.clients import ReasoningClient
from tx_guard.config import Settings
from tx_guard.errors import ConfigurationError, DecodeError
from tx_guard.integrations import EtherscanClient

from .call_decoder import FunctionCallDecoder
from .fraud_orchestrator import AddressScreen, FraudAnalysisOrchestrator
from .interface_resolver import ContractInterfaceResolver
from .payload import parse_rpc_transaction
from .risk_classifier import RiskClassifier
from .schemas import (
    AnalysisResult,
    AnalysisSummary,
    ContractInfo,
    DecodedTransaction,
    FraudAssessment,
    InterfaceResolution,
)
from .tx_decoder import RawTransactionDecoder

logger = get_logger(__name__)


class TransactionAnalyzer:
    """交易分析器"""

    VERSION = "1.0.0"

    def __init__(
        self,
        resolver: ContractInterfaceResolver,
        orchestrator: FraudAnalysisOrchestrator | None = None,
        trace_enabled: bool = True,
    ):
        self.decoder = RawTransactionDecoder()
        self.call_decoder = FunctionCallDecoder()
        self.risk_classifier = RiskClassifier()
        self.resolver = resolver
        self.orchestrator = orchestrator
        self.trace_enabled = trace_enabled

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        etherscan_transport: httpx.AsyncBaseTransport | None = None,
        reasoning_transport: httpx.AsyncBaseTransport | None = None,
        address_screen: AddressScreen | None = None,
    ) -> "TransactionAnalyzer":
        """按配置组装；推理服务未配置时 orchestrator 为 None"""
        etherscan = EtherscanClient(
            base_url=settings.etherscan_base_url,
            api_key=settings.etherscan_api_key,
            timeout=settings.etherscan_timeout_s,
            transport=etherscan_transport,
        )
        resolver = ContractInterfaceResolver(etherscan, fallback_policy=settings.abi_fallback_policy)

        orchestrator = None
        if settings.reasoning_configured:
            client = ReasoningClient(
                base_url=settings.reasoning_base_url,
                api_key=settings.reasoning_api_key,
                model=settings.reasoning_model,
                timeout=settings.reasoning_timeout_s,
                transport=reasoning_transport,
            )
            orchestrator = FraudAnalysisOrchestrator(client, address_screen=address_screen)

        return cls(resolver, orchestrator, trace_enabled=settings.trace_enabled)

    @property
    def reasoning_available(self) -> bool:
        return self.orchestrator is not None

    def new_tracer(self, operation: str) -> Tracer:
        return Tracer(operation=operation, enabled=self.trace_enabled)

    async def decode_raw(self, raw_tx: str, tracer: Tracer | None = None) -> DecodedTransaction:
        """解码原始交易，并尽可能还原合约调用"""
        tracer = tracer or self.new_tracer("decode")
        with tracer.step("decode_envelope", {"raw_chars": len(raw_tx)}) as step:
            transaction = self.decoder.decode(raw_tx)
            step.set_output({
                "type": transaction.envelope_kind,
                "chain_id": transaction.chain_id,
                "classification": transaction.classification,
            })

        transaction, _ = await self._enrich(transaction, tracer)
        return transaction

    async def analyze_raw(self, raw_tx: Any, tracer: Tracer | None = None) -> AnalysisResult:
        """原始交易的确定性分析；格式错误时返回 success=false"""
        tracer = tracer or self.new_tracer("analyze")
        invalid = AnalysisResult(
            success=False,
            analysis=AnalysisSummary(
                classification="unknown",
                risk_tier="high",
                description="Invalid transaction format",
            ),
            error="Invalid transaction format",
        )
        if not raw_tx or not isinstance(raw_tx, str):
            return invalid

        try:
            transaction = await self.decode_raw(raw_tx, tracer)
        except DecodeError as e:
            logger.info("analyze_invalid_envelope", trace_id=tracer.trace_id, reason=e.details or e.message)
            return invalid
        return self._summarize(transaction, tracer)

    async def analyze_payload(self, payload: Any, tracer: Tracer | None = None) -> AnalysisResult:
        """RPC 交易对象的确定性分析；字段不合法时抛出 InputValidationError"""
        tracer = tracer or self.new_tracer("analyze_payload")
        with tracer.step("parse_payload") as step:
            transaction = parse_rpc_transaction(payload)
            step.set_output({"chain_id": transaction.chain_id, "classification": transaction.classification})

        transaction, _ = await self._enrich(transaction, tracer)
        return self._summarize(transaction, tracer)

    async def assess_payload(self, payload: Any, tracer: Tracer | None = None) -> FraudAssessment:
        """RPC 交易对象的欺诈评估"""
        if self.orchestrator is None:
            raise ConfigurationError("Reasoning service is not configured", details="REASONING_API_KEY")

        tracer = tracer or self.new_tracer("assess_payload")
        with tracer.step("parse_payload") as step:
            transaction = parse_rpc_transaction(payload)
            step.set_output({"chain_id": transaction.chain_id, "classification": transaction.classification})

        transaction, resolution = await self._enrich(transaction, tracer)

        with tracer.step("fraud_assessment", {"classification": transaction.classification}) as step:
            assessment = await self.orchestrator.assess(transaction, resolution, trace_id=tracer.trace_id)
            step.set_output({
                "success": assessment.success,
                "risk_tier": assessment.analysis.risk_tier,
                "fraud_score": assessment.analysis.fraud_score,
            })
            if assessment.error:
                step.set_error(assessment.error)

        logger.info(
            "fraud_assessment_done",
            trace_id=tracer.trace_id,
            classification=transaction.classification,
            risk_tier=assessment.analysis.risk_tier,
            timings=tracer.get_timings(),
        )
        return assessment

    async def _enrich(
        self,
        transaction: DecodedTransaction,
        tracer: Tracer,
    ) -> tuple[DecodedTransaction, InterfaceResolution | None]:
        """合约调用：获取 ABI 并解码 calldata；其余类型原样返回"""
        if transaction.classification != "contract_interaction":
            return transaction, None

        with tracer.step("resolve_interface", {"chain_id": transaction.chain_id, "to": transaction.recipient}) as step:
            resolution = await self.resolver.resolve(transaction.chain_id, transaction.recipient)
            step.set_output({"provenance": resolution.provenance, "error_kind": resolution.error_kind})

        with tracer.step("decode_call") as step:
            decoded_call = self.call_decoder.decode(transaction.call_data, resolution.interface)
            step.set_output({"method": decoded_call.method, "arguments": len(decoded_call.arguments)})

        transaction = transaction.model_copy(update={
            "decoded_call": decoded_call,
            "interface_provenance": resolution.provenance,
        })
        return transaction, resolution

    def _summarize(self, transaction: DecodedTransaction, tracer: Tracer) -> AnalysisResult:
        with tracer.step("classify_risk") as step:
            risk_tier = self.risk_classifier.classify(
                transaction.classification,
                transaction.value,
                transaction.recipient,
            )
            description = self.risk_classifier.describe(transaction.classification, transaction.value)
            step.set_output({"risk_tier": risk_tier})

        contract_info = None
        if transaction.classification == "contract_interaction":
            provenance = transaction.interface_provenance or "none"
            contract_info = ContractInfo(
                address=transaction.recipient,
                interface_available=provenance != "none",
                provenance=provenance,
            )

        logger.info(
            "analysis_done",
            trace_id=tracer.trace_id,
            operation=tracer.operation,
            classification=transaction.classification,
            risk_tier=risk_tier,
            timings=tracer.get_timings(),
        )
        return AnalysisResult(
            success=True,
            transaction=transaction,
            analysis=AnalysisSummary(
                classification=transaction.classification,
                risk_tier=risk_tier,
                description=description,
                contract_info=contract_info,
            ),
        )
