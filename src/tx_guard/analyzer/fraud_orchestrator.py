"""
欺诈评估编排

- eth_transfer: 固定低风险结果，不调用推理服务
- contract_interaction: 组装上下文 -> 推理服务 -> 严格校验返回结构
- 推理失败 / 结构不合法: 确定性降级为高风险
- 其他类型: 直接判定为高风险
"""
from __future__ import annotations

import json
from typing import Any, Literal, Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from tx_guard.app_logging import get_logger
from tx_guard.clients import ReasoningClient
from tx_guard.errors import ReasoningServiceError

from .schemas import ContractInfo, DecodedTransaction, FraudAnalysis, FraudAssessment, InterfaceResolution

logger = get_logger(__name__)

DEGRADED_WARNING = "AI analysis unavailable"
UNKNOWN_PATTERN_WARNING = "Unknown transaction pattern"


class AddressScreen(Protocol):
    """地址黑名单 / 钓鱼库的接入点，返回命中的警告信息"""

    async def screen(self, address: str) -> list[str]: ...


class ReasoningVerdict(BaseModel):
    """推理服务必须返回的结构，缺字段 / 越界 / 类型不符都视为失败"""

    model_config = ConfigDict(alias_generator=to_camel, extra="forbid", strict=True)

    risk_level: Literal["low", "medium", "high"]
    fraud_score: int = Field(ge=0, le=100)
    description: str
    reasoning: str
    warnings: list[str]
    function_name: str
    function_description: str
    ai_confidence: int = Field(ge=0, le=100)


class FraudAnalysisOrchestrator:
    """欺诈评估编排器"""

    def __init__(self, client: ReasoningClient, address_screen: AddressScreen | None = None):
        self.client = client
        self.address_screen = address_screen

    async def assess(
        self,
        transaction: DecodedTransaction,
        resolution: InterfaceResolution | None = None,
        trace_id: str | None = None,
    ) -> FraudAssessment:
        classification = transaction.classification

        if classification == "eth_transfer":
            return FraudAssessment(
                success=True,
                analysis=FraudAnalysis(
                    classification="eth_transfer",
                    risk_tier="low",
                    fraud_score=5,
                    description="Simple ETH Transfer",
                    reasoning="Standard ETH transfer with no contract interaction",
                    warnings=[],
                    ai_confidence=95,
                ),
            )

        if classification == "contract_interaction" and transaction.recipient:
            return await self._assess_contract_call(transaction, resolution, trace_id)

        return FraudAssessment(
            success=False,
            analysis=FraudAnalysis(
                classification=classification,
                risk_tier="high",
                fraud_score=100,
                description="Unknown transaction type",
                reasoning="Unable to determine transaction type",
                warnings=[UNKNOWN_PATTERN_WARNING],
                ai_confidence=0,
            ),
        )

    async def _assess_contract_call(
        self,
        transaction: DecodedTransaction,
        resolution: InterfaceResolution | None,
        trace_id: str | None,
    ) -> FraudAssessment:
        resolution = resolution or InterfaceResolution()
        screen_warnings = await self._screen(transaction.recipient)
        contract_info = ContractInfo(
            address=transaction.recipient,
            interface_available=resolution.available,
            provenance=resolution.provenance,
            source_code_available=bool(resolution.source_text),
        )

        context = build_context(transaction, resolution, screen_warnings)
        try:
            raw = await self.client.explain(build_prompt(context), trace_id=trace_id)
            verdict = ReasoningVerdict.model_validate(raw)
        except ValidationError as e:
            logger.warning(
                "reasoning_schema_violation",
                trace_id=trace_id,
                errors=[f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()],
            )
            return self._degraded(transaction, contract_info, screen_warnings, "Reasoning response failed schema validation")
        except ReasoningServiceError as e:
            return self._degraded(transaction, contract_info, screen_warnings, e.message)

        return FraudAssessment(
            success=True,
            analysis=FraudAnalysis(
                classification=transaction.classification,
                risk_tier=verdict.risk_level,
                fraud_score=verdict.fraud_score,
                description=verdict.description,
                reasoning=verdict.reasoning,
                warnings=[*verdict.warnings, *screen_warnings],
                contract_info=contract_info.model_copy(update={
                    "function_name": verdict.function_name,
                    "function_description": verdict.function_description,
                }),
                ai_confidence=verdict.ai_confidence,
            ),
        )

    async def _screen(self, address: str | None) -> list[str]:
        if self.address_screen is None or not address:
            return []
        return list(await self.address_screen.screen(address))

    @staticmethod
    def _degraded(
        transaction: DecodedTransaction,
        contract_info: ContractInfo,
        screen_warnings: list[str],
        error: str,
    ) -> FraudAssessment:
        logger.warning("fraud_assessment_degraded", classification=transaction.classification, error=error)
        return FraudAssessment(
            success=False,
            analysis=FraudAnalysis(
                classification=transaction.classification,
                risk_tier="high",
                fraud_score=100,
                description="AI analysis failed",
                reasoning="Unable to analyze transaction due to AI service error",
                warnings=[DEGRADED_WARNING, *screen_warnings],
                contract_info=contract_info,
                ai_confidence=0,
            ),
            error=error,
        )


def build_context(
    transaction: DecodedTransaction,
    resolution: InterfaceResolution,
    screen_warnings: list[str] | None = None,
) -> dict[str, Any]:
    """推理服务所需的交易上下文"""
    return {
        "classification": transaction.classification,
        "chainId": transaction.chain_id,
        "to": transaction.recipient,
        "value": transaction.value,
        "gas": transaction.gas_limit,
        "data": transaction.call_data,
        "decodedCall": transaction.decoded_call.to_dict() if transaction.decoded_call else None,
        "interfaceAvailable": resolution.available,
        "provenance": resolution.provenance,
        "abi": json.dumps(resolution.interface) if resolution.interface else None,
        "sourceCode": resolution.source_text,
        "screenWarnings": screen_warnings or [],
    }


def build_prompt(context: dict[str, Any]) -> str:
    lines = [
        "Analyze this blockchain transaction for fraud risk:",
        "",
        "TRANSACTION DATA:",
        f"- Type: {context['classification']}",
        f"- Chain ID: {context['chainId']}",
        f"- To Address: {context['to']}",
        f"- Value: {context['value']} wei",
        f"- Gas: {context['gas']}",
        f"- Data: {context['data']}",
    ]

    decoded = context.get("decodedCall")
    if decoded:
        lines += [
            "",
            "DECODED FUNCTION CALL:",
            f"- Method: {decoded.get('method')}",
            f"- Parameters: {json.dumps(decoded.get('arguments', []), indent=2)}",
        ]

    lines += [
        "",
        "CONTRACT INFO:",
        f"- Address: {context['to']}",
        f"- ABI Available: {str(context['interfaceAvailable']).lower()}",
        f"- ABI Source: {context['provenance']}",
    ]

    if context.get("screenWarnings"):
        lines += ["", "ADDRESS SCREENING:"] + [f"- {w}" for w in context["screenWarnings"]]
    if context.get("abi"):
        lines += ["", "CONTRACT ABI:", context["abi"]]
    if context.get("sourceCode"):
        lines += ["", "CONTRACT SOURCE CODE:", context["sourceCode"]]

    lines += [
        "",
        "Please analyze this transaction for potential fraud indicators and provide a comprehensive risk assessment.",
        "Pay special attention to the contract source code if available, as it provides the most accurate "
        "context for understanding what the contract does.",
    ]
    return "\n".join(lines)
