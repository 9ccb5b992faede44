from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

TransactionClassification = Literal["eth_transfer", "contract_creation", "contract_interaction", "unknown"]
EnvelopeKind = Literal["legacy", "eip2930", "eip1559", "unknown"]
RiskTier = Literal["low", "medium", "high"]
Provenance = Literal["verified-source", "generic-fallback", "none"]
ResolutionErrorKind = Literal[
    "invalid_input",
    "missing_credential",
    "not_verified",
    "service_error",
    "transport_error",
]


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class WireModel(BaseModel):
    """对外输出的模型：Python 侧 snake_case，JSON 侧 camelCase"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class DecodedCall(WireModel):
    """解码后的合约调用"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    method: str
    arguments: list[Any] = Field(default_factory=list)
    selector: str | None = None


class DecodedTransaction(WireModel):
    """单个交易信封的解码结果（不可变，补充信息通过 model_copy 生成新对象）"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    hash: str = ""
    sender: str | None = Field(default=None, alias="from")
    recipient: str | None = Field(default=None, alias="to")
    value: str = "0"
    gas_limit: str = "0"
    gas_price: str | None = None
    max_fee_per_gas: str | None = None
    max_priority_fee_per_gas: str | None = None
    nonce: int = 0
    call_data: str = "0x"
    envelope_kind: EnvelopeKind = "legacy"
    envelope_type_byte: int = 0
    chain_id: int | None = None
    access_list: list[dict[str, Any]] | None = None
    is_contract_creation: bool = False
    is_contract_interaction: bool = False
    classification: TransactionClassification = "unknown"
    decoded_call: DecodedCall | None = None
    interface_provenance: Provenance | None = None


class InterfaceResolution(WireModel):
    """合约 ABI 获取结果；provenance 为 none 时 interface 一定为空"""

    interface: list[dict[str, Any]] | None = None
    provenance: Provenance = "none"
    source_text: str | None = None
    error: str | None = None
    error_kind: ResolutionErrorKind | None = None

    @property
    def available(self) -> bool:
        return self.interface is not None


class ContractInfo(WireModel):
    address: str
    interface_available: bool = False
    provenance: Provenance = "none"
    source_code_available: bool | None = None
    function_name: str | None = None
    function_description: str | None = None


class AnalysisSummary(WireModel):
    classification: TransactionClassification = "unknown"
    risk_tier: RiskTier = "high"
    description: str = ""
    contract_info: ContractInfo | None = None


class AnalysisResult(WireModel):
    """确定性分析结果"""

    success: bool
    transaction: DecodedTransaction | dict[str, Any] = Field(default_factory=dict)
    analysis: AnalysisSummary = Field(default_factory=AnalysisSummary)
    timestamp: str = Field(default_factory=utc_timestamp)
    error: str | None = None


class FraudAnalysis(WireModel):
    classification: TransactionClassification = "unknown"
    risk_tier: RiskTier = "high"
    fraud_score: int = Field(default=100, ge=0, le=100)
    description: str = ""
    reasoning: str = ""
    warnings: list[str] = Field(default_factory=list)
    contract_info: ContractInfo | None = None
    ai_confidence: int = Field(default=0, ge=0, le=100)


class FraudAssessment(WireModel):
    """欺诈评估结果"""

    success: bool
    analysis: FraudAnalysis = Field(default_factory=FraudAnalysis)
    timestamp: str = Field(default_factory=utc_timestamp)
    error: str | None = None
