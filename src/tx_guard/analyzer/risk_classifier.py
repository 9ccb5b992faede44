from __future__ import annotations

from .schemas import RiskTier
from .value_codec import parse_quantity, to_ether_decimal

# 超过 10 ETH 视为高风险（整数比较，避免浮点误差）
HIGH_VALUE_THRESHOLD_WEI = 10 * 10**18

_DESCRIPTION_PREFIXES: dict[str, str] = {
    "eth_transfer": "ETH Transfer",
    "contract_creation": "Contract Creation",
    "contract_interaction": "Contract Interaction",
}


class RiskClassifier:
    """确定性风险分级：金额优先，其次是交易类型"""

    def classify(self, transaction_type: str, value: str | int | None, recipient: str | None = None) -> RiskTier:
        if self._exceeds_threshold(value):
            return "high"
        if transaction_type in ("contract_interaction", "contract_creation"):
            return "medium"
        return "low"

    def describe(self, transaction_type: str, value: str | None) -> str:
        prefix = _DESCRIPTION_PREFIXES.get(transaction_type, "Unknown Transaction")
        return f"{prefix}: {to_ether_decimal(value or '0')} ETH"

    @staticmethod
    def _exceeds_threshold(value: str | int | None) -> bool:
        if value is None:
            return False
        try:
            return parse_quantity(value) > HIGH_VALUE_THRESHOLD_WEI
        except ValueError:
            return False
