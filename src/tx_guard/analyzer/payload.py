"""
JSON-RPC 交易对象的边界解析

chainId 可能是数字、0x 十六进制字符串或十进制字符串，这里统一转为正整数；
无法确定含义的输入直接拒绝，不做静默默认。
"""
from __future__ import annotations

import re
from typing import Any

from eth_utils import is_hex

from tx_guard.errors import InputValidationError

from .schemas import DecodedCall, DecodedTransaction
from .tx_decoder import classify_transaction
from .value_codec import parse_quantity

_DECIMAL_RE = re.compile(r"^[0-9]+$")
_HEX_RE = re.compile(r"^0[xX][0-9a-fA-F]+$")

DEFAULT_GAS = "21000"


def parse_chain_id(value: Any) -> int | None:
    """chainId -> 正整数；缺省返回 None"""
    if value is None:
        return None
    if isinstance(value, bool) or isinstance(value, float):
        raise InputValidationError("Invalid chainId", details=f"Unsupported chainId type: {type(value).__name__}")
    if isinstance(value, int):
        chain_id = value
    elif isinstance(value, str):
        text = value.strip()
        if _HEX_RE.match(text):
            chain_id = int(text, 16)
        elif _DECIMAL_RE.match(text):
            chain_id = int(text)
        else:
            raise InputValidationError("Invalid chainId", details=f"Cannot parse chainId: {value!r}")
    else:
        raise InputValidationError("Invalid chainId", details=f"Unsupported chainId type: {type(value).__name__}")

    if chain_id <= 0:
        raise InputValidationError("Invalid chainId", details=f"chainId must be positive, got {chain_id}")
    return chain_id


def _parse_amount(value: Any, field: str, default: str) -> str:
    if value is None:
        return default
    try:
        return str(parse_quantity(value))
    except ValueError as e:
        raise InputValidationError(f"Invalid {field}", details=str(e)) from e


def _parse_optional_str(value: Any, field: str) -> str | None:
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise InputValidationError(f"Invalid {field}", details=f"{field} must be a string")
    return value


def _parse_data(value: Any) -> str:
    if value is None or value == "":
        return "0x"
    if not isinstance(value, str):
        raise InputValidationError("Invalid data", details="data must be a hex string")
    data = value if value.startswith(("0x", "0X")) else "0x" + value
    if not is_hex(data) or len(data) % 2 != 0:
        raise InputValidationError("Invalid data", details="data must be a hex string")
    return data.lower()


def parse_rpc_transaction(payload: Any) -> DecodedTransaction:
    """RPC 交易对象 -> DecodedTransaction（hash 为空，nonce 为 0）"""
    if not isinstance(payload, dict):
        raise InputValidationError("Invalid transaction params", details="params[0] must be a transaction object")

    recipient = _parse_optional_str(payload.get("to"), "to")
    call_data = _parse_data(payload.get("data"))
    classification = classify_transaction(recipient, call_data)

    return DecodedTransaction(
        hash="",
        sender=_parse_optional_str(payload.get("from"), "from"),
        recipient=recipient,
        value=_parse_amount(payload.get("value"), "value", "0"),
        gas_limit=_parse_amount(payload.get("gas"), "gas", DEFAULT_GAS),
        call_data=call_data,
        envelope_kind="legacy",
        chain_id=parse_chain_id(payload.get("chainId")),
        is_contract_creation=recipient is None,
        is_contract_interaction=classification == "contract_interaction",
        classification=classification,
        decoded_call=DecodedCall(method="transfer", arguments=[]) if classification == "eth_transfer" else None,
    )
