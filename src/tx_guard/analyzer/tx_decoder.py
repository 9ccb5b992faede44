"""
原始交易解码

支持的信封类型（EIP-2718）:
- legacy: 无类型前缀，直接是 RLP 列表
- 0x01: EIP-2930 (Access List)
- 0x02: EIP-1559 (Fee Market)
- 其他 0x03..0x7f: 按 EIP-1559 的字段前缀解析，类型记为 unknown
"""
from __future__ import annotations

from typing import Any

import rlp
from rlp.exceptions import RLPException
from eth_utils import decode_hex, encode_hex, is_hex, is_hex_address, keccak, to_checksum_address

from tx_guard.app_logging import get_logger
from tx_guard.errors import DecodeError

from .schemas import DecodedCall, DecodedTransaction, EnvelopeKind, TransactionClassification

logger = get_logger(__name__)


SUPPORTED_TYPES: list[dict[str, Any]] = [
    {"type": "legacy", "typeNumber": 0, "name": "Legacy", "description": "Original transaction format"},
    {"type": "eip2930", "typeNumber": 1, "name": "EIP-2930", "description": "Access List transactions"},
    {"type": "eip1559", "typeNumber": 2, "name": "EIP-1559", "description": "Fee Market transactions"},
]

_TYPE_LABELS: dict[str, str] = {
    "legacy": "Legacy",
    "eip2930": "EIP-2930 (Access List)",
    "eip1559": "EIP-1559 (Fee Market)",
}

_TYPE_NUMBERS: dict[str, int] = {"legacy": 0, "eip2930": 1, "eip1559": 2}

# 各类型未签名 / 已签名的字段个数
_LEGACY_LENGTHS = (6, 9)
_ACCESS_LIST_LENGTHS = (8, 11)
_FEE_MARKET_LENGTHS = (9, 12)


def is_empty_call_data(call_data: str | None) -> bool:
    return call_data is None or call_data.lower() in ("", "0x")


def classify_transaction(recipient: str | None, call_data: str | None) -> TransactionClassification:
    """交易意图分类：只取决于收款方是否存在以及 calldata 是否为空"""
    if recipient is None:
        return "contract_creation"
    if not is_hex_address(recipient):
        return "unknown"
    if is_empty_call_data(call_data):
        return "eth_transfer"
    return "contract_interaction"


def transaction_type_label(kind: str, type_byte: int | None = None) -> str:
    if kind in _TYPE_LABELS:
        return _TYPE_LABELS[kind]
    if type_byte is not None:
        return f"Unknown (0x{type_byte:02x})"
    return f"Unknown ({kind})"


def transaction_type_number(kind: str, type_byte: int | None = None) -> int:
    if kind in _TYPE_NUMBERS:
        return _TYPE_NUMBERS[kind]
    return type_byte if type_byte is not None else 0


def _fail(reason: str) -> DecodeError:
    return DecodeError("Failed to decode transaction", details=reason)


def _as_int(item: Any, field: str) -> int:
    if not isinstance(item, bytes):
        raise _fail(f"Invalid {field}: expected an RLP string, got a list")
    return int.from_bytes(item, "big")


def _as_address(item: Any) -> str | None:
    if not isinstance(item, bytes):
        raise _fail("Invalid to: expected an RLP string, got a list")
    if len(item) == 0:
        return None
    if len(item) != 20:
        raise _fail(f"Invalid to: expected 20 bytes, got {len(item)}")
    return to_checksum_address(item)


def _as_bytes(item: Any, field: str) -> bytes:
    if not isinstance(item, bytes):
        raise _fail(f"Invalid {field}: expected an RLP string, got a list")
    return item


def _as_access_list(item: Any) -> list[dict[str, Any]]:
    if not isinstance(item, list):
        raise _fail("Invalid accessList: expected a list")

    entries: list[dict[str, Any]] = []
    for entry in item:
        if not isinstance(entry, list) or len(entry) != 2:
            raise _fail("Invalid accessList entry: expected [address, storageKeys]")
        address, keys = entry
        if not isinstance(address, bytes) or len(address) != 20:
            raise _fail("Invalid accessList address")
        if not isinstance(keys, list) or any(not isinstance(k, bytes) or len(k) != 32 for k in keys):
            raise _fail("Invalid accessList storage keys")
        entries.append({
            "address": to_checksum_address(address),
            "storageKeys": [encode_hex(k) for k in keys],
        })
    return entries


class RawTransactionDecoder:
    """原始交易解码器"""

    def decode(self, raw_tx: str) -> DecodedTransaction:
        """解码原始交易；信封无法解析时抛出 DecodeError"""
        raw = self._to_bytes(raw_tx)
        fields, kind, type_byte = self._split_envelope(raw)

        if kind == "legacy":
            parsed = self._parse_legacy(fields)
        elif kind == "eip2930":
            parsed = self._parse_access_list(fields)
        else:
            parsed = self._parse_fee_market(fields, with_access_list=kind == "eip1559")

        recipient = parsed["recipient"]
        call_data = encode_hex(parsed["data"])
        classification = classify_transaction(recipient, call_data)

        decoded_call = None
        if classification == "eth_transfer":
            decoded_call = DecodedCall(method="transfer", arguments=[])

        logger.debug("tx_decoded", type=kind, chain_id=parsed["chain_id"], classification=classification)

        return DecodedTransaction(
            hash=encode_hex(keccak(raw)),
            recipient=recipient,
            value=str(parsed["value"]),
            gas_limit=str(parsed["gas"]),
            gas_price=_opt_str(parsed.get("gas_price")),
            max_fee_per_gas=_opt_str(parsed.get("max_fee_per_gas")),
            max_priority_fee_per_gas=_opt_str(parsed.get("max_priority_fee_per_gas")),
            nonce=parsed["nonce"],
            call_data=call_data,
            envelope_kind=kind,
            envelope_type_byte=type_byte,
            chain_id=parsed["chain_id"],
            access_list=parsed.get("access_list"),
            is_contract_creation=recipient is None,
            is_contract_interaction=classification == "contract_interaction",
            classification=classification,
            decoded_call=decoded_call,
        )

    def is_valid_raw_transaction(self, raw_tx: Any) -> bool:
        """快速校验：合法十六进制且信封可解析"""
        if not raw_tx or not isinstance(raw_tx, str):
            return False
        try:
            self.decode(raw_tx)
        except DecodeError:
            return False
        return True

    @staticmethod
    def _to_bytes(raw_tx: str) -> bytes:
        tx_hex = raw_tx.strip()
        if not tx_hex.startswith(("0x", "0X")):
            tx_hex = "0x" + tx_hex
        if not is_hex(tx_hex) or len(tx_hex) % 2 != 0:
            raise DecodeError("Failed to decode transaction", details="Input is not a valid hex string")
        raw = decode_hex(tx_hex)
        if not raw:
            raise DecodeError("Failed to decode transaction", details="Empty transaction payload")
        return raw

    @staticmethod
    def _split_envelope(raw: bytes) -> tuple[list[Any], EnvelopeKind, int]:
        first = raw[0]
        if first >= 0xC0:
            kind: EnvelopeKind = "legacy"
            type_byte = 0
            payload = raw
        elif first <= 0x7F:
            type_byte = first
            kind = {1: "eip2930", 2: "eip1559"}.get(type_byte, "unknown")
            payload = raw[1:]
        else:
            raise DecodeError(
                "Failed to decode transaction",
                details=f"Leading byte 0x{first:02x} is neither a type marker nor an RLP list",
            )

        try:
            fields = rlp.decode(payload, strict=True)
        except RLPException as e:
            raise DecodeError("Failed to decode transaction", details=str(e) or type(e).__name__) from e

        if not isinstance(fields, list):
            raise DecodeError("Failed to decode transaction", details="Envelope payload is not an RLP list")

        expected = {
            "legacy": _LEGACY_LENGTHS,
            "eip2930": _ACCESS_LIST_LENGTHS,
            "eip1559": _FEE_MARKET_LENGTHS,
        }.get(kind)
        if expected is not None and len(fields) not in expected:
            raise DecodeError(
                "Failed to decode transaction",
                details=f"Invalid {kind} field count: {len(fields)}",
            )
        if kind == "unknown" and len(fields) < _FEE_MARKET_LENGTHS[0]:
            raise DecodeError(
                "Failed to decode transaction",
                details=f"Typed envelope 0x{type_byte:02x} has too few fields: {len(fields)}",
            )
        return fields, kind, type_byte

    @staticmethod
    def _parse_legacy(fields: list[Any]) -> dict[str, Any]:
        chain_id = 0
        if len(fields) == 9:
            v = _as_int(fields[6], "v")
            r = _as_int(fields[7], "r")
            s = _as_int(fields[8], "s")
            if r == 0 and s == 0:
                # EIP-155 未签名交易，v 直接存放 chainId
                chain_id = v
            elif v >= 35:
                chain_id = (v - 35) // 2

        return {
            "nonce": _as_int(fields[0], "nonce"),
            "gas_price": _as_int(fields[1], "gasPrice"),
            "gas": _as_int(fields[2], "gas"),
            "recipient": _as_address(fields[3]),
            "value": _as_int(fields[4], "value"),
            "data": _as_bytes(fields[5], "data"),
            "chain_id": chain_id,
        }

    @staticmethod
    def _parse_access_list(fields: list[Any]) -> dict[str, Any]:
        return {
            "chain_id": _as_int(fields[0], "chainId"),
            "nonce": _as_int(fields[1], "nonce"),
            "gas_price": _as_int(fields[2], "gasPrice"),
            "gas": _as_int(fields[3], "gas"),
            "recipient": _as_address(fields[4]),
            "value": _as_int(fields[5], "value"),
            "data": _as_bytes(fields[6], "data"),
            "access_list": _as_access_list(fields[7]),
        }

    @staticmethod
    def _parse_fee_market(fields: list[Any], with_access_list: bool = True) -> dict[str, Any]:
        parsed = {
            "chain_id": _as_int(fields[0], "chainId"),
            "nonce": _as_int(fields[1], "nonce"),
            "max_priority_fee_per_gas": _as_int(fields[2], "maxPriorityFeePerGas"),
            "max_fee_per_gas": _as_int(fields[3], "maxFeePerGas"),
            "gas": _as_int(fields[4], "gas"),
            "recipient": _as_address(fields[5]),
            "value": _as_int(fields[6], "value"),
            "data": _as_bytes(fields[7], "data"),
        }
        if with_access_list:
            parsed["access_list"] = _as_access_list(fields[8])
        return parsed


def _opt_str(value: int | None) -> str | None:
    return str(value) if value is not None else None
