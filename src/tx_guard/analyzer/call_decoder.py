"""
合约调用数据解码

优先使用解析到的合约 ABI 还原方法名和参数；
ABI 不可用或不匹配时退回到常用选择器表，此时只能得到方法签名，参数为空。
"""
from __future__ import annotations

from typing import Any

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from eth_utils import decode_hex, is_hex, keccak, to_checksum_address

from tx_guard.app_logging import get_logger

from . import selectors
from .schemas import DecodedCall

logger = get_logger(__name__)


def _canonical_type(param: dict[str, Any]) -> str:
    """tuple 类型展开为 (t1,t2,...) 形式，保留数组后缀"""
    type_str = param.get("type", "")
    if type_str.startswith("tuple"):
        inner = ",".join(_canonical_type(c) for c in param.get("components", []))
        return f"({inner}){type_str[len('tuple'):]}"
    return type_str


def function_signature(func_def: dict[str, Any]) -> str:
    types = ",".join(_canonical_type(p) for p in func_def.get("inputs", []))
    return f"{func_def.get('name', '')}({types})"


def function_selector(func_def: dict[str, Any]) -> str:
    return "0x" + keccak(text=function_signature(func_def)).hex()[:8]


def _format_value(value: Any) -> Any:
    """解码结果转换为 JSON 安全的值"""
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, bytes):
        return "0x" + value.hex()
    if isinstance(value, (tuple, list)):
        return [_format_value(v) for v in value]
    return value


class FunctionCallDecoder:
    """calldata 解码器"""

    def decode_with_interface(self, call_data: str | None, abi: list[dict[str, Any]] | None) -> DecodedCall | None:
        """按 ABI 解码；选择器不匹配或参数编码错误时返回 None"""
        if not abi or not call_data or not is_hex(call_data):
            return None

        data = call_data if call_data.startswith(("0x", "0X")) else "0x" + call_data
        if len(data) < 10:
            return None
        selector = data[:10].lower()

        for item in abi:
            if item.get("type", "function") != "function":
                continue
            if function_selector(item) != selector:
                continue

            types = [_canonical_type(p) for p in item.get("inputs", [])]
            try:
                values = abi_decode(types, decode_hex("0x" + data[10:]))
            except (DecodingError, ValueError, TypeError) as e:
                logger.debug("decode_with_interface_failed", selector=selector, error=str(e))
                return None

            arguments = []
            for param, value in zip(item.get("inputs", []), values):
                if param.get("type") == "address":
                    value = to_checksum_address(value)
                arguments.append(_format_value(value))

            return DecodedCall(method=item.get("name", ""), arguments=arguments, selector=selector)

        return None

    def decode_by_selector(self, call_data: str | None) -> DecodedCall:
        """按 4 字节选择器查表；空 calldata 视为 ETH 转账"""
        if not call_data or call_data.lower() in ("", "0x"):
            return DecodedCall(method="transfer", arguments=[])

        data = call_data if call_data.startswith(("0x", "0X")) else "0x" + call_data
        selector = data[:10].lower()
        signature = selectors.lookup(selector)
        if signature:
            return DecodedCall(method=signature, arguments=[], selector=selector)
        return DecodedCall(method=f"unknown_{selector}", arguments=[], selector=selector)

    def decode(self, call_data: str | None, abi: list[dict[str, Any]] | None = None) -> DecodedCall:
        decoded = self.decode_with_interface(call_data, abi) if abi else None
        if decoded is not None:
            return decoded
        return self.decode_by_selector(call_data)
