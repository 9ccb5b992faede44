"""
金额格式化

所有换算都基于任意精度整数 / Decimal，避免浮点精度丢失。
格式化只用于展示：输入无法解析时原样返回，不做校验。
"""
from __future__ import annotations

import re

from eth_utils import from_wei

_DECIMAL_RE = re.compile(r"^[0-9]+$")
_HEX_RE = re.compile(r"^0[xX][0-9a-fA-F]+$")


def parse_quantity(value: str | int) -> int:
    """解析十进制 / 0x 十六进制数量为非负整数"""
    if isinstance(value, bool):
        raise ValueError(f"Invalid quantity: {value!r}")
    if isinstance(value, int):
        if value < 0:
            raise ValueError(f"Negative quantity: {value}")
        return value
    if isinstance(value, str):
        text = value.strip()
        if _HEX_RE.match(text):
            return int(text, 16)
        if _DECIMAL_RE.match(text):
            return int(text)
    raise ValueError(f"Invalid quantity: {value!r}")


def _format_units(wei_value: str, unit: str) -> str:
    try:
        scaled = from_wei(parse_quantity(wei_value), unit)
    except (ValueError, TypeError):
        return wei_value
    if isinstance(scaled, int):
        return str(scaled)
    return format(scaled, "f")


def to_ether_decimal(wei_value: str) -> str:
    """wei -> ether，如 "25000000000000000000" -> "25" """
    return _format_units(wei_value, "ether")


def to_gwei_decimal(wei_value: str) -> str:
    """wei -> gwei，如 "20000000000" -> "20" """
    return _format_units(wei_value, "gwei")
