"""Shared fixtures: raw envelope builders and fake external services."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest
import rlp
from eth_abi import encode as abi_encode

from tx_guard.config import Settings

TOKEN = "0x" + "ab" * 20
RECIPIENT = "0x" + "cd" * 20
SENDER = "0x" + "ef" * 20

ONE_ETHER = 10**18

ERC20_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "transfer",
        "inputs": [{"name": "to", "type": "address"}, {"name": "amount", "type": "uint256"}],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "type": "function",
        "name": "approve",
        "inputs": [{"name": "spender", "type": "address"}, {"name": "amount", "type": "uint256"}],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {"type": "event", "name": "Transfer", "inputs": []},
]


def addr_bytes(address: str | None) -> bytes:
    return bytes.fromhex(address[2:]) if address else b""


def transfer_calldata(to: str = RECIPIENT, amount: int = ONE_ETHER) -> str:
    return "0xa9059cbb" + abi_encode(["address", "uint256"], [to, amount]).hex()


def legacy_tx(
    to: str | None = RECIPIENT,
    value: int = ONE_ETHER,
    data: bytes = b"",
    nonce: int = 9,
    gas_price: int = 20 * 10**9,
    gas: int = 21000,
    v: int = 37,
    r: int = 1,
    s: int = 1,
    signed: bool = True,
) -> str:
    fields: list[Any] = [nonce, gas_price, gas, addr_bytes(to), value, data]
    if signed:
        fields += [v, r, s]
    return "0x" + rlp.encode(fields).hex()


def access_list_tx(
    to: str | None = RECIPIENT,
    value: int = 0,
    data: bytes = b"",
    chain_id: int = 1,
    access_list: list[Any] | None = None,
) -> str:
    fields = [chain_id, 3, 10**9, 50000, addr_bytes(to), value, data, access_list or [], 0, 1, 1]
    return "0x01" + rlp.encode(fields).hex()


def fee_market_tx(
    to: str | None = RECIPIENT,
    value: int = 0,
    data: bytes = b"",
    chain_id: int = 1,
    type_byte: int = 2,
) -> str:
    fields = [chain_id, 7, 2 * 10**9, 30 * 10**9, 60000, addr_bytes(to), value, data, [], 1, 1, 1]
    return f"0x{type_byte:02x}" + rlp.encode(fields).hex()


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "ETHERSCAN_API_KEY": "test-etherscan-key",
        "REASONING_API_KEY": "test-reasoning-key",
        "LOG_FORMAT": "console",
        "LOG_LEVEL": "WARNING",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def etherscan_handler(
    abi: list[dict[str, Any]] | None = None,
    source_code: str = "contract Token {}",
    abi_response: Callable[[httpx.Request], httpx.Response] | None = None,
    calls: list[httpx.Request] | None = None,
) -> Callable[[httpx.Request], httpx.Response]:
    """Etherscan v2 stand-in; getabi answers with `abi` unless `abi_response` overrides it."""

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        action = request.url.params.get("action")
        if action == "getabi":
            if abi_response is not None:
                return abi_response(request)
            return httpx.Response(200, json={"status": "1", "message": "OK", "result": json.dumps(abi or ERC20_ABI)})
        if action == "getsourcecode":
            return httpx.Response(
                200,
                json={"status": "1", "message": "OK", "result": [{"SourceCode": source_code, "ABI": "[]"}]},
            )
        return httpx.Response(404)

    return handler


def reasoning_reply(arguments: dict[str, Any] | str, via_tool: bool = True) -> dict[str, Any]:
    payload = arguments if isinstance(arguments, str) else json.dumps(arguments)
    if via_tool:
        message = {
            "role": "assistant",
            "content": None,
            "tool_calls": [{
                "id": "call_1",
                "type": "function",
                "function": {"name": "generate_explanation_response", "arguments": payload},
            }],
        }
    else:
        message = {"role": "assistant", "content": payload}
    return {"id": "chatcmpl-1", "choices": [{"index": 0, "message": message}]}


VALID_VERDICT: dict[str, Any] = {
    "riskLevel": "medium",
    "fraudScore": 35,
    "description": "ERC-20 token transfer",
    "reasoning": "Verified token contract, standard transfer call",
    "warnings": ["Recipient has no history"],
    "functionName": "transfer",
    "functionDescription": "Moves tokens from the caller to the recipient",
    "aiConfidence": 80,
}


@pytest.fixture
def settings() -> Settings:
    return make_settings()
