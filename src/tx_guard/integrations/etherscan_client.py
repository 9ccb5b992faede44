from __future__ import annotations

import asyncio
import json
from typing import Any

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from tx_guard.app_logging import get_logger

logger = get_logger(__name__)

NOT_VERIFIED_MESSAGE = "Contract not verified on Etherscan"

# 网络失败时可选的兜底 ABI（最小 ERC-20 接口）
GENERIC_TOKEN_INTERFACE: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "transfer",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "to", "type": "address"}, {"name": "amount", "type": "uint256"}],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "type": "function",
        "name": "approve",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "spender", "type": "address"}, {"name": "amount", "type": "uint256"}],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "type": "function",
        "name": "transferFrom",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "from", "type": "address"},
            {"name": "to", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "type": "function",
        "name": "balanceOf",
        "stateMutability": "view",
        "inputs": [{"name": "account", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]


class EtherscanError(Exception):
    """Etherscan API 错误（HTTP 非 2xx 或 status != "1"）"""

    def __init__(self, message: str, status: str | None = None, not_verified: bool = False):
        super().__init__(message)
        self.status = status
        self.not_verified = not_verified


class EtherscanClient:
    """Etherscan v2 API 客户端（chainid 参数区分链）"""

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def _request(self, chain_id: int, params: dict[str, Any]) -> dict[str, Any]:
        """发送单次请求；网络错误 / 超时以 httpx 异常向上抛出"""
        query = {"chainid": chain_id, **params, "apikey": self.api_key}

        # httpx 的 timeout 只约束单个阶段，整体耗时另由 wait_for 限制
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await asyncio.wait_for(client.get(self.base_url, params=query), timeout=self.timeout)
            except asyncio.TimeoutError as e:
                raise httpx.ReadTimeout(f"Etherscan request exceeded {self.timeout}s") from e

        if response.is_error:
            raise EtherscanError(f"HTTP {response.status_code}: {response.reason_phrase}")

        try:
            data = response.json()
        except ValueError as e:
            raise EtherscanError(f"Invalid JSON response: {e}") from e
        if not isinstance(data, dict):
            raise EtherscanError("Invalid JSON response: expected an object")

        # status 为 "1" 表示成功，其余情况 result 里是错误原因
        status = str(data.get("status", ""))
        result = data.get("result")
        if status != "1":
            reason = str(result or data.get("message") or "ABI not available")
            if "not verified" in reason.lower():
                logger.debug("contract_not_verified", chain_id=chain_id, result=reason)
                raise EtherscanError(NOT_VERIFIED_MESSAGE, status=status, not_verified=True)
            raise EtherscanError(reason, status=status)

        return data

    async def get_abi(self, chain_id: int, contract_address: str) -> list[dict[str, Any]]:
        """获取已验证合约的 ABI"""
        logger.debug("etherscan_get_abi", chain_id=chain_id, address=contract_address)

        data = await self._request(chain_id, {
            "module": "contract",
            "action": "getabi",
            "address": contract_address,
        })
        result = data.get("result")

        try:
            abi = json.loads(result) if isinstance(result, str) else result
        except json.JSONDecodeError as e:
            raise EtherscanError(f"Invalid ABI payload: {e}") from e
        if not isinstance(abi, list) or not all(isinstance(item, dict) for item in abi):
            raise EtherscanError("Invalid ABI payload: expected a list of objects")
        return abi

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=2),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def get_source_code(self, chain_id: int, contract_address: str) -> str | None:
        """获取合约源码文本；未验证或为空时返回 None"""
        logger.debug("etherscan_get_source", chain_id=chain_id, address=contract_address)

        data = await self._request(chain_id, {
            "module": "contract",
            "action": "getsourcecode",
            "address": contract_address,
        })
        result = data.get("result")

        if isinstance(result, list) and result:
            source = result[0].get("SourceCode") if isinstance(result[0], dict) else None
            return source if isinstance(source, str) and source else None
        return None
