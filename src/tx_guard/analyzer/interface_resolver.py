"""
合约 ABI 解析

(chainId, address) -> InterfaceResolution，任何失败都折叠为 provenance=none
（或按 ABI_FALLBACK_POLICY=generic 使用最小 ERC-20 ABI），不向外抛异常。
"""
from __future__ import annotations

import copy
from typing import Literal

import httpx
from eth_utils import is_hex_address

from tx_guard.app_logging import get_logger
from tx_guard.errors import InterfaceResolutionError
from tx_guard.integrations import GENERIC_TOKEN_INTERFACE, EtherscanClient, EtherscanError

from .schemas import InterfaceResolution

logger = get_logger(__name__)

FallbackPolicy = Literal["none", "generic"]


class ContractInterfaceResolver:
    """合约接口解析器"""

    def __init__(self, client: EtherscanClient, fallback_policy: FallbackPolicy = "none"):
        self.client = client
        self.fallback_policy = fallback_policy

    async def resolve(self, chain_id: int | None, address: str | None) -> InterfaceResolution:
        try:
            return await self._resolve(chain_id, address)
        except InterfaceResolutionError as e:
            logger.info(
                "interface_unresolved",
                chain_id=chain_id,
                address=address,
                error_kind=e.error_kind,
                error=e.message,
            )
            return InterfaceResolution(provenance="none", error=e.message, error_kind=e.error_kind)

    async def _resolve(self, chain_id: int | None, address: str | None) -> InterfaceResolution:
        if not isinstance(address, str) or not is_hex_address(address):
            raise InterfaceResolutionError(f"Invalid contract address: {address!r}", "invalid_input")
        if isinstance(chain_id, bool) or not isinstance(chain_id, int) or chain_id <= 0:
            raise InterfaceResolutionError(f"Invalid chain id: {chain_id!r}", "invalid_input")
        if not self.client.configured:
            raise InterfaceResolutionError("Etherscan API key not configured", "missing_credential")

        try:
            abi = await self.client.get_abi(chain_id, address)
        except httpx.TransportError as e:
            reason = f"{type(e).__name__}: {e}" if str(e) else type(e).__name__
            return self._transport_failure(chain_id, address, reason)
        except EtherscanError as e:
            kind = "not_verified" if e.not_verified else "service_error"
            raise InterfaceResolutionError(str(e), kind) from e

        source_text = await self._fetch_source(chain_id, address)
        logger.info(
            "interface_resolved",
            chain_id=chain_id,
            address=address,
            functions=sum(1 for item in abi if item.get("type") == "function"),
            source_code_available=source_text is not None,
        )
        return InterfaceResolution(interface=abi, provenance="verified-source", source_text=source_text)

    def _transport_failure(self, chain_id: int, address: str, reason: str) -> InterfaceResolution:
        if self.fallback_policy == "generic":
            logger.warning("interface_generic_fallback", chain_id=chain_id, address=address, error=reason)
            return InterfaceResolution(
                interface=copy.deepcopy(GENERIC_TOKEN_INTERFACE),
                provenance="generic-fallback",
                error=reason,
                error_kind="transport_error",
            )
        raise InterfaceResolutionError(reason, "transport_error")

    async def _fetch_source(self, chain_id: int, address: str) -> str | None:
        """源码获取失败不影响 ABI 结果"""
        try:
            return await self.client.get_source_code(chain_id, address)
        except (httpx.TransportError, EtherscanError) as e:
            logger.debug("source_code_unavailable", chain_id=chain_id, address=address, error=str(e))
            return None
