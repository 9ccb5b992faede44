from __future__ import annotations

# 常用函数选择器 -> 签名（无 ABI 时使用，只能识别方法，无法还原参数）
SELECTOR_SIGNATURES: dict[str, str] = {
    # ERC-20
    "0xa9059cbb": "transfer(address,uint256)",
    "0x23b872dd": "transferFrom(address,address,uint256)",
    "0x095ea7b3": "approve(address,uint256)",
    "0x70a08231": "balanceOf(address)",
    "0xdd62ed3e": "allowance(address,address)",
    "0x18160ddd": "totalSupply()",
    "0x313ce567": "decimals()",
    "0x06fdde03": "name()",
    "0x95d89b41": "symbol()",
    "0x39509351": "increaseAllowance(address,uint256)",
    "0xa457c2d7": "decreaseAllowance(address,uint256)",
    "0xd505accf": "permit(address,address,uint256,uint256,uint8,bytes32,bytes32)",

    # Mint / Burn
    "0x40c10f19": "mint(address,uint256)",
    "0x1249c58b": "mint()",
    "0xa0712d68": "mint(uint256)",
    "0x42966c68": "burn(uint256)",

    # Ownable
    "0x8da5cb5b": "owner()",
    "0x715018a6": "renounceOwnership()",
    "0xf2fde38b": "transferOwnership(address)",

    # Withdraw / WETH
    "0x3ccfd60b": "withdraw()",
    "0x2e1a7d4d": "withdraw(uint256)",
    "0xd0e30db0": "deposit()",

    # ERC-721
    "0x42842e0e": "safeTransferFrom(address,address,uint256)",
    "0xb88d4fde": "safeTransferFrom(address,address,uint256,bytes)",
    "0x6352211e": "ownerOf(uint256)",
    "0xa22cb465": "setApprovalForAll(address,bool)",
    "0x081812fc": "getApproved(uint256)",
    "0xe985e9c5": "isApprovedForAll(address,address)",

    # Uniswap V2 Router
    "0x38ed1739": "swapExactTokensForTokens(uint256,uint256,address[],address,uint256)",
    "0x7ff36ab5": "swapExactETHForTokens(uint256,address[],address,uint256)",
    "0x18cbafe5": "swapExactTokensForETH(uint256,uint256,address[],address,uint256)",
    "0xfb3bdb41": "swapETHForExactTokens(uint256,address[],address,uint256)",
    "0xe8e33700": "addLiquidity(address,address,uint256,uint256,uint256,uint256,address,uint256)",
    "0xf305d719": "addLiquidityETH(address,uint256,uint256,uint256,address,uint256)",

    # Multicall
    "0xac9650d8": "multicall(bytes[])",
    "0x5ae401dc": "multicall(uint256,bytes[])",
}


def lookup(selector: str) -> str | None:
    """按 4 字节选择器查询签名（大小写不敏感）"""
    return SELECTOR_SIGNATURES.get(selector.lower())
