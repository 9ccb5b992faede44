from .etherscan_client import GENERIC_TOKEN_INTERFACE, NOT_VERIFIED_MESSAGE, EtherscanClient, EtherscanError

__all__ = ["EtherscanClient", "EtherscanError", "GENERIC_TOKEN_INTERFACE", "NOT_VERIFIED_MESSAGE"]
