from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Etherscan v2 统一端点，一个 key 覆盖 Etherscan 系列所有链
ETHERSCAN_V2_BASE_URL = "https://api.etherscan.io/v2/api"
ETHERSCAN_TIMEOUT_S = 10.0

REASONING_BASE_URL = "https://api.openai.com"
REASONING_MODEL = "gpt-5-mini"
REASONING_TIMEOUT_S = 60.0


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # 基础配置
    app_env: str = Field(default="local", alias="APP_ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="json", alias="LOG_FORMAT")
    port: int = Field(default=3000, alias="PORT")

    # 合约验证服务 (Etherscan)
    etherscan_api_key: str = Field(default="", alias="ETHERSCAN_API_KEY")
    etherscan_base_url: str = Field(default=ETHERSCAN_V2_BASE_URL, alias="ETHERSCAN_BASE_URL")
    etherscan_timeout_s: float = Field(default=ETHERSCAN_TIMEOUT_S, alias="ETHERSCAN_TIMEOUT_S")

    # 网络失败时的 ABI 兜底策略: none = 不兜底, generic = 使用最小 ERC-20 ABI
    abi_fallback_policy: Literal["none", "generic"] = Field(default="none", alias="ABI_FALLBACK_POLICY")

    # 推理服务 (OpenAI 兼容接口)
    reasoning_base_url: str = Field(default=REASONING_BASE_URL, alias="REASONING_BASE_URL")
    reasoning_api_key: str = Field(default="", alias="REASONING_API_KEY")
    reasoning_model: str = Field(default=REASONING_MODEL, alias="REASONING_MODEL")
    reasoning_timeout_s: float = Field(default=REASONING_TIMEOUT_S, alias="REASONING_TIMEOUT_S")

    # Trace 配置
    trace_enabled: bool = Field(default=True, alias="TRACE_ENABLED")

    @property
    def reasoning_configured(self) -> bool:
        return bool(self.reasoning_api_key)


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
