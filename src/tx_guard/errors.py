from __future__ import annotations


class TxGuardError(Exception):
    """服务错误基类"""

    kind = "internal_error"

    def __init__(self, message: str, details: str | None = None):
        super().__init__(message)
        self.message = message
        self.details = details


class InputValidationError(TxGuardError):
    """请求字段缺失或类型错误"""

    kind = "invalid_input"


class DecodeError(TxGuardError):
    """交易信封无法解析"""

    kind = "decode_error"


class InterfaceResolutionError(TxGuardError):
    """合约 ABI 获取失败（网络 / 超时 / 未验证）"""

    kind = "interface_resolution_error"

    def __init__(self, message: str, error_kind: str = "service_error"):
        super().__init__(message)
        self.error_kind = error_kind


class ReasoningServiceError(TxGuardError):
    """推理服务调用失败或返回不符合约定"""

    kind = "reasoning_service_error"

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ConfigurationError(TxGuardError):
    """必需的配置缺失"""

    kind = "configuration_error"
