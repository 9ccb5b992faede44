from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictStr


class RawTxRequest(BaseModel):
    """原始交易请求"""
    model_config = ConfigDict(populate_by_name=True)

    raw_tx: StrictStr = Field(alias="rawTx", min_length=1)


class RpcRequest(BaseModel):
    """JSON-RPC 形式的交易请求（params[0] 为交易对象）"""
    id: str | int | None = None
    method: str | None = None
    params: list[Any] = Field(default_factory=list)


class TxTypeInfo(BaseModel):
    type: str
    type_number: int = Field(serialization_alias="typeNumber")
    name: str
    description: str


class TxTypesResponse(BaseModel):
    supported_types: list[TxTypeInfo] = Field(serialization_alias="supportedTypes")
    timestamp: str


class HealthResponse(BaseModel):
    """健康检查响应"""
    status: Literal["ok", "degraded"]
    version: str
    dependencies: dict[str, str] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    error: str
    details: str | None = None
