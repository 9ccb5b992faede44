from __future__ import annotations

import asyncio
import json
from typing import Any

import httpx

from tx_guard.app_logging import get_logger
from tx_guard.errors import ConfigurationError, ReasoningServiceError

logger = get_logger(__name__)

EXPLANATION_TOOL_NAME = "generate_explanation_response"

# 强制模型通过函数调用返回的结构（所有字段必填，不允许额外字段）
EXPLANATION_TOOL: dict[str, Any] = {
    "type": "function",
    "function": {
        "name": EXPLANATION_TOOL_NAME,
        "description": (
            "Generate an explanation response with risk level, fraud score, description, "
            "reasoning, warnings, function metadata, and AI confidence."
        ),
        "strict": True,
        "parameters": {
            "type": "object",
            "properties": {
                "riskLevel": {
                    "type": "string",
                    "description": "Level of risk determined by analysis",
                    "enum": ["low", "medium", "high"],
                },
                "fraudScore": {
                    "type": "integer",
                    "description": "Fraud risk score between 0 and 100",
                    "minimum": 0,
                    "maximum": 100,
                },
                "description": {"type": "string", "description": "Brief description of the analysis result"},
                "reasoning": {"type": "string", "description": "Detailed analysis reasoning"},
                "warnings": {
                    "type": "array",
                    "description": "Array of warning messages relevant to the result",
                    "items": {"type": "string", "description": "A warning statement"},
                },
                "functionName": {
                    "type": "string",
                    "description": "Function name if the analysis involves a contract interaction",
                },
                "functionDescription": {
                    "type": "string",
                    "description": "Description of what the contract function does",
                },
                "aiConfidence": {
                    "type": "integer",
                    "description": "AI confidence score between 0 and 100 for the explanation",
                    "minimum": 0,
                    "maximum": 100,
                },
            },
            "required": [
                "riskLevel",
                "fraudScore",
                "description",
                "reasoning",
                "warnings",
                "functionName",
                "functionDescription",
                "aiConfidence",
            ],
            "additionalProperties": False,
        },
    },
}

SYSTEM_PROMPT = """You are an expert blockchain security analyst specializing in fraud detection.
Analyze the provided transaction data and return your fraud assessment through the provided function.
Focus on detecting common fraud patterns like:
- Suspicious contract interactions
- High-risk function calls
- Unusual transaction patterns
- Known malicious contracts
- Verified code (unverified code is a red flag)"""


class ReasoningClient:
    """推理服务客户端（OpenAI 兼容 chat completions 接口）"""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        model: str,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not api_key:
            raise ConfigurationError("Reasoning service API key is not configured", details="REASONING_API_KEY")
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._transport = transport

    async def explain(self, user_prompt: str, trace_id: str | None = None) -> dict[str, Any]:
        """调用推理服务，返回函数调用参数（未校验）"""
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        request_body = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": user_prompt},
            ],
            "tools": [EXPLANATION_TOOL],
            "tool_choice": {"type": "function", "function": {"name": EXPLANATION_TOOL_NAME}},
        }

        logger.debug("reasoning_request", model=self.model, trace_id=trace_id, prompt_chars=len(user_prompt))

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await asyncio.wait_for(
                    client.post(f"{self.base_url}/v1/chat/completions", headers=headers, json=request_body),
                    timeout=self.timeout,
                )
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            logger.error("reasoning_timeout", trace_id=trace_id, error=str(e))
            raise ReasoningServiceError("Reasoning request timeout") from e
        except httpx.RequestError as e:
            logger.error("reasoning_request_error", trace_id=trace_id, error=str(e))
            raise ReasoningServiceError(f"Reasoning request error: {e}") from e

        if response.status_code != 200:
            logger.error("reasoning_error", trace_id=trace_id, status_code=response.status_code, error=response.text[:500])
            raise ReasoningServiceError(
                f"Reasoning request failed with status {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ReasoningServiceError("Reasoning response is not valid JSON") from e

        arguments = self._extract_arguments(data)
        logger.info("reasoning_response", trace_id=trace_id, risk_level=arguments.get("riskLevel"))
        return arguments

    @staticmethod
    def _extract_arguments(data: Any) -> dict[str, Any]:
        """优先读取 tool_calls 的参数，其次是 message.content"""
        if not isinstance(data, dict):
            raise ReasoningServiceError("Reasoning response is not a JSON object")
        choices = data.get("choices") or []
        if not isinstance(choices, list) or not choices:
            raise ReasoningServiceError("Empty response from reasoning service")

        choice = choices[0]
        message = choice.get("message") if isinstance(choice, dict) else None
        if not isinstance(message, dict):
            raise ReasoningServiceError("Reasoning response has no message")

        payload: Any = None
        tool_calls = message.get("tool_calls") or []
        for call in tool_calls if isinstance(tool_calls, list) else []:
            function = call.get("function") if isinstance(call, dict) else None
            if isinstance(function, dict) and function.get("name") == EXPLANATION_TOOL_NAME:
                payload = function.get("arguments")
                break
        if payload is None:
            payload = message.get("content")
        if not payload:
            raise ReasoningServiceError("No response content from reasoning service")

        # 部分兼容实现直接返回对象形式的 arguments
        if isinstance(payload, dict):
            return payload
        if not isinstance(payload, str):
            raise ReasoningServiceError("Reasoning response arguments are not a JSON string")
        try:
            arguments = json.loads(payload)
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning("reasoning_json_parse_error", content=str(payload)[:200])
            raise ReasoningServiceError("Reasoning response is not valid JSON") from e
        if not isinstance(arguments, dict):
            raise ReasoningServiceError("Reasoning response is not a JSON object")
        return arguments
