"""Tests for the reasoning client and the fraud assessment state machine."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from tx_guard.analyzer.fraud_orchestrator import FraudAnalysisOrchestrator, build_context, build_prompt
from tx_guard.analyzer.payload import parse_rpc_transaction
from tx_guard.analyzer.schemas import DecodedCall, InterfaceResolution
from tx_guard.clients import EXPLANATION_TOOL_NAME, ReasoningClient
from tx_guard.errors import ConfigurationError

from conftest import ERC20_ABI, RECIPIENT, TOKEN, VALID_VERDICT, reasoning_reply, transfer_calldata

DEGRADED = {
    "riskLevel": "high",
    "fraudScore": 100,
    "description": "AI analysis failed",
    "reasoning": "Unable to analyze transaction due to AI service error",
    "warnings": ["AI analysis unavailable"],
    "aiConfidence": 0,
}


def make_client(handler, requests: list[httpx.Request] | None = None) -> ReasoningClient:
    def recording(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        return handler(request)

    return ReasoningClient(
        base_url="https://reasoning.test",
        api_key="secret",
        model="gpt-5-mini",
        timeout=5.0,
        transport=httpx.MockTransport(recording),
    )


def contract_call():
    tx = parse_rpc_transaction({"chainId": "0x1", "to": TOKEN, "data": transfer_calldata(), "value": "0"})
    return tx.model_copy(update={
        "decoded_call": DecodedCall(method="transfer", arguments=[RECIPIENT, "1000000000000000000"]),
        "interface_provenance": "verified-source",
    })


RESOLVED = InterfaceResolution(interface=ERC20_ABI, provenance="verified-source", source_text="contract Token {}")


class _Screen:
    async def screen(self, address: str) -> list[str]:
        return [f"{address} reported as phishing"]


def test_client_requires_api_key():
    with pytest.raises(ConfigurationError):
        ReasoningClient(base_url="https://reasoning.test", api_key="", model="m")


@pytest.mark.asyncio
async def test_eth_transfer_short_circuits_without_calling_service():
    requests: list[httpx.Request] = []
    orchestrator = FraudAnalysisOrchestrator(make_client(lambda r: httpx.Response(500), requests))

    result = await orchestrator.assess(parse_rpc_transaction({"chainId": 1, "to": RECIPIENT, "value": "5"}))

    assert result.success is True
    assert result.analysis.risk_tier == "low"
    assert result.analysis.fraud_score == 5
    assert result.analysis.ai_confidence == 95
    assert result.analysis.description == "Simple ETH Transfer"
    assert requests == []


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [{"chainId": 1, "data": "0x6080"}, {"chainId": 1, "to": "0x12", "data": "0x"}])
async def test_other_classifications_are_high_risk_without_calling_service(payload):
    requests: list[httpx.Request] = []
    orchestrator = FraudAnalysisOrchestrator(make_client(lambda r: httpx.Response(500), requests))

    result = await orchestrator.assess(parse_rpc_transaction(payload))

    assert result.success is False
    assert result.analysis.risk_tier == "high"
    assert result.analysis.fraud_score == 100
    assert result.analysis.ai_confidence == 0
    assert result.analysis.warnings == ["Unknown transaction pattern"]
    assert requests == []


@pytest.mark.asyncio
async def test_contract_interaction_uses_validated_verdict():
    requests: list[httpx.Request] = []
    orchestrator = FraudAnalysisOrchestrator(
        make_client(lambda r: httpx.Response(200, json=reasoning_reply(VALID_VERDICT)), requests)
    )

    result = await orchestrator.assess(contract_call(), RESOLVED)

    assert result.success is True
    body = result.to_dict()["analysis"]
    assert body["classification"] == "contract_interaction"
    assert body["riskTier"] == "medium"
    assert body["fraudScore"] == 35
    assert body["aiConfidence"] == 80
    assert body["warnings"] == ["Recipient has no history"]
    assert body["contractInfo"]["functionName"] == "transfer"
    assert body["contractInfo"]["interfaceAvailable"] is True
    assert body["contractInfo"]["provenance"] == "verified-source"
    assert body["contractInfo"]["sourceCodeAvailable"] is True

    sent = json.loads(requests[0].content)
    assert requests[0].url.path == "/v1/chat/completions"
    assert requests[0].headers["authorization"] == "Bearer secret"
    assert sent["tool_choice"]["function"]["name"] == EXPLANATION_TOOL_NAME
    schema = sent["tools"][0]["function"]["parameters"]
    assert schema["additionalProperties"] is False
    assert set(schema["required"]) == set(VALID_VERDICT)
    assert "CONTRACT SOURCE CODE" in sent["messages"][1]["content"]


@pytest.mark.asyncio
async def test_verdict_in_message_content_is_accepted():
    orchestrator = FraudAnalysisOrchestrator(
        make_client(lambda r: httpx.Response(200, json=reasoning_reply(VALID_VERDICT, via_tool=False)))
    )
    result = await orchestrator.assess(contract_call(), RESOLVED)
    assert result.success is True
    assert result.analysis.fraud_score == 35


def _tool_reply(arguments) -> dict:
    """Reply whose tool call carries non-string arguments."""
    reply = reasoning_reply("{}")
    reply["choices"][0]["message"]["tool_calls"][0]["function"]["arguments"] = arguments
    return reply


def _assert_degraded(result):
    body = result.to_dict()["analysis"]
    assert result.success is False
    assert result.error
    assert body["riskTier"] == DEGRADED["riskLevel"]
    for key in ("fraudScore", "description", "reasoning", "warnings", "aiConfidence"):
        assert body[key] == DEGRADED[key]


@pytest.mark.asyncio
async def test_missing_fraud_score_degrades():
    verdict = {k: v for k, v in VALID_VERDICT.items() if k != "fraudScore"}
    orchestrator = FraudAnalysisOrchestrator(make_client(lambda r: httpx.Response(200, json=reasoning_reply(verdict))))

    _assert_degraded(await orchestrator.assess(contract_call(), RESOLVED))


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "override",
    [
        {"fraudScore": 150},
        {"aiConfidence": -1},
        {"riskLevel": "critical"},
        {"fraudScore": "35"},
        {"warnings": "none"},
        {"extra": True},
    ],
)
async def test_schema_violations_degrade(override):
    verdict = {**VALID_VERDICT, **override}
    orchestrator = FraudAnalysisOrchestrator(make_client(lambda r: httpx.Response(200, json=reasoning_reply(verdict))))

    _assert_degraded(await orchestrator.assess(contract_call(), RESOLVED))


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="upstream error"),
        httpx.Response(200, json={"choices": []}),
        httpx.Response(200, json=reasoning_reply("not json at all")),
        httpx.Response(200, text="<html>"),
        httpx.Response(200, json=[]),
        httpx.Response(200, json="ok"),
        httpx.Response(200, json={"choices": ["x"]}),
        httpx.Response(200, json={"choices": {"message": {}}}),
        httpx.Response(200, json={"choices": [{"message": "text"}]}),
        httpx.Response(200, json=_tool_reply(42)),
        httpx.Response(200, json=_tool_reply(["riskLevel"])),
        httpx.Response(200, json=reasoning_reply("[1, 2]")),
    ],
)
async def test_service_failures_degrade(response):
    orchestrator = FraudAnalysisOrchestrator(make_client(lambda r: response))
    _assert_degraded(await orchestrator.assess(contract_call(), RESOLVED))


@pytest.mark.asyncio
async def test_tool_arguments_as_object_are_accepted():
    orchestrator = FraudAnalysisOrchestrator(
        make_client(lambda r: httpx.Response(200, json=_tool_reply(dict(VALID_VERDICT))))
    )
    result = await orchestrator.assess(contract_call(), RESOLVED)

    assert result.success is True
    assert result.analysis.fraud_score == 35


@pytest.mark.asyncio
async def test_timeout_degrades():
    def slow(request):
        raise httpx.ReadTimeout("timed out", request=request)

    result = await FraudAnalysisOrchestrator(make_client(slow)).assess(contract_call(), RESOLVED)
    _assert_degraded(result)
    assert result.error == "Reasoning request timeout"


@pytest.mark.asyncio
async def test_stalled_service_is_bounded_by_overall_timeout():
    async def stalled(request):
        await asyncio.sleep(5)
        return httpx.Response(200, json=reasoning_reply(VALID_VERDICT))

    client = ReasoningClient(
        base_url="https://reasoning.test",
        api_key="secret",
        model="gpt-5-mini",
        timeout=0.05,
        transport=httpx.MockTransport(stalled),
    )
    result = await FraudAnalysisOrchestrator(client).assess(contract_call(), RESOLVED)

    _assert_degraded(result)
    assert result.error == "Reasoning request timeout"


@pytest.mark.asyncio
async def test_address_screen_warnings_are_reported():
    orchestrator = FraudAnalysisOrchestrator(
        make_client(lambda r: httpx.Response(200, json=reasoning_reply(VALID_VERDICT))),
        address_screen=_Screen(),
    )
    result = await orchestrator.assess(contract_call(), RESOLVED)
    assert result.analysis.warnings[-1].endswith("reported as phishing")


def test_prompt_contains_context():
    context = build_context(contract_call(), RESOLVED)
    prompt = build_prompt(context)

    assert context["chainId"] == 1
    assert context["interfaceAvailable"] is True
    assert "- Chain ID: 1" in prompt
    assert "- Method: transfer" in prompt
    assert "- ABI Source: verified-source" in prompt
    assert "CONTRACT ABI:" in prompt
