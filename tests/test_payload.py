"""Tests for JSON-RPC transaction normalization."""

import pytest

from tx_guard.analyzer.payload import parse_chain_id, parse_rpc_transaction
from tx_guard.errors import InputValidationError

from conftest import RECIPIENT, SENDER


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (1, 1),
        ("0x1", 1),
        ("0X89", 137),
        ("137", 137),
        (" 10 ", 10),
        (None, None),
    ],
)
def test_chain_id_accepted_forms(raw, expected):
    assert parse_chain_id(raw) == expected


@pytest.mark.parametrize("raw", [True, 1.0, "", "0x", "1a", "-1", 0, "0", "0x0", [1], {"id": 1}])
def test_chain_id_rejected_forms(raw):
    with pytest.raises(InputValidationError):
        parse_chain_id(raw)


def test_defaults_for_missing_fields():
    tx = parse_rpc_transaction({"to": RECIPIENT})

    assert tx.value == "0"
    assert tx.gas_limit == "21000"
    assert tx.call_data == "0x"
    assert tx.chain_id is None
    assert tx.hash == ""
    assert tx.classification == "eth_transfer"
    assert tx.decoded_call.method == "transfer"


def test_amounts_are_normalized_to_decimal_strings():
    tx = parse_rpc_transaction({
        "chainId": "0x1",
        "from": SENDER,
        "to": RECIPIENT,
        "value": "0xde0b6b3a7640000",
        "gas": "0x5208",
    })
    assert tx.value == "1000000000000000000"
    assert tx.gas_limit == "21000"
    assert tx.sender == SENDER
    assert tx.to_dict()["from"] == SENDER


def test_large_values_keep_precision():
    tx = parse_rpc_transaction({"to": RECIPIENT, "value": str(2**255)})
    assert tx.value == str(2**255)


def test_contract_interaction_and_creation():
    call = parse_rpc_transaction({"to": RECIPIENT, "data": "0xA9059CBB"})
    assert call.classification == "contract_interaction"
    assert call.call_data == "0xa9059cbb"
    assert call.decoded_call is None

    creation = parse_rpc_transaction({"data": "0x6080"})
    assert creation.classification == "contract_creation"
    assert creation.is_contract_creation is True


@pytest.mark.parametrize(("recipient", "data"), [("0x1234", "0xa9059cbb"), ("0xnotanaddress", "0x")])
def test_malformed_recipient_classifies_as_unknown(recipient, data):
    tx = parse_rpc_transaction({"chainId": 1, "to": recipient, "data": data})

    assert tx.classification == "unknown"
    assert tx.is_contract_interaction is False
    assert tx.is_contract_creation is False
    assert tx.decoded_call is None


@pytest.mark.parametrize(
    "payload",
    [
        {"to": RECIPIENT, "value": "1.5"},
        {"to": RECIPIENT, "value": -1},
        {"to": RECIPIENT, "gas": "lots"},
        {"to": RECIPIENT, "data": "0xzz"},
        {"to": RECIPIENT, "data": 42},
        {"to": 42},
        "not an object",
    ],
)
def test_invalid_payloads_are_rejected(payload):
    with pytest.raises(InputValidationError):
        parse_rpc_transaction(payload)
