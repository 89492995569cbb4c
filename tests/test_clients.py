"""
Tests for token_forge/clients.py

Covers:
  - RemoteCompiler success, compile errors and transport failures
  - RegistryClient record / list against a mocked requests.Session
"""

from unittest.mock import MagicMock

import pytest
import requests

from token_forge.clients import RegistryClient, RemoteCompiler
from token_forge.errors import CompileError, RegistryError, ValidationError

WALLET = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
CONTRACT = "0xdbF03B407c01E7cD3CBea99509d93f8DDDC8C6FB"

RECORD_JSON = {
    "id": "0b7f7e3c-9b9f-4c3c-8e0f-2f7c1c1a7f00",
    "walletAddress": WALLET,
    "tokenName": "Test Token",
    "tokenSymbol": "TTK",
    "contractAddress": CONTRACT,
    "chainId": 56,
    "decimals": 18,
    "deployedAt": "2025-01-01T00:00:00+00:00",
}


def _response(status=200, payload=None):
    response = MagicMock()
    response.status_code = status
    response.ok = status < 400
    response.json.return_value = payload if payload is not None else {}
    if status >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status} Error")
    return response


class TestRemoteCompiler:
    def test_success(self):
        session = MagicMock()
        session.post.return_value = _response(payload={"abi": [], "bytecode": "6080", "errors": ["warn"]})
        contract, warnings = RemoteCompiler("http://forge.local/", session=session).compile("src", "TTK")

        assert contract.name == "TTK"
        assert contract.bytecode == "6080"
        assert warnings == ["warn"]
        url = session.post.call_args.args[0]
        assert url == "http://forge.local/api/solidity/compile"
        assert session.post.call_args.kwargs["json"] == {"sourceCode": "src", "contractName": "TTK"}

    def test_compile_error(self):
        session = MagicMock()
        session.post.return_value = _response(400, {"error": "ParserError: Expected ';'"})
        with pytest.raises(CompileError, match="ParserError"):
            RemoteCompiler("http://forge.local", session=session).compile("src", "TTK")

    def test_service_down(self):
        session = MagicMock()
        session.post.side_effect = requests.ConnectionError("refused")
        with pytest.raises(CompileError, match="unavailable"):
            RemoteCompiler("http://forge.local", session=session).compile("src", "TTK")


class TestRegistryClient:
    def test_record(self):
        session = MagicMock()
        session.post.return_value = _response(payload=RECORD_JSON)
        record = RegistryClient("http://forge.local", session=session).record(
            WALLET, "Test Token", "TTK", CONTRACT, 56, 18
        )
        assert record.to_dict() == RECORD_JSON
        assert session.post.call_args.kwargs["json"]["contractAddress"] == CONTRACT

    def test_record_rejected(self):
        session = MagicMock()
        session.post.return_value = _response(400, {"error": "Failed to create token", "message": "bad address"})
        with pytest.raises(ValidationError, match="bad address"):
            RegistryClient("http://forge.local", session=session).record(
                WALLET, "Test Token", "TTK", "0x1", 56, 18
            )

    def test_record_server_error(self):
        session = MagicMock()
        session.post.return_value = _response(500, {"error": "Failed to create token"})
        with pytest.raises(RegistryError):
            RegistryClient("http://forge.local", session=session).record(
                WALLET, "Test Token", "TTK", CONTRACT, 56, 18
            )

    @pytest.mark.parametrize("payload", [
        {"id": "abc"},
        dict(RECORD_JSON, chainId=None),
        ["not", "a", "record"],
    ])
    def test_record_malformed_success_body(self, payload):
        session = MagicMock()
        session.post.return_value = _response(payload=payload)
        with pytest.raises(RegistryError):
            RegistryClient("http://forge.local", session=session).record(
                WALLET, "Test Token", "TTK", CONTRACT, 56, 18
            )

    def test_list_by_wallet(self):
        session = MagicMock()
        session.get.return_value = _response(payload=[RECORD_JSON])
        records = RegistryClient("http://forge.local", session=session).list_by_wallet(WALLET)
        assert [r.token_symbol for r in records] == ["TTK"]

    def test_list_failure(self):
        session = MagicMock()
        session.get.return_value = _response(500)
        with pytest.raises(RegistryError):
            RegistryClient("http://forge.local", session=session).list_by_wallet(WALLET)
