"""
Tests for token_forge/api.py

Covers:
  - Registry routes: create, list by wallet, fetch by id
  - Error responses for missing / malformed fields
  - Solidity generate and compile routes (compiler mocked)
  - Request size limit and CORS headers
"""

from unittest.mock import patch

import pytest

from token_forge.api import MAX_SOURCE_LENGTH, create_app
from token_forge.config import Settings
from token_forge.local_compiler import CompilationResult, CompiledContract
from token_forge.registry import DeploymentRegistry

WALLET = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
CONTRACT = "0xdbF03B407c01E7cD3CBea99509d93f8DDDC8C6FB"

TOKEN_PAYLOAD = {
    "walletAddress": WALLET,
    "tokenName": "Test Token",
    "tokenSymbol": "TTK",
    "contractAddress": CONTRACT,
    "chainId": 56,
    "decimals": 18,
}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def settings(tmp_path):
    return Settings(db_path=str(tmp_path / "tokens.db"))


@pytest.fixture
def client(settings):
    app = create_app(settings)
    app.config["TESTING"] = True
    with app.test_client() as client:
        yield client


def _compiled(warnings=None, errors=None, contracts=None):
    if contracts is None:
        contracts = {"TTK": CompiledContract(name="TTK", abi=[{"type": "constructor"}], bytecode="6080")}
    return CompilationResult(
        compiler_version="0.8.30",
        optimizer_enabled=True,
        optimizer_runs=200,
        contracts=contracts if not errors else {},
        errors=errors or [],
        warnings=warnings or [],
        success=not errors,
    )


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.get_json() == {"status": "ok", "chainId": 56, "solcVersion": "0.8.30"}


def test_cors_header(client):
    response = client.get("/api/health", headers={"Origin": "http://localhost:3000"})
    assert response.headers.get("Access-Control-Allow-Origin") in ("*", "http://localhost:3000")


# ---------------------------------------------------------------------------
# Registry routes
# ---------------------------------------------------------------------------

class TestTokenRoutes:
    def test_create_and_list(self, client):
        response = client.post("/api/tokens", json=TOKEN_PAYLOAD)
        assert response.status_code == 200
        created = response.get_json()
        assert created["contractAddress"] == CONTRACT
        assert created["id"]
        assert created["deployedAt"]

        listed = client.get(f"/api/tokens/{WALLET.lower()}").get_json()
        assert listed == [created]

    def test_list_newest_first(self, client):
        for symbol in ("AAA", "BBB"):
            client.post("/api/tokens", json=dict(TOKEN_PAYLOAD, tokenSymbol=symbol))
        symbols = [t["tokenSymbol"] for t in client.get(f"/api/tokens/{WALLET}").get_json()]
        assert symbols == ["BBB", "AAA"]

    def test_list_unknown_wallet_empty(self, client):
        response = client.get("/api/tokens/0xfB6916095ca1df60bB79Ce92cE3Ea74c37c5d359")
        assert response.status_code == 200
        assert response.get_json() == []

    def test_list_invalid_wallet(self, client):
        assert client.get("/api/tokens/not-an-address").status_code == 400

    def test_get_by_id(self, client):
        created = client.post("/api/tokens", json=TOKEN_PAYLOAD).get_json()
        response = client.get(f"/api/token/{created['id']}")
        assert response.status_code == 200
        assert response.get_json() == created

    def test_get_missing(self, client):
        assert client.get("/api/token/does-not-exist").status_code == 404

    def test_missing_field(self, client):
        payload = dict(TOKEN_PAYLOAD)
        del payload["contractAddress"]
        response = client.post("/api/tokens", json=payload)
        assert response.status_code == 400
        body = response.get_json()
        assert body["error"] == "Failed to create token"
        assert "contractAddress" in body["message"]

    def test_malformed_address(self, client):
        response = client.post("/api/tokens", json=dict(TOKEN_PAYLOAD, contractAddress="0xnope"))
        assert response.status_code == 400

    def test_non_json_body(self, client):
        response = client.post("/api/tokens", data="hello", content_type="text/plain")
        assert response.status_code == 400

    def test_oversized_body_rejected(self, client):
        response = client.post(
            "/api/tokens",
            data="x" * (1024 * 1024 + 1),
            content_type="application/json",
        )
        assert response.status_code == 413


def test_injected_registry(settings, tmp_path):
    registry = DeploymentRegistry(str(tmp_path / "other.db"))
    app = create_app(settings, registry=registry)
    with app.test_client() as client:
        client.post("/api/tokens", json=TOKEN_PAYLOAD)
    assert len(registry.list_by_wallet(WALLET)) == 1


# ---------------------------------------------------------------------------
# Solidity routes
# ---------------------------------------------------------------------------

class TestGenerateRoute:
    def test_generate(self, client):
        response = client.post("/api/solidity/generate", json={"name": "Test Token", "symbol": "TTK", "decimals": 6})
        assert response.status_code == 200
        body = response.get_json()
        assert body["contractName"] == "TTK"
        assert "uint8 public constant decimals = 6;" in body["sourceCode"]

    def test_generate_invalid_symbol(self, client):
        response = client.post("/api/solidity/generate", json={"name": "Test Token", "symbol": "contract"})
        assert response.status_code == 400

    def test_generate_non_object_body(self, client):
        response = client.post("/api/solidity/generate", json=["Test Token", "TTK"])
        assert response.status_code == 400
        assert response.get_json() == {"error": "Expected a JSON object."}


class TestCompileRoute:
    def test_success_returns_warnings_as_errors_field(self, client):
        with patch("token_forge.api.compile_source", return_value=_compiled(warnings=["Warning: x"])) as compile_mock:
            response = client.post("/api/solidity/compile", json={"sourceCode": "src", "contractName": "TTK"})
        assert response.status_code == 200
        assert response.get_json() == {
            "abi": [{"type": "constructor"}],
            "bytecode": "6080",
            "errors": ["Warning: x"],
        }
        assert compile_mock.call_args.kwargs["solc_version"] == "0.8.30"

    def test_compile_errors_400(self, client):
        result = _compiled(errors=["ParserError: a", "TypeError: b"])
        with patch("token_forge.api.compile_source", return_value=result):
            response = client.post("/api/solidity/compile", json={"sourceCode": "src", "contractName": "TTK"})
        assert response.status_code == 400
        assert response.get_json() == {"error": "ParserError: a\nTypeError: b"}

    def test_missing_contract_404(self, client):
        with patch("token_forge.api.compile_source", return_value=_compiled()):
            response = client.post("/api/solidity/compile", json={"sourceCode": "src", "contractName": "ABC"})
        assert response.status_code == 404
        assert response.get_json()["error"] == "Contract ABC not found. Available: TTK"

    @pytest.mark.parametrize("payload", [
        {},
        {"sourceCode": "src"},
        {"contractName": "TTK"},
        {"sourceCode": 1, "contractName": "TTK"},
        ["src", "TTK"],
        "src",
    ])
    def test_invalid_input(self, client, payload):
        response = client.post("/api/solidity/compile", json=payload)
        assert response.status_code == 400
        assert response.get_json() == {"error": "Invalid input"}

    def test_source_too_large(self, client):
        response = client.post(
            "/api/solidity/compile",
            json={"sourceCode": "x" * (MAX_SOURCE_LENGTH + 1), "contractName": "TTK"},
        )
        assert response.status_code == 400

    def test_unexpected_failure_500(self, client):
        with patch("token_forge.api.compile_source", side_effect=RuntimeError("solc crashed")):
            response = client.post("/api/solidity/compile", json={"sourceCode": "src", "contractName": "TTK"})
        assert response.status_code == 500
        assert response.get_json() == {"error": "solc crashed"}
