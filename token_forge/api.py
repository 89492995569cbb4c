"""
Token Forge HTTP API: Flask application

Serves the deployment registry and the Solidity compile endpoint used by the
browser front end and by ``token_forge.clients``.

Routes:
  POST /api/tokens                  record a confirmed deployment
  GET  /api/tokens/<walletAddress>  deployments by wallet, newest first
  GET  /api/token/<id>              one deployment record
  POST /api/solidity/generate       render contract source for name/symbol/decimals
  POST /api/solidity/compile        compile source, return ABI + bytecode
  GET  /api/health
"""

import logging
from typing import Optional

from flask import Flask, jsonify, request
from flask_cors import CORS

from .config import Settings, load_settings
from .contract_template import TokenContractSpec
from .errors import RegistryError, ValidationError
from .local_compiler import compile_source
from .registry import ChainVerifier, DeploymentRegistry

logger = logging.getLogger(__name__)

MAX_SOURCE_LENGTH = 200_000  # characters


def _build_verifier(settings: Settings) -> Optional[ChainVerifier]:
    if not settings.verify_on_chain:
        return None
    from web3 import Web3
    return ChainVerifier(Web3(Web3.HTTPProvider(settings.rpc_url)))


def create_app(
    settings: Optional[Settings] = None,
    registry: Optional[DeploymentRegistry] = None,
) -> Flask:
    settings = settings or load_settings()
    if registry is None:
        registry = DeploymentRegistry(settings.db_path, verifier=_build_verifier(settings))

    app = Flask(__name__)
    # Security: limit request payload size
    app.config["MAX_CONTENT_LENGTH"] = settings.max_content_length
    app.config["TOKEN_FORGE_SETTINGS"] = settings
    app.config["TOKEN_FORGE_REGISTRY"] = registry
    CORS(app, resources={r"/api/*": {"origins": "*"}})

    @app.route("/api/health", methods=["GET"])
    def api_health():
        """Health check endpoint."""
        return jsonify({
            "status": "ok",
            "chainId": settings.chain_id,
            "solcVersion": settings.solc_version,
        })

    @app.route("/api/tokens", methods=["POST"])
    def api_create_token():
        """
        Record a deployment.

        Expects JSON: { walletAddress, tokenName, tokenSymbol,
        contractAddress, chainId, decimals }.  ``id`` and ``deployedAt`` are
        assigned here.
        """
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({"error": "Failed to create token", "message": "Expected a JSON object."}), 400

        missing = [
            key for key in (
                "walletAddress", "tokenName", "tokenSymbol", "contractAddress", "chainId", "decimals",
            )
            if key not in data
        ]
        if missing:
            return jsonify({
                "error": "Failed to create token",
                "message": f"Missing field(s): {', '.join(missing)}",
            }), 400

        try:
            record = registry.record(
                wallet_address=data["walletAddress"],
                token_name=data["tokenName"],
                token_symbol=data["tokenSymbol"],
                contract_address=data["contractAddress"],
                chain_id=data["chainId"],
                decimals=data["decimals"],
            )
        except ValidationError as e:
            logger.warning("Rejected token record: %s", e)
            return jsonify({"error": "Failed to create token", "message": str(e)}), 400
        except RegistryError as e:
            logger.error("Error creating token: %s", e)
            return jsonify({"error": "Failed to create token", "message": str(e)}), 500

        return jsonify(record.to_dict())

    @app.route("/api/tokens/<wallet_address>", methods=["GET"])
    def api_tokens_by_wallet(wallet_address: str):
        """Return deployments made by ``wallet_address``, newest first."""
        try:
            records = registry.list_by_wallet(wallet_address)
        except ValidationError as e:
            return jsonify({"error": "Failed to fetch tokens", "message": str(e)}), 400
        except RegistryError as e:
            logger.error("Error fetching tokens: %s", e)
            return jsonify({"error": "Failed to fetch tokens", "message": str(e)}), 500
        return jsonify([r.to_dict() for r in records])

    @app.route("/api/token/<record_id>", methods=["GET"])
    def api_token_by_id(record_id: str):
        try:
            record = registry.get(record_id)
        except RegistryError as e:
            logger.error("Error fetching token %s: %s", record_id, e)
            return jsonify({"error": "Failed to fetch token", "message": str(e)}), 500
        if record is None:
            return jsonify({"error": f"Token {record_id} not found"}), 404
        return jsonify(record.to_dict())

    @app.route("/api/solidity/generate", methods=["POST"])
    def api_generate():
        """Render contract source. Expects JSON: { name, symbol, decimals }."""
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({"error": "Expected a JSON object."}), 400
        try:
            spec = TokenContractSpec.from_raw(
                data.get("name"), data.get("symbol"), data.get("decimals", 18)
            )
        except ValidationError as e:
            return jsonify({"error": str(e)}), 400
        return jsonify({"sourceCode": spec.generate(), "contractName": spec.contract_name})

    @app.route("/api/solidity/compile", methods=["POST"])
    def api_compile():
        """
        Compile Solidity source.

        Expects JSON: { "sourceCode": "...", "contractName": "TTK" }.
        Returns { abi, bytecode, errors } where ``errors`` lists compiler
        warnings; compile errors come back as 400 with the messages joined.
        """
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({"error": "Invalid input"}), 400
        source_code = data.get("sourceCode")
        contract_name = data.get("contractName")
        if not isinstance(source_code, str) or not isinstance(contract_name, str):
            return jsonify({"error": "Invalid input"}), 400
        if len(source_code) > MAX_SOURCE_LENGTH:
            return jsonify({
                "error": f"Source too large. Maximum {MAX_SOURCE_LENGTH} characters allowed."
            }), 400

        try:
            result = compile_source(
                source_code,
                solc_version=settings.solc_version,
                optimizer_runs=settings.optimizer_runs,
            )
        except Exception as e:
            logger.error("Compilation failed: %s", e)
            return jsonify({"error": str(e) or "Compilation failed"}), 500

        if result.errors:
            return jsonify({"error": "\n".join(result.errors)}), 400

        contract = result.contracts.get(contract_name)
        if contract is None:
            available = ", ".join(sorted(result.contracts)) or "none"
            return jsonify({"error": f"Contract {contract_name} not found. Available: {available}"}), 404

        response = contract.to_dict()
        response["errors"] = result.warnings
        return jsonify(response)

    return app
