"""
HTTP clients for the compile and registry endpoints served by ``token_forge.api``.

They let the deployment flow run against a remote service instead of a
local solc install and SQLite file, with the same interfaces as
``local_compiler.compile_contract`` and ``DeploymentRegistry.record``.
"""

import logging
from typing import List, Optional, Tuple

import requests

from .errors import CompileError, RegistryError, ValidationError
from .local_compiler import CompiledContract
from .registry import DeploymentRecord

logger = logging.getLogger(__name__)


def _record_from_json(data: dict) -> DeploymentRecord:
    """Build a record from the API's JSON, raising ``RegistryError`` on a malformed body."""
    try:
        return DeploymentRecord(
            id=data["id"],
            wallet_address=data["walletAddress"],
            token_name=data["tokenName"],
            token_symbol=data["tokenSymbol"],
            contract_address=data["contractAddress"],
            chain_id=int(data["chainId"]),
            decimals=int(data["decimals"]),
            deployed_at=data["deployedAt"],
        )
    except (KeyError, TypeError, ValueError) as e:
        raise RegistryError(f"Malformed token record from registry: {e!r}")


class RemoteCompiler:
    """Client for ``POST /api/solidity/compile``."""

    def __init__(self, base_url: str, timeout: float = 60.0, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def compile(self, source_code: str, contract_name: str) -> Tuple[CompiledContract, List[str]]:
        try:
            response = self.session.post(
                f"{self.base_url}/api/solidity/compile",
                json={"sourceCode": source_code, "contractName": contract_name},
                timeout=self.timeout,
            )
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            raise CompileError(f"Compilation service unavailable: {e}")

        if not response.ok:
            raise CompileError(data.get("error") or f"Compilation failed ({response.status_code})")

        contract = CompiledContract(name=contract_name, abi=data["abi"], bytecode=data["bytecode"])
        return contract, data.get("errors") or []


class RegistryClient:
    """Client for the ``/api/tokens`` endpoints."""

    def __init__(self, base_url: str, timeout: float = 30.0, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def record(
        self,
        wallet_address: str,
        token_name: str,
        token_symbol: str,
        contract_address: str,
        chain_id: int,
        decimals: int,
    ) -> DeploymentRecord:
        payload = {
            "walletAddress": wallet_address,
            "tokenName": token_name,
            "tokenSymbol": token_symbol,
            "contractAddress": contract_address,
            "chainId": chain_id,
            "decimals": decimals,
        }
        try:
            response = self.session.post(f"{self.base_url}/api/tokens", json=payload, timeout=self.timeout)
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            raise RegistryError(f"Registry unavailable: {e}")

        if not isinstance(data, dict):
            raise RegistryError(f"Unexpected registry response (HTTP {response.status_code})")
        if response.status_code == 400:
            raise ValidationError(data.get("message") or data.get("error", "Invalid token record"))
        if not response.ok:
            raise RegistryError(data.get("message") or data.get("error") or f"HTTP {response.status_code}")
        return _record_from_json(data)

    def list_by_wallet(self, wallet_address: str) -> List[DeploymentRecord]:
        try:
            response = self.session.get(f"{self.base_url}/api/tokens/{wallet_address}", timeout=self.timeout)
            response.raise_for_status()
            return [_record_from_json(item) for item in response.json()]
        except (requests.RequestException, ValueError, TypeError) as e:
            raise RegistryError(f"Failed to fetch tokens for {wallet_address}: {e}")
