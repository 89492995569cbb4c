"""
Deployment Registry

Persists one row per successful token deployment in SQLite and answers
"which tokens has this wallet deployed?" newest first.  Records are
immutable once written.

Addresses are validated and stored in checksum form so lookups do not depend
on the caller's capitalisation.  When a ``ChainVerifier`` is attached, the
registry confirms against the chain that code exists at the contract address
and that the node's chain id matches the submitted one before writing.
"""

import logging
import sqlite3
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests
from eth_utils import is_address, to_checksum_address
from web3.exceptions import Web3Exception

from .contract_template import MAX_DECIMALS, MIN_DECIMALS
from .errors import RegistryError, ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeploymentRecord:
    """A deployed token as stored in the registry."""
    id: str
    wallet_address: str
    token_name: str
    token_symbol: str
    contract_address: str
    chain_id: int
    decimals: int
    deployed_at: str

    def to_dict(self) -> Dict[str, Any]:
        """JSON shape served by the HTTP API."""
        return {
            "id": self.id,
            "walletAddress": self.wallet_address,
            "tokenName": self.token_name,
            "tokenSymbol": self.token_symbol,
            "contractAddress": self.contract_address,
            "chainId": self.chain_id,
            "decimals": self.decimals,
            "deployedAt": self.deployed_at,
        }


def normalize_address(value: Any, field_name: str = "address") -> str:
    if not isinstance(value, str) or not is_address(value):
        raise ValidationError(f"{field_name} is not a valid address: {value!r}")
    return to_checksum_address(value)


class ChainVerifier:
    """Checks client-submitted deployment metadata against the chain."""

    def __init__(self, w3):
        self.w3 = w3

    def verify(self, contract_address: str, chain_id: int) -> None:
        """Raise ``ValidationError`` unless the pairing is real.

        Raises:
            RegistryError: the node could not be queried.
        """
        try:
            actual_chain = self.w3.eth.chain_id
            code = None if actual_chain != chain_id else self.w3.eth.get_code(contract_address)
        except (Web3Exception, requests.RequestException, ValueError) as e:
            raise RegistryError(f"Could not verify {contract_address} on chain {chain_id}: {e}")

        if actual_chain != chain_id:
            raise ValidationError(
                f"chainId {chain_id} does not match connected chain {actual_chain}"
            )
        if not code or bytes(code) in (b"", b"\x00"):
            raise ValidationError(f"No contract code at {contract_address} on chain {chain_id}")


class DeploymentRegistry:
    """SQLite-backed store of ``DeploymentRecord`` rows."""

    def __init__(self, db_path: str = "data/tokens.db", verifier: Optional[ChainVerifier] = None):
        self.db_path = Path(db_path)
        self.verifier = verifier
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_database()

    @contextmanager
    def _db_conn(self):
        """Context manager for a SQLite connection to the registry."""
        conn = sqlite3.connect(self.db_path)
        try:
            yield conn
        finally:
            conn.close()

    def _init_database(self) -> None:
        try:
            with self._db_conn() as conn:
                conn.execute('''
                    CREATE TABLE IF NOT EXISTS tokens (
                        id TEXT PRIMARY KEY,
                        wallet_address TEXT NOT NULL,
                        token_name TEXT NOT NULL,
                        token_symbol TEXT NOT NULL,
                        contract_address TEXT NOT NULL,
                        chain_id INTEGER NOT NULL,
                        decimals INTEGER NOT NULL,
                        deployed_at TEXT NOT NULL
                    )
                ''')
                conn.execute(
                    "CREATE INDEX IF NOT EXISTS idx_tokens_wallet "
                    "ON tokens (wallet_address, deployed_at)"
                )
                conn.commit()
        except sqlite3.Error as e:
            raise RegistryError(f"Could not initialise registry at {self.db_path}: {e}")

    def record(
        self,
        wallet_address: str,
        token_name: str,
        token_symbol: str,
        contract_address: str,
        chain_id: int,
        decimals: int,
    ) -> DeploymentRecord:
        """Validate and insert a deployment; id and timestamp are assigned here.

        Raises:
            ValidationError: malformed fields or failed chain verification.
            RegistryError: the database write failed.
        """
        wallet_address = normalize_address(wallet_address, "walletAddress")
        contract_address = normalize_address(contract_address, "contractAddress")
        if not isinstance(token_name, str) or not token_name.strip():
            raise ValidationError("tokenName is required")
        if not isinstance(token_symbol, str) or not token_symbol.strip():
            raise ValidationError("tokenSymbol is required")
        if isinstance(chain_id, bool) or not isinstance(chain_id, int) or chain_id <= 0:
            raise ValidationError(f"chainId must be a positive integer, got {chain_id!r}")
        if isinstance(decimals, bool) or not isinstance(decimals, int) or not (
            MIN_DECIMALS <= decimals <= MAX_DECIMALS
        ):
            raise ValidationError(f"decimals must be an integer between 0 and 18, got {decimals!r}")

        if self.verifier is not None:
            self.verifier.verify(contract_address, chain_id)

        record = DeploymentRecord(
            id=str(uuid.uuid4()),
            wallet_address=wallet_address,
            token_name=token_name,
            token_symbol=token_symbol,
            contract_address=contract_address,
            chain_id=chain_id,
            decimals=decimals,
            deployed_at=datetime.now(timezone.utc).isoformat(),
        )

        try:
            with self._db_conn() as conn:
                conn.execute('''
                    INSERT INTO tokens
                    (id, wallet_address, token_name, token_symbol, contract_address,
                     chain_id, decimals, deployed_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ''', (
                    record.id,
                    record.wallet_address,
                    record.token_name,
                    record.token_symbol,
                    record.contract_address,
                    record.chain_id,
                    record.decimals,
                    record.deployed_at,
                ))
                conn.commit()
        except sqlite3.Error as e:
            raise RegistryError(f"Failed to record deployment of {contract_address}: {e}")

        logger.info(
            "Recorded %s (%s) at %s for %s",
            token_symbol, token_name, contract_address, wallet_address,
        )
        return record

    def list_by_wallet(self, wallet_address: str) -> List[DeploymentRecord]:
        """All deployments by ``wallet_address``, newest first."""
        wallet_address = normalize_address(wallet_address, "walletAddress")
        try:
            with self._db_conn() as conn:
                rows = conn.execute(
                    "SELECT id, wallet_address, token_name, token_symbol, contract_address, "
                    "chain_id, decimals, deployed_at FROM tokens WHERE wallet_address = ? "
                    "ORDER BY deployed_at DESC, rowid DESC",
                    (wallet_address,),
                ).fetchall()
        except sqlite3.Error as e:
            raise RegistryError(f"Failed to fetch tokens for {wallet_address}: {e}")
        return [DeploymentRecord(*row) for row in rows]

    def get(self, record_id: str) -> Optional[DeploymentRecord]:
        try:
            with self._db_conn() as conn:
                row = conn.execute(
                    "SELECT id, wallet_address, token_name, token_symbol, contract_address, "
                    "chain_id, decimals, deployed_at FROM tokens WHERE id = ?",
                    (record_id,),
                ).fetchone()
        except sqlite3.Error as e:
            raise RegistryError(f"Failed to fetch token {record_id}: {e}")
        return DeploymentRecord(*row) if row else None
