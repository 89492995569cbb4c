"""
Wallet / chain boundary.

Wraps a ``web3.Web3`` instance and an optional local signer and exposes the
handful of provider operations the rest of the system needs: active account,
chain id, network switch, sending deployment and contract-call transactions,
and waiting for receipts.

A sent transaction is returned as a ``PendingTransaction`` in the
``SUBMITTED`` state.  It only becomes ``CONFIRMED`` once a successful receipt
is read back; callers must not update records before that.  Nothing here
retries: a rejected, reverted or timed-out transaction is raised to the
caller.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import requests
from eth_account import Account
from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception

from .config import BSC_MAINNET, NetworkConfig, Settings
from .errors import (
    ChainError,
    NoWalletError,
    UserRejectedError,
    WalletError,
    WrongNetworkError,
    revert_from_reason,
)

logger = logging.getLogger(__name__)

# EIP-1193 / MetaMask provider error codes
USER_REJECTED_CODE = 4001
UNRECOGNIZED_CHAIN_CODE = 4902


class TxStatus(Enum):
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    REVERTED = "reverted"
    TIMED_OUT = "timed_out"


@dataclass
class PendingTransaction:
    """A broadcast transaction whose outcome is not yet known."""
    tx_hash: str
    wallet: "Web3Wallet" = field(repr=False)
    description: str = ""
    status: TxStatus = TxStatus.SUBMITTED
    receipt: Optional[Dict[str, Any]] = None

    def wait(self, timeout: Optional[float] = None) -> Dict[str, Any]:
        """Block until the receipt arrives; see ``Web3Wallet.wait_for_receipt``."""
        try:
            self.receipt = self.wallet.wait_for_receipt(self.tx_hash, timeout=timeout)
        except ChainError as e:
            self.status = TxStatus.TIMED_OUT if e.still_pending else TxStatus.REVERTED
            raise
        self.status = TxStatus.CONFIRMED
        return self.receipt

    @property
    def contract_address(self) -> Optional[str]:
        if self.receipt is None:
            return None
        return self.receipt.get("contractAddress")


def _rpc_error(exc: Exception) -> Dict[str, Any]:
    """Pull the JSON-RPC error object out of a web3 exception, if present."""
    response = getattr(exc, "rpc_response", None)
    if isinstance(response, dict) and isinstance(response.get("error"), dict):
        return response["error"]
    for arg in getattr(exc, "args", ()):
        if isinstance(arg, dict):
            return arg
    return {}


def _revert_message(exc: ContractLogicError) -> str:
    message = getattr(exc, "message", None) or str(exc)
    if message.startswith("execution reverted:"):
        message = message[len("execution reverted:"):].strip()
    return message


class Web3Wallet:
    """Signs and sends transactions for one account on one network.

    With ``account`` set (a local ``eth_account`` signer) transactions are
    built, signed locally and sent raw.  Without it the node or injected
    provider manages accounts and signing, and may prompt its user; a
    rejected prompt surfaces as ``UserRejectedError``.
    """

    def __init__(
        self,
        w3: Optional[Web3],
        account=None,
        network: NetworkConfig = BSC_MAINNET,
        receipt_timeout: float = 180.0,
    ):
        self.w3 = w3
        self.account = account
        self.network = network
        self.receipt_timeout = receipt_timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "Web3Wallet":
        w3 = Web3(Web3.HTTPProvider(settings.rpc_url))
        account = Account.from_key(settings.private_key) if settings.private_key else None
        return cls(
            w3,
            account=account,
            network=settings.network,
            receipt_timeout=settings.receipt_timeout,
        )

    # ------------------------------------------------------------------ #
    #  Provider requests
    # ------------------------------------------------------------------ #

    def _require_provider(self) -> Web3:
        if self.w3 is None:
            raise NoWalletError("No wallet provider configured.")
        return self.w3

    def _request(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """Send a raw provider request, translating error objects."""
        w3 = self._require_provider()
        try:
            response = w3.provider.make_request(method, params or [])
        except Web3Exception as e:
            error = _rpc_error(e)
            raise self._wallet_error(method, error.get("code"), error.get("message") or str(e))

        if isinstance(response, dict) and response.get("error"):
            error = response["error"]
            if not isinstance(error, dict):
                error = {"message": str(error)}
            raise self._wallet_error(method, error.get("code"), error.get("message", ""))
        return response.get("result") if isinstance(response, dict) else response

    @staticmethod
    def _wallet_error(method: str, code: Optional[int], message: str) -> WalletError:
        if code == USER_REJECTED_CODE:
            return UserRejectedError(f"Request rejected by user: {message}", code=code)
        return WalletError(f"{method} failed: {message}", code=code)

    def get_active_account(self) -> str:
        if self.account is not None:
            return self.account.address

        try:
            accounts = self._request("eth_requestAccounts")
        except UserRejectedError:
            raise
        except WalletError:
            # Plain nodes do not implement the wallet permission request
            accounts = self._request("eth_accounts")
        if not accounts:
            raise NoWalletError("Wallet returned no accounts.")
        return Web3.to_checksum_address(accounts[0])

    def get_chain_id(self) -> int:
        w3 = self._require_provider()
        return int(w3.eth.chain_id)

    def ensure_network(self) -> None:
        """Make sure the wallet is on ``self.network``, switching if it can."""
        current = self.get_chain_id()
        if current == self.network.chain_id:
            return

        if self.account is not None:
            # A local signer talks to a fixed RPC endpoint; nothing to switch.
            raise WrongNetworkError(
                f"Connected to chain {current}, expected {self.network.name} "
                f"({self.network.chain_id}). Check the RPC URL."
            )

        logger.info("Switching wallet from chain %s to %s", current, self.network.chain_id)
        try:
            self._request("wallet_switchEthereumChain", [{"chainId": self.network.chain_id_hex}])
        except WalletError as e:
            if e.code != UNRECOGNIZED_CHAIN_CODE:
                raise
            logger.info("Chain %s unknown to wallet, adding it", self.network.chain_id)
            self._request("wallet_addEthereumChain", [self.network.add_chain_params()])

        current = self.get_chain_id()
        if current != self.network.chain_id:
            raise WrongNetworkError(
                f"Wallet is on chain {current}, expected {self.network.chain_id}."
            )

    # ------------------------------------------------------------------ #
    #  Transactions
    # ------------------------------------------------------------------ #

    def deploy(self, abi: list, bytecode: str) -> PendingTransaction:
        """Broadcast a contract-creation transaction."""
        w3 = self._require_provider()
        if not bytecode.startswith("0x"):
            bytecode = "0x" + bytecode
        factory = w3.eth.contract(abi=abi, bytecode=bytecode)
        return self._send(factory.constructor(), "deploy")

    def transact(self, contract_function, description: str = "") -> PendingTransaction:
        """Broadcast a call to a bound contract function."""
        return self._send(contract_function, description or getattr(contract_function, "fn_name", ""))

    def _send(self, contract_function, description: str) -> PendingTransaction:
        w3 = self._require_provider()
        sender = self.get_active_account()
        try:
            if self.account is not None:
                tx = contract_function.build_transaction({
                    "from": sender,
                    "nonce": w3.eth.get_transaction_count(sender, "pending"),
                    "chainId": self.network.chain_id,
                })
                signed = self.account.sign_transaction(tx)
                tx_hash = w3.eth.send_raw_transaction(signed.raw_transaction)
            else:
                tx_hash = contract_function.transact({"from": sender})
        except ContractLogicError as e:
            # Reverted during gas estimation, before anything was broadcast
            reason = _revert_message(e)
            raise ChainError(
                f"{description} would revert: {reason}",
                revert_reason=reason,
                revert=revert_from_reason(reason),
            )
        except (Web3Exception, ValueError) as e:
            error = _rpc_error(e)
            if error.get("code") == USER_REJECTED_CODE:
                raise UserRejectedError(
                    f"{description} rejected by user", code=USER_REJECTED_CODE
                )
            raise ChainError(f"{description} failed to send: {error.get('message') or e}")
        except requests.RequestException as e:
            raise ChainError(f"{description} failed to send, node unreachable: {e}")

        tx_hash = Web3.to_hex(tx_hash)
        logger.info("Submitted %s transaction %s", description, tx_hash)
        return PendingTransaction(tx_hash=tx_hash, wallet=self, description=description)

    def wait_for_receipt(self, tx_hash: str, timeout: Optional[float] = None) -> Dict[str, Any]:
        """Wait for confirmation.

        Raises:
            ChainError: on timeout (the transaction may still confirm later)
                or when the receipt reports failure; the revert reason is
                recovered by replaying the call and mapped onto the
                contract's failure taxonomy.
        """
        w3 = self._require_provider()
        timeout = self.receipt_timeout if timeout is None else timeout
        try:
            receipt = w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
        except TimeExhausted:
            raise ChainError(
                f"Transaction {tx_hash} not confirmed within {timeout:.0f}s; it may still be pending.",
                tx_hash=tx_hash,
                still_pending=True,
            )
        except (Web3Exception, requests.RequestException) as e:
            raise ChainError(
                f"Lost contact with the node while waiting for {tx_hash}: {e}",
                tx_hash=tx_hash,
                still_pending=True,
            )

        receipt = dict(receipt)
        if receipt.get("status") == 0:
            reason = self._replay_for_reason(tx_hash, receipt)
            revert = revert_from_reason(reason)
            raise ChainError(
                f"Transaction {tx_hash} reverted" + (f": {reason}" if reason else ""),
                tx_hash=tx_hash,
                revert_reason=reason,
                revert=revert,
            )

        logger.info("Confirmed %s in block %s", tx_hash, receipt.get("blockNumber"))
        return receipt

    def _replay_for_reason(self, tx_hash: str, receipt: Dict[str, Any]) -> Optional[str]:
        """Re-execute a failed transaction as a call to read its revert string."""
        w3 = self._require_provider()
        try:
            tx = w3.eth.get_transaction(tx_hash)
            call = {"from": tx["from"], "data": tx["input"], "value": tx.get("value", 0)}
            if tx.get("to"):
                call["to"] = tx["to"]
            block = receipt.get("blockNumber")
            w3.eth.call(call, block - 1 if block else "latest")
        except ContractLogicError as e:
            return _revert_message(e)
        except (Web3Exception, ValueError) as e:
            logger.debug("Could not replay %s for revert reason: %s", tx_hash, e)
        return None
