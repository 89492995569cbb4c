"""
Error taxonomy for token generation, compilation, deployment and management.

Two families live here:

* ``TokenForgeError`` and its subclasses describe failures of the
  orchestration layer (bad input, compiler rejection, wallet problems,
  reverted transactions, registry writes).
* ``ContractRevert`` and its subclasses describe the generated token
  contract's own failure modes.  The reference state machine raises them
  directly; ``ChainError`` carries one when a revert reason read back from
  the chain can be mapped onto it.
"""

from typing import Dict, Optional, Type


class TokenForgeError(Exception):
    """Base class for every error surfaced to callers."""


class ValidationError(TokenForgeError):
    """Rejected input (name, symbol, decimals, addresses) before any network call."""


class InvalidParameter(ValidationError):
    """A generator input cannot be embedded safely in contract source."""


class CompileError(TokenForgeError):
    """The Solidity compiler rejected the source. Messages are kept verbatim."""

    def __init__(self, message: str, errors: Optional[list] = None):
        super().__init__(message)
        self.errors = list(errors or [])


class WalletError(TokenForgeError):
    """Wallet unavailable, signature rejected or wrong network.

    ``code`` is the EIP-1193 provider error code when one was returned.
    """

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = code


class NoWalletError(WalletError):
    pass


class UserRejectedError(WalletError):
    pass


class WrongNetworkError(WalletError):
    pass


class ChainError(TokenForgeError):
    """A transaction failed after broadcast (revert, timeout, dropped)."""

    def __init__(
        self,
        message: str,
        tx_hash: Optional[str] = None,
        revert_reason: Optional[str] = None,
        revert: Optional["ContractRevert"] = None,
        still_pending: bool = False,
    ):
        super().__init__(message)
        self.tx_hash = tx_hash
        self.revert_reason = revert_reason
        self.revert = revert
        # Timed out waiting; the transaction may yet confirm
        self.still_pending = still_pending


class RegistryError(TokenForgeError):
    """Persisting or reading a deployment record failed."""


class OrphanedDeploymentError(RegistryError):
    """The token exists on-chain but the registry write failed."""

    def __init__(self, message: str, contract_address: str, chain_id: Optional[int] = None):
        super().__init__(message)
        self.contract_address = contract_address
        self.chain_id = chain_id


# ---------------------------------------------------------------------------
# Contract failure taxonomy
# ---------------------------------------------------------------------------

class ContractRevert(Exception):
    """A token contract call reverted. ``reason`` matches the on-chain string."""

    # Suffix of the revert string after "<SYMBOL>: "
    reason_suffix = ""

    def __init__(self, reason: str = ""):
        super().__init__(reason or self.reason_suffix)
        self.reason = reason or self.reason_suffix


class NotOwner(ContractRevert):
    reason_suffix = "caller is not the owner"


class Paused(ContractRevert):
    reason_suffix = "paused"


class NotPaused(ContractRevert):
    reason_suffix = "not paused"


class AlreadyPaused(Paused):
    """``pause`` while paused; shares the ``whenNotPaused`` revert string."""


class Blacklisted(ContractRevert):
    reason_suffix = "account is blacklisted"


class CannotBlacklistOwner(ContractRevert):
    reason_suffix = "cannot blacklist owner"


class InsufficientBalance(ContractRevert):
    reason_suffix = "transfer amount exceeds balance"


class InsufficientAllowance(ContractRevert):
    reason_suffix = "transfer amount exceeds allowance"


class AllowanceUnderflow(ContractRevert):
    reason_suffix = "decreased allowance below zero"


class ZeroAddress(ContractRevert):
    reason_suffix = "zero address"


class ArithmeticOverflow(ContractRevert):
    reason_suffix = "arithmetic overflow"


# Revert strings emitted by the generated contract, minus the symbol prefix.
REVERT_REASONS: Dict[str, Type[ContractRevert]] = {
    "caller is not the owner": NotOwner,
    "paused": Paused,
    "not paused": NotPaused,
    "account is blacklisted": Blacklisted,
    "cannot blacklist owner": CannotBlacklistOwner,
    "transfer amount exceeds balance": InsufficientBalance,
    "burn amount exceeds balance": InsufficientBalance,
    "transfer amount exceeds allowance": InsufficientAllowance,
    "decreased allowance below zero": AllowanceUnderflow,
    "transfer from the zero address": ZeroAddress,
    "transfer to the zero address": ZeroAddress,
    "approve from the zero address": ZeroAddress,
    "approve to the zero address": ZeroAddress,
    "mint to the zero address": ZeroAddress,
    "new owner is zero address": ZeroAddress,
    "new owner is blacklisted": Blacklisted,
}


def revert_from_reason(reason: Optional[str]) -> Optional[ContractRevert]:
    """Map a revert string like ``"TTK: paused"`` onto a ``ContractRevert``.

    Returns None when the reason is empty or not one the generated contract
    produces (e.g. out-of-gas or a Panic code).
    """
    if not reason:
        return None
    text = reason.strip()
    # "execution reverted: TTK: paused" from some nodes
    if text.startswith("execution reverted:"):
        text = text[len("execution reverted:"):].strip()
    _, sep, suffix = text.partition(": ")
    if not sep:
        suffix = text
    cls = REVERT_REASONS.get(suffix.strip())
    if cls is None:
        return None
    return cls(text)
