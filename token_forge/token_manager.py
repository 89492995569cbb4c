"""
Owner-side management of a deployed token.

``TokenManager`` binds a deployed token address to a ``Web3Wallet`` and
exposes the contract's administrative functions (pause, mint, burn,
blacklist, ownership changes) plus a read-only status snapshot.

Owner-gated calls are checked against the chain's current ``owner`` and
``paused`` values first, so an obviously doomed call fails without prompting
the wallet.  Every call returns a ``PendingTransaction``; by default it is
waited on and comes back confirmed.
"""

import logging
from decimal import Decimal, InvalidOperation, localcontext
from typing import Any, Dict, List, Optional, Union

from web3 import Web3

from .errors import ChainError, NotOwner, NotPaused, Paused, ValidationError
from .registry import normalize_address
from .token_state import UINT256_MAX
from .wallet import PendingTransaction, Web3Wallet

logger = logging.getLogger(__name__)


def _fn(name: str, inputs=(), outputs=(), mutability: str = "nonpayable") -> Dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "outputs": [{"name": "", "type": t} for t in outputs],
        "stateMutability": mutability,
    }


# Subset of the generated contract's ABI needed for management.
TOKEN_MANAGEMENT_ABI: List[Dict[str, Any]] = [
    _fn("name", outputs=["string"], mutability="view"),
    _fn("symbol", outputs=["string"], mutability="view"),
    _fn("decimals", outputs=["uint8"], mutability="view"),
    _fn("totalSupply", outputs=["uint256"], mutability="view"),
    _fn("owner", outputs=["address"], mutability="view"),
    _fn("paused", outputs=["bool"], mutability="view"),
    _fn("balanceOf", [("account", "address")], ["uint256"], "view"),
    _fn("isBlacklisted", [("account", "address")], ["bool"], "view"),
    _fn("pause"),
    _fn("unpause"),
    _fn("blacklist", [("account", "address")]),
    _fn("unblacklist", [("account", "address")]),
    _fn("mint", [("to", "address"), ("amount", "uint256")]),
    _fn("burn", [("amount", "uint256")]),
    _fn("transferOwnership", [("newOwner", "address")]),
    _fn("renounceOwnership"),
]


def to_base_units(amount: Union[str, int, Decimal], decimals: int) -> int:
    """Convert a whole-token amount ("1.5") to the token's base units.

    Raises:
        ValidationError: negative, non-numeric, or more fractional digits
            than the token supports, or too large for a uint256.
    """
    if isinstance(amount, bool):
        raise ValidationError(f"Invalid amount: {amount!r}")
    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation:
        raise ValidationError(f"Invalid amount: {amount!r}")
    if not value.is_finite() or value < 0:
        raise ValidationError(f"Amount must be a non-negative number, got {amount!r}")

    with localcontext() as ctx:
        ctx.prec = 100
        scaled = value.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise ValidationError(f"Amount {amount} has more than {decimals} decimal places")
    if scaled > UINT256_MAX:
        raise ValidationError(f"Amount {amount} exceeds the uint256 range")
    return int(scaled)


class TokenManager:
    """Administrative client for one deployed token."""

    def __init__(self, wallet: Web3Wallet, contract_address: str, abi: Optional[list] = None):
        self.wallet = wallet
        self.address = normalize_address(contract_address, "contractAddress")
        w3 = wallet._require_provider()
        self.contract = w3.eth.contract(address=self.address, abi=abi or TOKEN_MANAGEMENT_ABI)
        self._decimals: Optional[int] = None

    # ------------------------------------------------------------------ #
    #  Reads
    # ------------------------------------------------------------------ #

    def status(self) -> Dict[str, Any]:
        fns = self.contract.functions
        return {
            "address": self.address,
            "name": fns.name().call(),
            "symbol": fns.symbol().call(),
            "decimals": self.decimals,
            "totalSupply": fns.totalSupply().call(),
            "owner": fns.owner().call(),
            "paused": fns.paused().call(),
        }

    @property
    def decimals(self) -> int:
        if self._decimals is None:
            self._decimals = int(self.contract.functions.decimals().call())
        return self._decimals

    def owner(self) -> str:
        return self.contract.functions.owner().call()

    def is_owner(self, account: str) -> bool:
        return Web3.to_checksum_address(account) == self.owner()

    def is_paused(self) -> bool:
        return bool(self.contract.functions.paused().call())

    def balance_of(self, account: str) -> int:
        return self.contract.functions.balanceOf(normalize_address(account)).call()

    def is_blacklisted(self, account: str) -> bool:
        return bool(self.contract.functions.isBlacklisted(normalize_address(account)).call())

    # ------------------------------------------------------------------ #
    #  Owner functions
    # ------------------------------------------------------------------ #

    def _preflight(self, function_name: str) -> None:
        sender = self.wallet.get_active_account()
        if not self.is_owner(sender):
            raise ChainError(
                f"{function_name}: {sender} is not the owner of {self.address}",
                revert=NotOwner(),
            )
        if function_name == "pause" and self.is_paused():
            raise ChainError(f"pause: {self.address} is already paused", revert=Paused())
        if function_name == "unpause" and not self.is_paused():
            raise ChainError(f"unpause: {self.address} is not paused", revert=NotPaused())

    def _execute(self, function_name: str, *args, wait: bool = True) -> PendingTransaction:
        self.wallet.ensure_network()
        self._preflight(function_name)
        fn = getattr(self.contract.functions, function_name)(*args)
        pending = self.wallet.transact(fn, description=function_name)
        if wait:
            pending.wait()
            logger.info("%s on %s confirmed (%s)", function_name, self.address, pending.tx_hash)
        return pending

    def pause(self, wait: bool = True) -> PendingTransaction:
        return self._execute("pause", wait=wait)

    def unpause(self, wait: bool = True) -> PendingTransaction:
        return self._execute("unpause", wait=wait)

    def blacklist(self, account: str, wait: bool = True) -> PendingTransaction:
        return self._execute("blacklist", normalize_address(account, "account"), wait=wait)

    def unblacklist(self, account: str, wait: bool = True) -> PendingTransaction:
        return self._execute("unblacklist", normalize_address(account, "account"), wait=wait)

    def mint(self, to: str, amount: Union[str, int, Decimal], wait: bool = True) -> PendingTransaction:
        """Mint ``amount`` whole tokens to ``to``."""
        to = normalize_address(to, "to")
        return self._execute("mint", to, to_base_units(amount, self.decimals), wait=wait)

    def burn(self, amount: Union[str, int, Decimal], wait: bool = True) -> PendingTransaction:
        """Burn ``amount`` whole tokens from the owner's balance."""
        return self._execute("burn", to_base_units(amount, self.decimals), wait=wait)

    def transfer_ownership(self, new_owner: str, wait: bool = True) -> PendingTransaction:
        return self._execute(
            "transferOwnership", normalize_address(new_owner, "newOwner"), wait=wait
        )

    def renounce_ownership(self, wait: bool = True) -> PendingTransaction:
        return self._execute("renounceOwnership", wait=wait)
