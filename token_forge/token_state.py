"""
Reference model of the generated token contract.

Every public function here is one transition of the on-chain state machine
encoded by ``contract_template``.  State lives in an explicit
``TokenContractState`` value that the caller passes in; nothing is global.

Each transition checks all of its preconditions, in the same order as the
Solidity modifiers and ``require`` statements, before touching state.  A
failing call raises a ``ContractRevert`` subclass whose ``reason`` is the
exact revert string the deployed contract would return, and leaves the state
and its event log untouched.  A successful call appends its events to
``state.logs`` and returns them.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from eth_utils import is_address, to_checksum_address

from .contract_template import INITIAL_SUPPLY_TOKENS, validate_decimals
from .errors import (
    AllowanceUnderflow,
    AlreadyPaused,
    ArithmeticOverflow,
    Blacklisted,
    CannotBlacklistOwner,
    InsufficientAllowance,
    InsufficientBalance,
    NotOwner,
    NotPaused,
    Paused,
    ZeroAddress,
)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
UINT256_MAX = 2 ** 256 - 1


@dataclass
class TokenEvent:
    """A log entry emitted by a successful call."""
    name: str
    args: Dict[str, Any] = field(default_factory=dict)


@dataclass
class TokenContractState:
    """Persistent storage of one deployed token."""
    name: str
    symbol: str
    decimals: int
    owner: Optional[str]
    paused: bool = False
    total_supply: int = 0
    balances: Dict[str, int] = field(default_factory=dict)
    allowances: Dict[Tuple[str, str], int] = field(default_factory=dict)
    blacklist: Dict[str, bool] = field(default_factory=dict)
    logs: List[TokenEvent] = field(default_factory=list)

    @property
    def renounced(self) -> bool:
        return self.owner is None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _addr(address: str) -> str:
    if not is_address(address):
        raise ValueError(f"Not an address: {address!r}")
    return to_checksum_address(address)


def _uint(value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"uint256 value must be an int, got {type(value).__name__}")
    if not 0 <= value <= UINT256_MAX:
        raise ValueError(f"Value out of uint256 range: {value}")
    return value


def _checked_add(a: int, b: int) -> int:
    total = a + b
    if total > UINT256_MAX:
        raise ArithmeticOverflow()
    return total


def _reason(state: TokenContractState, message: str) -> str:
    return f"{state.symbol}: {message}"


def _emit(state: TokenContractState, events: List[TokenEvent]) -> List[TokenEvent]:
    state.logs.extend(events)
    return events


def _require_owner(state: TokenContractState, sender: str) -> None:
    if state.owner is None or sender != state.owner:
        raise NotOwner(_reason(state, "caller is not the owner"))


def _require_not_paused(state: TokenContractState) -> None:
    if state.paused:
        raise Paused(_reason(state, "paused"))


def _require_not_blacklisted(state: TokenContractState, account: str) -> None:
    if state.blacklist.get(account, False):
        raise Blacklisted(_reason(state, "account is blacklisted"))


def _check_approve(state: TokenContractState, token_owner: str, spender: str) -> None:
    if token_owner == ZERO_ADDRESS:
        raise ZeroAddress(_reason(state, "approve from the zero address"))
    if spender == ZERO_ADDRESS:
        raise ZeroAddress(_reason(state, "approve to the zero address"))


def _check_transfer(state: TokenContractState, sender: str, to: str, amount: int) -> None:
    if sender == ZERO_ADDRESS:
        raise ZeroAddress(_reason(state, "transfer from the zero address"))
    if to == ZERO_ADDRESS:
        raise ZeroAddress(_reason(state, "transfer to the zero address"))
    if state.balances.get(sender, 0) < amount:
        raise InsufficientBalance(_reason(state, "transfer amount exceeds balance"))
    if sender != to:
        _checked_add(state.balances.get(to, 0), amount)


def _apply_transfer(state: TokenContractState, sender: str, to: str, amount: int) -> TokenEvent:
    state.balances[sender] = state.balances.get(sender, 0) - amount
    state.balances[to] = state.balances.get(to, 0) + amount
    return TokenEvent("Transfer", {"from": sender, "to": to, "value": amount})


def _apply_approve(state: TokenContractState, token_owner: str, spender: str, amount: int) -> TokenEvent:
    state.allowances[(token_owner, spender)] = amount
    return TokenEvent("Approval", {"owner": token_owner, "spender": spender, "value": amount})


# ---------------------------------------------------------------------------
# Construction and views
# ---------------------------------------------------------------------------

def deploy(name: str, symbol: str, decimals: int, deployer: str) -> TokenContractState:
    """Run the constructor: the deployer owns the whole initial supply."""
    validate_decimals(decimals)
    deployer = _addr(deployer)
    supply = INITIAL_SUPPLY_TOKENS * 10 ** decimals
    state = TokenContractState(
        name=name,
        symbol=symbol,
        decimals=decimals,
        owner=deployer,
        total_supply=supply,
        balances={deployer: supply},
    )
    _emit(state, [
        TokenEvent("Transfer", {"from": ZERO_ADDRESS, "to": deployer, "value": supply}),
        TokenEvent("OwnershipTransferred", {"previousOwner": ZERO_ADDRESS, "newOwner": deployer}),
    ])
    return state


def balance_of(state: TokenContractState, account: str) -> int:
    return state.balances.get(_addr(account), 0)


def allowance(state: TokenContractState, token_owner: str, spender: str) -> int:
    return state.allowances.get((_addr(token_owner), _addr(spender)), 0)


def is_blacklisted(state: TokenContractState, account: str) -> bool:
    return state.blacklist.get(_addr(account), False)


def owner_of(state: TokenContractState) -> str:
    """Owner as the chain reports it (zero address once renounced)."""
    return state.owner or ZERO_ADDRESS


# ---------------------------------------------------------------------------
# Holder operations (gated by pause)
# ---------------------------------------------------------------------------

def transfer(state: TokenContractState, sender: str, to: str, amount: int) -> List[TokenEvent]:
    sender, to, amount = _addr(sender), _addr(to), _uint(amount)
    _require_not_paused(state)
    _require_not_blacklisted(state, sender)
    _require_not_blacklisted(state, to)
    _check_transfer(state, sender, to, amount)
    return _emit(state, [_apply_transfer(state, sender, to, amount)])


def approve(state: TokenContractState, sender: str, spender: str, amount: int) -> List[TokenEvent]:
    sender, spender, amount = _addr(sender), _addr(spender), _uint(amount)
    _require_not_paused(state)
    _check_approve(state, sender, spender)
    return _emit(state, [_apply_approve(state, sender, spender, amount)])


def transfer_from(
    state: TokenContractState, sender: str, from_: str, to: str, amount: int
) -> List[TokenEvent]:
    """Spend ``sender``'s allowance over ``from_``'s balance."""
    sender, from_, to, amount = _addr(sender), _addr(from_), _addr(to), _uint(amount)
    _require_not_paused(state)
    _require_not_blacklisted(state, from_)
    _require_not_blacklisted(state, to)
    current = state.allowances.get((from_, sender), 0)
    if current < amount:
        raise InsufficientAllowance(_reason(state, "transfer amount exceeds allowance"))
    _check_approve(state, from_, sender)
    _check_transfer(state, from_, to, amount)

    approval = _apply_approve(state, from_, sender, current - amount)
    moved = _apply_transfer(state, from_, to, amount)
    return _emit(state, [approval, moved])


def increase_allowance(
    state: TokenContractState, sender: str, spender: str, added_value: int
) -> List[TokenEvent]:
    sender, spender, added_value = _addr(sender), _addr(spender), _uint(added_value)
    _require_not_paused(state)
    new_value = _checked_add(state.allowances.get((sender, spender), 0), added_value)
    _check_approve(state, sender, spender)
    return _emit(state, [_apply_approve(state, sender, spender, new_value)])


def decrease_allowance(
    state: TokenContractState, sender: str, spender: str, subtracted_value: int
) -> List[TokenEvent]:
    sender, spender, subtracted_value = _addr(sender), _addr(spender), _uint(subtracted_value)
    _require_not_paused(state)
    current = state.allowances.get((sender, spender), 0)
    if current < subtracted_value:
        raise AllowanceUnderflow(_reason(state, "decreased allowance below zero"))
    _check_approve(state, sender, spender)
    return _emit(state, [_apply_approve(state, sender, spender, current - subtracted_value)])


# ---------------------------------------------------------------------------
# Owner operations (callable while paused)
# ---------------------------------------------------------------------------

def pause(state: TokenContractState, sender: str) -> List[TokenEvent]:
    sender = _addr(sender)
    _require_owner(state, sender)
    if state.paused:
        raise AlreadyPaused(_reason(state, "paused"))
    state.paused = True
    return _emit(state, [TokenEvent("Paused", {"account": sender})])


def unpause(state: TokenContractState, sender: str) -> List[TokenEvent]:
    sender = _addr(sender)
    _require_owner(state, sender)
    if not state.paused:
        raise NotPaused(_reason(state, "not paused"))
    state.paused = False
    return _emit(state, [TokenEvent("Unpaused", {"account": sender})])


def blacklist(state: TokenContractState, sender: str, account: str) -> List[TokenEvent]:
    sender, account = _addr(sender), _addr(account)
    _require_owner(state, sender)
    if account == state.owner:
        raise CannotBlacklistOwner(_reason(state, "cannot blacklist owner"))
    state.blacklist[account] = True
    return _emit(state, [TokenEvent("Blacklisted", {"account": account})])


def unblacklist(state: TokenContractState, sender: str, account: str) -> List[TokenEvent]:
    sender, account = _addr(sender), _addr(account)
    _require_owner(state, sender)
    state.blacklist[account] = False
    return _emit(state, [TokenEvent("Unblacklisted", {"account": account})])


def mint(state: TokenContractState, sender: str, to: str, amount: int) -> List[TokenEvent]:
    sender, to, amount = _addr(sender), _addr(to), _uint(amount)
    _require_owner(state, sender)
    if to == ZERO_ADDRESS:
        raise ZeroAddress(_reason(state, "mint to the zero address"))
    new_supply = _checked_add(state.total_supply, amount)

    state.total_supply = new_supply
    state.balances[to] = state.balances.get(to, 0) + amount
    return _emit(state, [
        TokenEvent("Mint", {"to": to, "amount": amount}),
        TokenEvent("Transfer", {"from": ZERO_ADDRESS, "to": to, "value": amount}),
    ])


def burn(state: TokenContractState, sender: str, amount: int) -> List[TokenEvent]:
    """Destroy ``amount`` from the owner's own balance."""
    sender, amount = _addr(sender), _uint(amount)
    _require_owner(state, sender)
    balance = state.balances.get(sender, 0)
    if balance < amount:
        raise InsufficientBalance(_reason(state, "burn amount exceeds balance"))

    state.balances[sender] = balance - amount
    state.total_supply -= amount
    return _emit(state, [
        TokenEvent("Burn", {"from": sender, "amount": amount}),
        TokenEvent("Transfer", {"from": sender, "to": ZERO_ADDRESS, "value": amount}),
    ])


def transfer_ownership(state: TokenContractState, sender: str, new_owner: str) -> List[TokenEvent]:
    sender, new_owner = _addr(sender), _addr(new_owner)
    _require_owner(state, sender)
    if new_owner == ZERO_ADDRESS:
        raise ZeroAddress(_reason(state, "new owner is zero address"))
    if state.blacklist.get(new_owner, False):
        raise Blacklisted(_reason(state, "new owner is blacklisted"))

    previous = state.owner
    state.owner = new_owner
    return _emit(state, [
        TokenEvent("OwnershipTransferred", {"previousOwner": previous, "newOwner": new_owner}),
    ])


def renounce_ownership(state: TokenContractState, sender: str) -> List[TokenEvent]:
    """Drop the owner for good; every owner-gated call fails afterwards."""
    sender = _addr(sender)
    _require_owner(state, sender)
    previous = state.owner
    state.owner = None
    return _emit(state, [
        TokenEvent("OwnershipTransferred", {"previousOwner": previous, "newOwner": ZERO_ADDRESS}),
    ])


# ---------------------------------------------------------------------------
# Invariants
# ---------------------------------------------------------------------------

def invariant_violations(state: TokenContractState) -> List[str]:
    """Return a description of every broken storage invariant (empty if sound)."""
    problems = []
    held = sum(state.balances.values())
    if held != state.total_supply:
        problems.append(f"sum(balances)={held} != totalSupply={state.total_supply}")
    if not 0 <= state.total_supply <= UINT256_MAX:
        problems.append(f"totalSupply out of range: {state.total_supply}")
    for account, value in state.balances.items():
        if value < 0:
            problems.append(f"negative balance for {account}: {value}")
    for (token_owner, spender), value in state.allowances.items():
        if value < 0:
            problems.append(f"negative allowance {token_owner}->{spender}: {value}")
    if state.owner is not None and state.blacklist.get(state.owner, False):
        problems.append(f"owner {state.owner} is blacklisted")
    return problems
