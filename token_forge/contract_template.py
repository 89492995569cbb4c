"""
Contract Template Generator

Produces the Solidity source of a fixed-supply, owner-controlled, pausable,
blacklistable ERC-20 token from three parameters: display name, symbol and
decimals.

The symbol doubles as the contract's type identifier, so it is interpolated
in declaration position.  ``generate_contract_source`` re-validates it
against a strict identifier grammar on every call and refuses anything it
cannot embed safely, independently of whatever validation the caller did.
The name is only ever embedded inside a string literal and is escaped.

Output is deterministic: identical inputs always produce byte-identical
source (no timestamps, no randomness).
"""

import re
from dataclasses import dataclass
from string import Template
from typing import Any

from .errors import InvalidParameter, ValidationError

MIN_DECIMALS = 0
MAX_DECIMALS = 18

# Whole tokens minted to the deployer; scaled by 10**decimals on-chain.
INITIAL_SUPPLY_TOKENS = 10_000_000

SOLIDITY_PRAGMA = "^0.8.0"

_IDENTIFIER_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_ELEMENTARY_TYPE_RE = re.compile(r"(u?int|bytes|u?fixed)\d*(x\d+)?")

# Keywords and reserved words of Solidity 0.8.x plus global names that
# would shadow builtins when used as a contract name.
SOLIDITY_RESERVED = frozenset({
    "abstract", "after", "alias", "anonymous", "apply", "as", "assembly",
    "auto", "break", "calldata", "case", "catch", "constant", "constructor",
    "continue", "contract", "copyof", "default", "define", "delete", "do",
    "else", "emit", "enum", "error", "event", "external", "fallback",
    "false", "final", "for", "function", "if", "immutable", "implements",
    "import", "in", "indexed", "inline", "interface", "internal", "is",
    "let", "library", "macro", "mapping", "match", "memory", "modifier",
    "mutable", "new", "null", "of", "override", "partial", "payable",
    "pragma", "private", "promise", "public", "pure", "receive",
    "reference", "relocatable", "return", "returns", "revert", "sealed",
    "sizeof", "static", "storage", "string", "struct", "supports",
    "switch", "this", "throw", "true", "try", "type", "typedef", "typeof",
    "unchecked", "unicode", "using", "var", "view", "virtual", "while",
    "address", "bool", "byte", "fixed", "ufixed", "block", "msg", "tx",
    "abi", "now", "super", "selfdestruct", "require", "assert", "gasleft",
    "keccak256", "sha256", "ripemd160", "ecrecover", "addmod", "mulmod",
    "blockhash", "wei", "gwei", "ether", "seconds", "minutes", "hours",
    "days", "weeks", "_",
})

# Members declared inside the generated contract; a contract may not share
# a name with one of its own members.
CONTRACT_MEMBERS = frozenset({
    "name", "symbol", "decimals", "INITIAL_SUPPLY", "totalSupply",
    "_balances", "_allowances", "_blacklist", "owner", "paused",
    "Transfer", "Approval", "Paused", "Unpaused", "OwnershipTransferred",
    "Blacklisted", "Unblacklisted", "Mint", "Burn",
    "onlyOwner", "whenNotPaused", "whenPaused", "notBlacklisted",
    "balanceOf", "allowance", "isBlacklisted", "transfer", "approve",
    "transferFrom", "increaseAllowance", "decreaseAllowance", "_transfer",
    "_approve", "pause", "unpause", "blacklist", "unblacklist", "mint",
    "burn", "transferOwnership", "renounceOwnership",
})


_CONTRACT_TEMPLATE = Template("""\
// SPDX-License-Identifier: MIT
pragma solidity $pragma;

contract $symbol {
    string public name = $name_literal;
    string public symbol = "$symbol";
    uint8 public constant decimals = $decimals;

    uint256 public constant INITIAL_SUPPLY = $initial_tokens * (10 ** uint256(decimals));
    uint256 public totalSupply;

    mapping(address => uint256) private _balances;
    mapping(address => mapping(address => uint256)) private _allowances;
    mapping(address => bool) private _blacklist;

    address public owner;
    bool public paused;

    event Transfer(address indexed from, address indexed to, uint256 value);
    event Approval(address indexed owner, address indexed spender, uint256 value);
    event Paused(address account);
    event Unpaused(address account);
    event OwnershipTransferred(address indexed previousOwner, address indexed newOwner);
    event Blacklisted(address indexed account);
    event Unblacklisted(address indexed account);
    event Mint(address indexed to, uint256 amount);
    event Burn(address indexed from, uint256 amount);

    modifier onlyOwner() {
        require(msg.sender == owner, "$symbol: caller is not the owner");
        _;
    }

    modifier whenNotPaused() {
        require(!paused, "$symbol: paused");
        _;
    }

    modifier whenPaused() {
        require(paused, "$symbol: not paused");
        _;
    }

    modifier notBlacklisted(address account) {
        require(!_blacklist[account], "$symbol: account is blacklisted");
        _;
    }

    constructor() {
        owner = msg.sender;
        totalSupply = INITIAL_SUPPLY;
        _balances[owner] = INITIAL_SUPPLY;
        paused = false;
        emit Transfer(address(0), owner, INITIAL_SUPPLY);
        emit OwnershipTransferred(address(0), owner);
    }

    function balanceOf(address account) external view returns (uint256) {
        return _balances[account];
    }

    function allowance(address tokenOwner, address spender) external view returns (uint256) {
        return _allowances[tokenOwner][spender];
    }

    function isBlacklisted(address account) external view returns (bool) {
        return _blacklist[account];
    }

    function transfer(address to, uint256 amount) external whenNotPaused notBlacklisted(msg.sender) notBlacklisted(to) returns (bool) {
        _transfer(msg.sender, to, amount);
        return true;
    }

    function approve(address spender, uint256 amount) external whenNotPaused returns (bool) {
        _approve(msg.sender, spender, amount);
        return true;
    }

    function transferFrom(address from, address to, uint256 amount) external whenNotPaused notBlacklisted(from) notBlacklisted(to) returns (bool) {
        uint256 currentAllowance = _allowances[from][msg.sender];
        require(currentAllowance >= amount, "$symbol: transfer amount exceeds allowance");
        _approve(from, msg.sender, currentAllowance - amount);
        _transfer(from, to, amount);
        return true;
    }

    function increaseAllowance(address spender, uint256 addedValue) external whenNotPaused returns (bool) {
        _approve(msg.sender, spender, _allowances[msg.sender][spender] + addedValue);
        return true;
    }

    function decreaseAllowance(address spender, uint256 subtractedValue) external whenNotPaused returns (bool) {
        uint256 current = _allowances[msg.sender][spender];
        require(current >= subtractedValue, "$symbol: decreased allowance below zero");
        _approve(msg.sender, spender, current - subtractedValue);
        return true;
    }

    function _transfer(address from, address to, uint256 amount) internal {
        require(from != address(0), "$symbol: transfer from the zero address");
        require(to != address(0), "$symbol: transfer to the zero address");
        uint256 fromBalance = _balances[from];
        require(fromBalance >= amount, "$symbol: transfer amount exceeds balance");
        _balances[from] = fromBalance - amount;
        _balances[to] += amount;
        emit Transfer(from, to, amount);
    }

    function _approve(address tokenOwner, address spender, uint256 amount) internal {
        require(tokenOwner != address(0), "$symbol: approve from the zero address");
        require(spender != address(0), "$symbol: approve to the zero address");
        _allowances[tokenOwner][spender] = amount;
        emit Approval(tokenOwner, spender, amount);
    }

    function pause() external onlyOwner whenNotPaused {
        paused = true;
        emit Paused(msg.sender);
    }

    function unpause() external onlyOwner whenPaused {
        paused = false;
        emit Unpaused(msg.sender);
    }

    function blacklist(address account) external onlyOwner {
        require(account != owner, "$symbol: cannot blacklist owner");
        _blacklist[account] = true;
        emit Blacklisted(account);
    }

    function unblacklist(address account) external onlyOwner {
        _blacklist[account] = false;
        emit Unblacklisted(account);
    }

    function mint(address to, uint256 amount) external onlyOwner {
        require(to != address(0), "$symbol: mint to the zero address");
        totalSupply += amount;
        _balances[to] += amount;
        emit Mint(to, amount);
        emit Transfer(address(0), to, amount);
    }

    function burn(uint256 amount) external onlyOwner {
        uint256 accountBalance = _balances[msg.sender];
        require(accountBalance >= amount, "$symbol: burn amount exceeds balance");
        _balances[msg.sender] = accountBalance - amount;
        totalSupply -= amount;
        emit Burn(msg.sender, amount);
        emit Transfer(msg.sender, address(0), amount);
    }

    function transferOwnership(address newOwner) external onlyOwner {
        require(newOwner != address(0), "$symbol: new owner is zero address");
        require(!_blacklist[newOwner], "$symbol: new owner is blacklisted");
        emit OwnershipTransferred(owner, newOwner);
        owner = newOwner;
    }

    function renounceOwnership() external onlyOwner {
        emit OwnershipTransferred(owner, address(0));
        owner = address(0);
    }
}
""")


@dataclass(frozen=True)
class TokenContractSpec:
    """Validated inputs to contract generation."""

    name: str
    symbol: str
    decimals: int = 18

    @classmethod
    def from_raw(cls, name: Any, symbol: Any, decimals: Any) -> "TokenContractSpec":
        """Build a spec from untrusted form/JSON values.

        Raises:
            ValidationError: if any field is missing or malformed.
        """
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Token name is required.")
        if not isinstance(symbol, str) or not symbol.strip():
            raise ValidationError("Token symbol is required.")

        if isinstance(decimals, bool):
            raise ValidationError("Decimals must be an integer between 0 and 18.")
        if isinstance(decimals, str):
            try:
                decimals = int(decimals.strip())
            except ValueError:
                raise ValidationError("Decimals must be an integer between 0 and 18.")
        if not isinstance(decimals, int):
            raise ValidationError("Decimals must be an integer between 0 and 18.")

        spec = cls(name=name.strip(), symbol=symbol.strip(), decimals=decimals)
        spec.validate()
        return spec

    def validate(self) -> None:
        """Raise ``InvalidParameter`` unless every field can be embedded."""
        validate_name(self.name)
        validate_symbol(self.symbol)
        validate_decimals(self.decimals)

    @property
    def contract_name(self) -> str:
        return self.symbol

    @property
    def initial_supply(self) -> int:
        return INITIAL_SUPPLY_TOKENS * 10 ** self.decimals

    def generate(self) -> str:
        return generate_contract_source(self.name, self.symbol, self.decimals)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def validate_name(name: Any) -> None:
    if not isinstance(name, str) or not name.strip():
        raise InvalidParameter("Token name must be non-empty text.")


def validate_symbol(symbol: Any) -> None:
    """Check that ``symbol`` is safe to use as a Solidity contract name."""
    if not isinstance(symbol, str) or not _IDENTIFIER_RE.fullmatch(symbol):
        raise InvalidParameter(
            f"Symbol {symbol!r} is not a valid identifier "
            "(letters, digits and underscore, not starting with a digit)."
        )
    if symbol in SOLIDITY_RESERVED or _ELEMENTARY_TYPE_RE.fullmatch(symbol):
        raise InvalidParameter(f"Symbol {symbol!r} is a reserved Solidity word.")
    if symbol in CONTRACT_MEMBERS:
        raise InvalidParameter(
            f"Symbol {symbol!r} collides with a member of the token contract."
        )


def validate_decimals(decimals: Any) -> None:
    if isinstance(decimals, bool) or not isinstance(decimals, int):
        raise InvalidParameter("Decimals must be an integer.")
    if not MIN_DECIMALS <= decimals <= MAX_DECIMALS:
        raise InvalidParameter(
            f"Decimals must be between {MIN_DECIMALS} and {MAX_DECIMALS}, got {decimals}."
        )


def sanitize_symbol(raw: str) -> str:
    """Reduce user input to an identifier-shaped symbol.

    Drops every character outside ``[A-Za-z0-9_]``; the result must still pass
    ``validate_symbol``.

    Raises:
        ValidationError: if nothing usable remains.
    """
    cleaned = re.sub(r"[^A-Za-z0-9_]", "", raw or "")
    if not cleaned:
        raise ValidationError(f"Symbol {raw!r} has no usable characters.")
    try:
        validate_symbol(cleaned)
    except InvalidParameter as e:
        raise ValidationError(str(e))
    return cleaned


def solidity_string_literal(text: str) -> str:
    """Quote ``text`` as a Solidity string literal.

    Non-ASCII text uses the ``unicode"..."`` form, which Solidity requires
    for anything outside printable ASCII.
    """
    out = []
    for ch in text:
        code = ord(ch)
        if ch == "\\":
            out.append("\\\\")
        elif ch == '"':
            out.append('\\"')
        elif ch == "\n":
            out.append("\\n")
        elif ch == "\r":
            out.append("\\r")
        elif ch == "\t":
            out.append("\\t")
        elif code < 0x20 or code == 0x7F:
            out.append(f"\\x{code:02x}")
        elif code in (0x2028, 0x2029):
            # Line/paragraph separators terminate literals in the scanner
            out.append(f"\\u{code:04x}")
        else:
            out.append(ch)
    body = "".join(out)
    if any(ord(ch) > 0x7E for ch in body):
        return f'unicode"{body}"'
    return f'"{body}"'


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------

def generate_contract_source(name: str, symbol: str, decimals: int) -> str:
    """Render the token contract source.

    Args:
        name: Display name, embedded as an escaped string literal.
        symbol: ERC-20 symbol and contract identifier.
        decimals: Token decimals, 0-18 inclusive.

    Returns:
        Complete Solidity source text.

    Raises:
        InvalidParameter: if any input cannot be embedded safely.
    """
    validate_name(name)
    validate_symbol(symbol)
    validate_decimals(decimals)

    return _CONTRACT_TEMPLATE.substitute(
        pragma=SOLIDITY_PRAGMA,
        symbol=symbol,
        name_literal=solidity_string_literal(name),
        decimals=decimals,
        initial_tokens=f"{INITIAL_SUPPLY_TOKENS:_}",
    )
