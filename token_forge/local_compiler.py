"""
Local Solidity Compiler Integration

Compiles generated token source with py-solc-x using standard-JSON input and
returns the ABI plus creation bytecode of the requested contract.  The solc
version is chosen to satisfy the source's ``pragma solidity`` constraint,
preferring the configured default, and is installed on first use.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import solcx
from solcx.exceptions import SolcError

from .errors import CompileError

logger = logging.getLogger(__name__)

DEFAULT_SOLC_VERSION = "0.8.30"

# Versions tried, newest first, when the default does not satisfy a pragma.
CANDIDATE_VERSIONS = [
    "0.8.30", "0.8.28", "0.8.26", "0.8.24", "0.8.22", "0.8.20",
    "0.8.19", "0.8.17", "0.8.13", "0.8.10", "0.8.7", "0.8.4", "0.8.0",
]

SOURCE_UNIT = "Token.sol"


@dataclass
class CompiledContract:
    """ABI and bytecode of one contract from a compilation unit."""

    name: str
    abi: list
    bytecode: str  # creation bytecode, hex, no 0x prefix
    runtime_bytecode: str = ""
    source_file: str = SOURCE_UNIT

    def to_dict(self) -> Dict:
        return {"abi": self.abi, "bytecode": self.bytecode}


@dataclass
class CompilationResult:
    """Result of compiling a source unit."""

    compiler_version: str
    optimizer_enabled: bool
    optimizer_runs: int
    contracts: Dict[str, CompiledContract] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    success: bool = False


def get_installed_versions() -> List[str]:
    """Return list of installed solc version strings."""
    return [str(v) for v in solcx.get_installed_solc_versions()]


def install_solc_version(version: str) -> bool:
    """Install a specific solc version if not already installed.

    Returns:
        True if the version is available afterwards.
    """
    version = _normalize_version(version)
    if not version:
        return False

    if version in get_installed_versions():
        return True

    try:
        logger.info("Installing solc %s...", version)
        solcx.install_solc(version)
        logger.info("Installed solc %s", version)
        return True
    except Exception as e:
        logger.warning("Failed to install solc %s: %s", version, e)
        return False


def parse_pragma(source_code: str) -> List[str]:
    """Extract ``pragma solidity`` constraints, e.g. ``['^0.8.0']``."""
    return [
        match.group(1).strip()
        for match in re.finditer(r"pragma\s+solidity\s+([^;]+);", source_code, re.MULTILINE)
    ]


def compatible_versions_for_pragma(
    pragma_constraint: str,
    candidate_versions: Optional[List[str]] = None,
) -> List[str]:
    """Filter ``candidate_versions`` to those satisfying ``pragma_constraint``.

    Supports ^, ~, >=, <=, >, <, = and space-separated ranges.
    """
    if candidate_versions is None:
        candidate_versions = CANDIDATE_VERSIONS
    return [v for v in candidate_versions if _version_matches_pragma(v, pragma_constraint)]


def resolve_solc_version(source_code: str, preferred: Optional[str] = None) -> str:
    """Pick the compiler version for ``source_code``.

    The preferred version wins if every pragma in the source accepts it;
    otherwise the newest candidate that does.

    Raises:
        CompileError: if no candidate satisfies the pragmas.
    """
    preferred = _normalize_version(preferred or DEFAULT_SOLC_VERSION)
    pragmas = parse_pragma(source_code)
    if not pragmas:
        return preferred

    if preferred and all(_version_matches_pragma(preferred, p) for p in pragmas):
        return preferred

    candidates = CANDIDATE_VERSIONS
    for pragma in pragmas:
        candidates = compatible_versions_for_pragma(pragma, candidates)
    if candidates:
        return candidates[0]

    raise CompileError(f"No supported solc version satisfies pragma {' and '.join(pragmas)}")


def _version_matches_pragma(version: str, pragma: str) -> bool:
    parts = _parse_version(version)
    if not parts:
        return False

    # Compound constraints like '>=0.7.0 <0.9.0' must all hold
    constraints = re.findall(r"([><=^~!]*\s*\d+\.\d+\.\d+)", pragma)
    if not constraints:
        constraints = [pragma.strip()]

    return all(_single_constraint_matches(parts, c.strip()) for c in constraints)


def _single_constraint_matches(version_parts: Tuple[int, int, int], constraint: str) -> bool:
    """Check a single constraint like '^0.8.0' or '>=0.7.0'."""
    match = re.match(r"([><=^~!]*)\s*(\d+\.\d+\.\d+)", constraint)
    if not match:
        return False

    op = match.group(1).strip()
    target = _parse_version(match.group(2))
    if not target:
        return False

    major, minor, patch = version_parts
    t_major, t_minor, t_patch = target

    if op in ("", "=", "=="):
        return version_parts == target
    if op == "^":
        # ^0.8.0 means >=0.8.0 <0.9.0; ^1.2.0 means >=1.2.0 <2.0.0
        if t_major == 0:
            return major == 0 and minor == t_minor and patch >= t_patch
        return major == t_major and (minor, patch) >= (t_minor, t_patch)
    if op == "~":
        return major == t_major and minor == t_minor and patch >= t_patch
    if op == ">=":
        return version_parts >= target
    if op == ">":
        return version_parts > target
    if op == "<=":
        return version_parts <= target
    if op == "<":
        return version_parts < target
    if op == "!=":
        return version_parts != target
    return False


def _parse_version(version_str: str) -> Optional[Tuple[int, int, int]]:
    """Parse '0.8.20' into (0, 8, 20)."""
    match = re.match(r"(\d+)\.(\d+)\.(\d+)", version_str or "")
    if match:
        return (int(match.group(1)), int(match.group(2)), int(match.group(3)))
    return None


def _normalize_version(version_str: Optional[str]) -> Optional[str]:
    """Normalize version string: 'v0.8.30+commit.abc' -> '0.8.30'."""
    if not version_str:
        return None
    match = re.match(r"(\d+\.\d+\.\d+)", version_str.lstrip("v"))
    return match.group(1) if match else None


def compile_source(
    source_code: str,
    solc_version: Optional[str] = None,
    optimizer_enabled: bool = True,
    optimizer_runs: int = 200,
) -> CompilationResult:
    """Compile a single Solidity source unit.

    Compiler diagnostics are split by severity: ``errors`` holds the
    formatted messages that stopped compilation, ``warnings`` everything else.
    Never raises for compiler-side problems; check ``result.success``.
    """
    try:
        version = resolve_solc_version(source_code, solc_version)
    except CompileError as e:
        return CompilationResult(
            compiler_version=_normalize_version(solc_version) or "unknown",
            optimizer_enabled=optimizer_enabled,
            optimizer_runs=optimizer_runs,
            errors=[str(e)],
        )

    result = CompilationResult(
        compiler_version=version,
        optimizer_enabled=optimizer_enabled,
        optimizer_runs=optimizer_runs,
    )

    if not install_solc_version(version):
        result.errors.append(f"Could not install solc {version}")
        return result

    input_json = {
        "language": "Solidity",
        "sources": {SOURCE_UNIT: {"content": source_code}},
        "settings": {
            "optimizer": {"enabled": optimizer_enabled, "runs": optimizer_runs},
            "outputSelection": {
                "*": {
                    "*": ["abi", "evm.bytecode.object", "evm.deployedBytecode.object"],
                },
            },
        },
    }

    try:
        output = solcx.compile_standard(input_json, solc_version=version)
    except SolcError as e:
        result.errors.append(f"Compilation error: {e}")
        return result

    for diag in output.get("errors", []):
        message = diag.get("formattedMessage") or diag.get("message") or str(diag)
        if diag.get("severity") == "error":
            result.errors.append(message)
        else:
            result.warnings.append(message)

    if result.errors:
        return result

    for source_file, file_contracts in output.get("contracts", {}).items():
        for contract_name, contract_data in file_contracts.items():
            evm = contract_data.get("evm", {})
            creation_bc = evm.get("bytecode", {}).get("object", "")
            if not creation_bc:  # interfaces and abstract contracts
                continue
            result.contracts[contract_name] = CompiledContract(
                name=contract_name,
                abi=contract_data.get("abi", []),
                bytecode=creation_bc,
                runtime_bytecode=evm.get("deployedBytecode", {}).get("object", ""),
                source_file=source_file,
            )

    result.success = bool(result.contracts)
    return result


def compile_contract(
    source_code: str,
    contract_name: str,
    solc_version: Optional[str] = None,
    optimizer_enabled: bool = True,
    optimizer_runs: int = 200,
) -> Tuple[CompiledContract, List[str]]:
    """Compile ``source_code`` and return ``contract_name`` with any warnings.

    Raises:
        CompileError: with the compiler's messages verbatim when compilation
            fails or the named contract is not in the output.
    """
    result = compile_source(
        source_code,
        solc_version=solc_version,
        optimizer_enabled=optimizer_enabled,
        optimizer_runs=optimizer_runs,
    )
    if result.errors:
        raise CompileError("\n".join(result.errors), errors=result.errors)

    contract = result.contracts.get(contract_name)
    if contract is None:
        available = ", ".join(sorted(result.contracts)) or "none"
        raise CompileError(f"Contract {contract_name} not found. Available: {available}")

    logger.info(
        "Compiled %s with solc %s (%d bytes of bytecode)",
        contract_name, result.compiler_version, len(contract.bytecode) // 2,
    )
    return contract, result.warnings
