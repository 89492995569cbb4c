"""
Tests for token_forge/local_compiler.py

Covers:
  - Pragma parsing and version matching
  - Compiler version resolution
  - compile_source output handling (solcx mocked)
  - compile_contract error surfacing
"""

from unittest.mock import patch

import pytest
from solcx.exceptions import SolcError

from token_forge.contract_template import generate_contract_source
from token_forge.errors import CompileError
from token_forge.local_compiler import (
    DEFAULT_SOLC_VERSION,
    SOURCE_UNIT,
    compatible_versions_for_pragma,
    compile_contract,
    compile_source,
    parse_pragma,
    resolve_solc_version,
)


def _solc_output(contracts=None, errors=None):
    return {
        "contracts": {SOURCE_UNIT: contracts or {}},
        "errors": errors or [],
    }


TTK_OUTPUT = {
    "TTK": {
        "abi": [{"type": "function", "name": "pause", "inputs": [], "outputs": []}],
        "evm": {
            "bytecode": {"object": "6080604052"},
            "deployedBytecode": {"object": "60806040"},
        },
    }
}


@pytest.fixture
def solc_installed():
    with patch("token_forge.local_compiler.install_solc_version", return_value=True) as installed:
        yield installed


# ---------------------------------------------------------------------------
# Pragma handling
# ---------------------------------------------------------------------------

class TestPragma:
    def test_parse_pragma(self):
        assert parse_pragma(generate_contract_source("Test Token", "TTK", 18)) == ["^0.8.0"]

    def test_parse_no_pragma(self):
        assert parse_pragma("contract A {}") == []

    def test_caret_range(self):
        versions = compatible_versions_for_pragma("^0.8.0", ["0.7.6", "0.8.0", "0.8.30", "0.9.0"])
        assert versions == ["0.8.0", "0.8.30"]

    def test_compound_range(self):
        versions = compatible_versions_for_pragma(">=0.8.10 <0.8.20", ["0.8.4", "0.8.10", "0.8.19", "0.8.20"])
        assert versions == ["0.8.10", "0.8.19"]

    def test_exact(self):
        assert compatible_versions_for_pragma("0.8.19", ["0.8.19", "0.8.20"]) == ["0.8.19"]


class TestResolveVersion:
    def test_default_for_generated_source(self):
        source = generate_contract_source("Test Token", "TTK", 18)
        assert resolve_solc_version(source) == DEFAULT_SOLC_VERSION == "0.8.30"

    def test_preferred_wins_when_compatible(self):
        assert resolve_solc_version("pragma solidity ^0.8.0;", "v0.8.19+commit.7dd6d404") == "0.8.19"

    def test_falls_back_to_newest_compatible(self):
        assert resolve_solc_version("pragma solidity <0.8.20;", "0.8.30") == "0.8.19"

    def test_every_pragma_must_hold(self):
        source = "pragma solidity >=0.8.10;\npragma solidity <0.8.17;\n"
        assert resolve_solc_version(source, "0.8.30") == "0.8.13"

    def test_unsatisfiable(self):
        with pytest.raises(CompileError):
            resolve_solc_version("pragma solidity ^0.4.24;")


# ---------------------------------------------------------------------------
# compile_source
# ---------------------------------------------------------------------------

class TestCompileSource:
    def test_success(self, solc_installed):
        with patch("solcx.compile_standard", return_value=_solc_output(TTK_OUTPUT)) as compile_standard:
            result = compile_source("pragma solidity ^0.8.0; contract TTK {}")

        assert result.success
        assert result.compiler_version == "0.8.30"
        assert result.contracts["TTK"].bytecode == "6080604052"
        assert result.contracts["TTK"].runtime_bytecode == "60806040"
        input_json = compile_standard.call_args[0][0]
        assert input_json["settings"]["optimizer"] == {"enabled": True, "runs": 200}
        assert compile_standard.call_args[1]["solc_version"] == "0.8.30"

    def test_warnings_separated_from_errors(self, solc_installed):
        output = _solc_output(TTK_OUTPUT, errors=[
            {"severity": "warning", "formattedMessage": "Warning: unused variable"},
        ])
        with patch("solcx.compile_standard", return_value=output):
            result = compile_source("contract TTK {}")
        assert result.success
        assert result.errors == []
        assert result.warnings == ["Warning: unused variable"]

    def test_compile_errors_returned_verbatim(self, solc_installed):
        output = _solc_output(errors=[
            {"severity": "error", "formattedMessage": "ParserError: Expected ';' but got '}'"},
        ])
        with patch("solcx.compile_standard", return_value=output):
            result = compile_source("contract TTK { uint x }")
        assert not result.success
        assert result.errors == ["ParserError: Expected ';' but got '}'"]

    def test_solc_error(self, solc_installed):
        with patch("solcx.compile_standard", side_effect=SolcError("boom", command=["solc"], return_code=1)):
            result = compile_source("contract TTK {}")
        assert not result.success
        assert result.errors[0].startswith("Compilation error:")

    def test_install_failure(self):
        with patch("token_forge.local_compiler.install_solc_version", return_value=False):
            result = compile_source("contract TTK {}")
        assert result.errors == ["Could not install solc 0.8.30"]

    def test_interfaces_skipped(self, solc_installed):
        contracts = dict(TTK_OUTPUT)
        contracts["IERC20"] = {"abi": [], "evm": {"bytecode": {"object": ""}}}
        with patch("solcx.compile_standard", return_value=_solc_output(contracts)):
            result = compile_source("contract TTK {}")
        assert list(result.contracts) == ["TTK"]


class TestCompileContract:
    def test_returns_contract_and_warnings(self, solc_installed):
        output = _solc_output(TTK_OUTPUT, errors=[{"severity": "warning", "message": "shadowing"}])
        with patch("solcx.compile_standard", return_value=output):
            contract, warnings = compile_contract("contract TTK {}", "TTK")
        assert contract.name == "TTK"
        assert contract.to_dict() == {"abi": TTK_OUTPUT["TTK"]["abi"], "bytecode": "6080604052"}
        assert warnings == ["shadowing"]

    def test_missing_contract(self, solc_installed):
        with patch("solcx.compile_standard", return_value=_solc_output(TTK_OUTPUT)):
            with pytest.raises(CompileError, match="Contract ABC not found. Available: TTK"):
                compile_contract("contract TTK {}", "ABC")

    def test_errors_raise(self, solc_installed):
        output = _solc_output(errors=[{"severity": "error", "formattedMessage": "TypeError: nope"}])
        with patch("solcx.compile_standard", return_value=output):
            with pytest.raises(CompileError) as exc:
                compile_contract("contract TTK {}", "TTK")
        assert exc.value.errors == ["TypeError: nope"]
