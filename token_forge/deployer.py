"""
Deployment Orchestrator

Sequences one token deployment:

1. Validate name / symbol / decimals
2. Generate the contract source
3. Compile it (local solc or the remote compile endpoint)
4. Switch the wallet to the target network and send the deployment
5. Wait for confirmation
6. Record the deployment in the registry

It stops at the first failing stage and surfaces that error.  A registry
failure after a confirmed deployment is reported separately as an
``orphaned`` outcome, since the token then exists on-chain but is unknown to
the registry; its address is logged for manual recovery.
"""

import functools
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from .contract_template import TokenContractSpec
from .errors import OrphanedDeploymentError, TokenForgeError
from .local_compiler import CompiledContract, compile_contract
from .wallet import PendingTransaction, Web3Wallet

logger = logging.getLogger(__name__)

CompileFn = Callable[[str, str], Tuple[CompiledContract, List[str]]]


class DeploymentStage(Enum):
    VALIDATE = "validate"
    GENERATE = "generate"
    COMPILE = "compile"
    DEPLOY = "deploy"
    CONFIRM = "confirm"
    RECORD = "record"


class DeploymentOutcome(Enum):
    DEPLOYED = "deployed"
    FAILED = "failed"
    # Confirmed on-chain, but the registry write failed
    ORPHANED = "orphaned"


@dataclass
class DeploymentResult:
    """Everything known about one deployment attempt."""
    token_name: str = ""
    token_symbol: str = ""
    decimals: Optional[int] = None
    stages_completed: List[str] = field(default_factory=list)
    stages_failed: List[str] = field(default_factory=list)

    source_code: Optional[str] = None
    compiled: Optional[CompiledContract] = None
    compiler_warnings: List[str] = field(default_factory=list)
    transaction: Optional[PendingTransaction] = None
    contract_address: Optional[str] = None
    wallet_address: Optional[str] = None
    chain_id: Optional[int] = None
    record: Optional[Any] = None
    error: Optional[Exception] = None

    @property
    def outcome(self) -> DeploymentOutcome:
        if isinstance(self.error, OrphanedDeploymentError):
            return DeploymentOutcome.ORPHANED
        if self.error is not None or self.stages_failed:
            return DeploymentOutcome.FAILED
        return DeploymentOutcome.DEPLOYED

    @property
    def success(self) -> bool:
        return self.outcome is DeploymentOutcome.DEPLOYED

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "outcome": self.outcome.value,
            "tokenName": self.token_name,
            "tokenSymbol": self.token_symbol,
            "decimals": self.decimals,
            "stagesCompleted": self.stages_completed,
            "stagesFailed": self.stages_failed,
        }
        if self.transaction is not None:
            result["txHash"] = self.transaction.tx_hash
            result["txStatus"] = self.transaction.status.value
        if self.contract_address:
            result["contractAddress"] = self.contract_address
            result["chainId"] = self.chain_id
        if self.record is not None:
            result["record"] = self.record.to_dict()
        if self.compiler_warnings:
            result["compilerWarnings"] = self.compiler_warnings
        if self.error is not None:
            result["error"] = str(self.error)
            result["errorType"] = type(self.error).__name__
        return result


class DeploymentOrchestrator:
    """Runs the generate → compile → deploy → record flow for one wallet."""

    def __init__(
        self,
        wallet: Web3Wallet,
        registry,
        compiler: Optional[CompileFn] = None,
        solc_version: Optional[str] = None,
        optimizer_runs: int = 200,
    ):
        self.wallet = wallet
        self.registry = registry
        self.compiler = compiler or functools.partial(
            compile_contract, solc_version=solc_version, optimizer_runs=optimizer_runs
        )

    def run(self, name: Any, symbol: Any, decimals: Any) -> DeploymentResult:
        """Execute every stage in order, stopping at the first failure."""
        result = DeploymentResult(
            token_name=name if isinstance(name, str) else "",
            token_symbol=symbol if isinstance(symbol, str) else "",
        )
        stages = [
            (DeploymentStage.VALIDATE, self._validate),
            (DeploymentStage.GENERATE, self._generate),
            (DeploymentStage.COMPILE, self._compile),
            (DeploymentStage.DEPLOY, self._deploy),
            (DeploymentStage.CONFIRM, self._confirm),
            (DeploymentStage.RECORD, self._record),
        ]
        context: Dict[str, Any] = {"raw": (name, symbol, decimals)}

        for stage, step in stages:
            try:
                step(context, result)
                result.stages_completed.append(stage.value)
            except TokenForgeError as e:
                logger.error("Stage %s failed: %s", stage.value, e)
                result.stages_failed.append(stage.value)
                result.error = e
                break

        return result

    def deploy(self, name: Any, symbol: Any, decimals: Any) -> DeploymentResult:
        """Like ``run`` but raises the first failure instead of returning it."""
        result = self.run(name, symbol, decimals)
        if result.error is not None:
            raise result.error
        return result

    # ------------------------------------------------------------------ #
    #  Stages
    # ------------------------------------------------------------------ #

    def _validate(self, context: Dict[str, Any], result: DeploymentResult) -> None:
        spec = TokenContractSpec.from_raw(*context["raw"])
        context["spec"] = spec
        result.token_name = spec.name
        result.token_symbol = spec.symbol
        result.decimals = spec.decimals

    def _generate(self, context: Dict[str, Any], result: DeploymentResult) -> None:
        result.source_code = context["spec"].generate()

    def _compile(self, context: Dict[str, Any], result: DeploymentResult) -> None:
        spec: TokenContractSpec = context["spec"]
        compiled, warnings = self.compiler(result.source_code, spec.contract_name)
        result.compiled = compiled
        result.compiler_warnings = list(warnings)

    def _deploy(self, context: Dict[str, Any], result: DeploymentResult) -> None:
        self.wallet.ensure_network()
        result.wallet_address = self.wallet.get_active_account()
        result.chain_id = self.wallet.get_chain_id()
        result.transaction = self.wallet.deploy(result.compiled.abi, result.compiled.bytecode)

    def _confirm(self, context: Dict[str, Any], result: DeploymentResult) -> None:
        result.transaction.wait()
        result.contract_address = result.transaction.contract_address
        logger.info(
            "%s deployed at %s on chain %s",
            result.token_symbol, result.contract_address, result.chain_id,
        )

    def _record(self, context: Dict[str, Any], result: DeploymentResult) -> None:
        spec: TokenContractSpec = context["spec"]
        try:
            result.record = self.registry.record(
                wallet_address=result.wallet_address,
                token_name=spec.name,
                token_symbol=spec.symbol,
                contract_address=result.contract_address,
                chain_id=result.chain_id,
                decimals=spec.decimals,
            )
        except Exception as e:
            # The contract is live whatever went wrong here
            logger.error(
                "ORPHANED DEPLOYMENT: %s (%s) is live at %s on chain %s for %s "
                "but was not recorded: %s",
                spec.symbol, spec.name, result.contract_address, result.chain_id,
                result.wallet_address, e,
            )
            raise OrphanedDeploymentError(
                f"Token {spec.symbol} was deployed at {result.contract_address} "
                f"but could not be recorded: {e}",
                contract_address=result.contract_address,
                chain_id=result.chain_id,
            ) from e
