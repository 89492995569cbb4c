"""
Runtime settings.

Values come from a YAML file (``settings.yaml`` in the working directory
unless ``TOKEN_FORGE_SETTINGS`` points elsewhere), then environment variables
override individual keys.
"""

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .errors import ValidationError

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


@dataclass(frozen=True)
class NetworkConfig:
    """The single chain tokens are deployed to."""
    chain_id: int
    name: str
    rpc_url: str
    currency_symbol: str
    explorer_url: str

    @property
    def chain_id_hex(self) -> str:
        return hex(self.chain_id)

    def add_chain_params(self) -> Dict[str, Any]:
        """Parameters for ``wallet_addEthereumChain``."""
        return {
            "chainId": self.chain_id_hex,
            "chainName": self.name,
            "nativeCurrency": {
                "name": self.currency_symbol,
                "symbol": self.currency_symbol,
                "decimals": 18,
            },
            "rpcUrls": [self.rpc_url],
            "blockExplorerUrls": [self.explorer_url],
        }


BSC_MAINNET = NetworkConfig(
    chain_id=56,
    name="BNB Chain",
    rpc_url="https://bsc-dataseed.binance.org/",
    currency_symbol="BNB",
    explorer_url="https://bscscan.com",
)


@dataclass
class Settings:
    db_path: str = "data/tokens.db"
    rpc_url: str = BSC_MAINNET.rpc_url
    chain_id: int = BSC_MAINNET.chain_id
    network_name: str = BSC_MAINNET.name
    currency_symbol: str = BSC_MAINNET.currency_symbol
    explorer_url: str = BSC_MAINNET.explorer_url
    private_key: Optional[str] = None
    solc_version: str = "0.8.30"
    optimizer_runs: int = 200
    receipt_timeout: float = 180.0
    verify_on_chain: bool = False
    compile_url: Optional[str] = None
    registry_url: Optional[str] = None
    max_content_length: int = 1 * 1024 * 1024

    @property
    def network(self) -> NetworkConfig:
        return NetworkConfig(
            chain_id=self.chain_id,
            name=self.network_name,
            rpc_url=self.rpc_url,
            currency_symbol=self.currency_symbol,
            explorer_url=self.explorer_url,
        )


_ENV_PREFIX = "TOKEN_FORGE_"


def _coerce(name: str, raw: Any, default: Any) -> Any:
    if raw is None:
        return None
    if isinstance(default, bool):
        if isinstance(raw, bool):
            return raw
        return str(raw).strip().lower() in ("1", "true", "yes", "on")
    try:
        if isinstance(default, int):
            return int(raw)
        if isinstance(default, float):
            return float(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"Setting {name} has invalid value {raw!r}")
    return str(raw)


def load_settings(path: Optional[str] = None, env: Optional[Dict[str, str]] = None) -> Settings:
    """Load settings from YAML, then apply ``TOKEN_FORGE_*`` overrides."""
    env = os.environ if env is None else env
    settings_path = Path(path or env.get(_ENV_PREFIX + "SETTINGS", "settings.yaml"))

    values: Dict[str, Any] = {}
    if settings_path.exists():
        with open(settings_path, "r") as f:
            values = yaml.safe_load(f) or {}
        logger.debug("Loaded settings from %s", settings_path)

    defaults = Settings()
    kwargs = {}
    for f in fields(Settings):
        default = getattr(defaults, f.name)
        raw = values.get(f.name, default)
        env_value = env.get(_ENV_PREFIX + f.name.upper())
        if env_value is not None:
            raw = env_value
        kwargs[f.name] = raw if raw is default else _coerce(f.name, raw, default)

    unknown = set(values) - {f.name for f in fields(Settings)}
    if unknown:
        logger.warning("Ignoring unknown settings: %s", ", ".join(sorted(unknown)))

    return Settings(**kwargs)


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> None:
    """Configure logging to console and optionally a file."""
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers)
