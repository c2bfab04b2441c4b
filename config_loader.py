# config_loader.py
"""
Resolve everything a verification run needs before the first HTTP call:
.env secrets, the Truffle project config (JSON rendition), explorer endpoints
and the immutable VerificationOptions handed to every other module.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from dotenv import load_dotenv

from verify_errors import ConfigurationError

PACKAGE = "truffle-source-verify"
try:
    __version__ = version(PACKAGE)
except PackageNotFoundError:
    # running from a source checkout
    __version__ = "0.0.0+unknown"

ETHERSCAN = "etherscan"
BLOCKSCOUT = "blockscout"
EXPLORERS = (ETHERSCAN, BLOCKSCOUT)

# Verification endpoints per explorer family, keyed by network id
API_URLS: Dict[str, Dict[int, str]] = {
    ETHERSCAN: {
        1: "https://api.etherscan.io/api",
        3: "https://api-ropsten.etherscan.io/api",
        4: "https://api-rinkeby.etherscan.io/api",
        5: "https://api-goerli.etherscan.io/api",
        42: "https://api-kovan.etherscan.io/api",
    },
    BLOCKSCOUT: {
        1: "https://blockscout.com/eth/mainnet/api",
        77: "https://blockscout.com/poa/sokol/api",
        100: "https://blockscout.com/poa/xdai/api",
    },
}

# Human-facing explorer roots used for the "verified at ..." links
EXPLORER_URLS: Dict[str, Dict[int, str]] = {
    ETHERSCAN: {
        1: "https://etherscan.io",
        3: "https://ropsten.etherscan.io",
        4: "https://rinkeby.etherscan.io",
        5: "https://goerli.etherscan.io",
        42: "https://kovan.etherscan.io",
    },
    BLOCKSCOUT: {
        1: "https://blockscout.com/eth/mainnet/address",
        77: "https://blockscout.com/poa/sokol/address",
        100: "https://blockscout.com/poa/xdai/address",
    },
}

# Fallback when the project config does not list the network
NETWORK_IDS: Dict[str, int] = {
    "mainnet": 1,
    "ropsten": 3,
    "rinkeby": 4,
    "goerli": 5,
    "kovan": 42,
    "sokol": 77,
    "xdai": 100,
}

NETWORK_EXPLORERS: Dict[str, str] = {
    "mainnet": ETHERSCAN,
    "rinkeby": ETHERSCAN,
    "kovan": ETHERSCAN,
    "ropsten": ETHERSCAN,
    "goerli": ETHERSCAN,
    "xdai": BLOCKSCOUT,
    "sokol": BLOCKSCOUT,
}

DEFAULT_CONFIG_FILE = "truffle-config.json"
DEFAULT_BUILD_DIR = Path("build") / "contracts"
DEFAULT_POLL_INTERVAL = 1.0
DEFAULT_HTTP_TIMEOUT = 30.0

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"


@dataclass(frozen=True)
class VerificationOptions:
    explorer: str
    api_url: str
    explorer_url: str
    network: str
    network_id: str
    working_dir: Path
    contracts_build_dir: Path
    optimization_used: bool = False
    runs: int = 200
    evm_version: str = "default"
    license: Optional[str] = None
    api_key: Optional[str] = None
    constructor_args: Optional[str] = None
    debug: bool = False
    poll_interval: float = DEFAULT_POLL_INTERVAL
    # None means poll until the explorer confirms or the process is killed
    poll_timeout: Optional[float] = None
    http_timeout: float = DEFAULT_HTTP_TIMEOUT


def setup_logging(debug: bool = False, log_file: Optional[str] = None) -> None:
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    log_file = log_file or os.getenv("VERIFY_LOG_FILE")
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, mode="a", encoding="utf-8"))
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )
    # urllib3 chatter drowns the POST dump in debug mode
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def load_api_key(explorer: str, env: Optional[Mapping[str, str]] = None) -> Optional[str]:
    if env is None:
        load_dotenv()
        env = os.environ
    var = "ETHERSCAN_API_KEY" if explorer == ETHERSCAN else "BLOCKSCOUT_API_KEY"
    key = (env.get(var) or "").strip()
    if not key and explorer == ETHERSCAN:
        raise ConfigurationError("⚠️ Etherscan API key not found. Set ETHERSCAN_API_KEY in your .env file!")
    return key or None


def _network_id(value: Any, network: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Network {network} has no concrete network id (got {value!r})") from None


def load_host_config(
    network: str,
    working_dir: Optional[str] = None,
    config_path: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Read the JSON rendition of the Truffle config and return the resolved
    fields in Truffle's own key names. A missing default config file is fine;
    a missing explicit one is not.
    """
    root = Path(working_dir or os.getcwd()).resolve()
    path = Path(config_path) if config_path else root / DEFAULT_CONFIG_FILE
    if not path.is_absolute():
        path = root / path

    raw: Dict[str, Any] = {}
    if path.exists():
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Could not parse project config {path}: {e}") from e
    elif config_path:
        raise ConfigurationError(f"Project config not found: {path}")

    networks = raw.get("networks") or {}
    net = networks.get(network) or {}
    if "network_id" in net:
        network_id = _network_id(net["network_id"], network)
    elif network in NETWORK_IDS:
        network_id = NETWORK_IDS[network]
    else:
        raise ConfigurationError(f"Unknown network {network}: add it to {path.name} with a network_id")

    build_dir = Path(raw.get("contracts_build_directory") or DEFAULT_BUILD_DIR)
    if not build_dir.is_absolute():
        build_dir = root / build_dir

    return {
        "network": network,
        "network_id": network_id,
        "working_directory": str(root),
        "contracts_build_directory": str(build_dir),
        "compilers": raw.get("compilers") or {},
    }


def _env_float(env: Mapping[str, str], name: str, default: Optional[float]) -> Optional[float]:
    raw = (env.get(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number of seconds, got {raw!r}") from None


def parse_config(
    config: Mapping[str, Any],
    explorer: str,
    env: Optional[Mapping[str, str]] = None,
) -> VerificationOptions:
    """Turn the host config plus CLI flags into VerificationOptions, or fail fast."""
    if env is None:
        load_dotenv()
        env = os.environ

    if explorer not in EXPLORERS:
        raise ConfigurationError(f"Unknown explorer {explorer!r} (expected one of {', '.join(EXPLORERS)})")

    network = str(config.get("network") or "")
    network_id = config.get("network_id")
    try:
        api_url = API_URLS[explorer][int(network_id)]
    except (KeyError, TypeError, ValueError):
        raise ConfigurationError(f"No support for network {network} with id {network_id}") from None

    if not config.get("contracts"):
        raise ConfigurationError("No contract name(s) specified")

    solc = ((config.get("compilers") or {}).get("solc") or {}).get("settings") or {}
    optimizer = solc.get("optimizer") or {}

    return VerificationOptions(
        explorer=explorer,
        api_url=api_url,
        explorer_url=EXPLORER_URLS[explorer][int(network_id)],
        network=network,
        network_id=str(network_id),
        working_dir=Path(config.get("working_directory") or os.getcwd()),
        contracts_build_dir=Path(config["contracts_build_directory"]),
        optimization_used=bool(optimizer.get("enabled")),
        runs=int(200 if optimizer.get("runs") is None else optimizer["runs"]),
        evm_version=solc.get("evmTarget") or solc.get("evmVersion") or "default",
        license=config.get("license") or None,
        api_key=load_api_key(explorer, env),
        constructor_args=config.get("force_constructor_args") or None,
        debug=bool(config.get("debug")),
        poll_interval=_env_float(env, "VERIFY_POLL_INTERVAL", DEFAULT_POLL_INTERVAL),
        poll_timeout=_env_float(env, "VERIFY_POLL_TIMEOUT", None),
        http_timeout=_env_float(env, "VERIFY_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT),
    )
