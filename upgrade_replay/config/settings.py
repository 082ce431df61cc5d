"""
Configuration loader for upgrade replay testing.

Reads a YAML configuration file, validates it against a JSON schema and
applies environment overrides. The result is an immutable ReplayConfig that
is built once at startup and passed explicitly to every component.
"""

import json
import logging
import os
import shlex
from dataclasses import dataclass, field, asdict, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import jsonschema
import yaml

from upgrade_replay.exceptions import ConfigIncomplete, ConfigurationError

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).resolve().parent / "settings.schema.json"

DEFAULT_CONFIG_FILE = "replay-config.yaml"

# Environment overrides
CONFIG_FILE_ENV = "REPLAY_CONFIG_FILE"
EXPLORER_API_KEY_ENV = "REPLAY_EXPLORER_API_KEY"  # nosec B105
SAMPLING_SEED_ENV = "REPLAY_SAMPLING_SEED"

# Keys that must be non-empty before a replay session may start
REQUIRED_FOR_REPLAY = (
    "reports_dir",
    "proxy_path",
    "upgraded_logic_path",
    "deployed_logic_address",
    "deployed_proxy_address",
    "deployed_sources_dir",
    "upgraded_sources_dir",
    "harness_command",
)


@dataclass(frozen=True)
class ReplayConfig:
    """
    Immutable configuration for capture, sampling and replay.

    Attributes:
        reports_dir: Directory holding results.csv, results.json and SUMMARY.md
        transactions_path: Capture file written by `capture` and read by samplers
        samples_dir: Directory where tx-sample-<strategy>.json files are written
        deployed_sources_dir: Where sources of the deployed version live
        upgraded_sources_dir: Where sources of the upgraded version live
        proxy_path: Source path of the proxy contract
        upgraded_logic_path: Source path of the upgraded logic contract
        deployed_proxy_address: On-chain address of the proxy
        deployed_logic_address: On-chain address of the deployed logic contract
        state_vars_blacklist: Storage variables the harness ignores when diffing
        explorer_api_url: Etherscan-compatible API endpoint
        explorer_api_key: API key for the explorer
        explorer_end_block: Last block considered by `capture`
        harness_command: Command that replays one transaction on both versions
        harness_result_file: File (relative to reports_dir) the harness writes its result to
        sampling_seed: Seed for sampling shuffles; None uses OS entropy
        clean_dirs: Directories emptied by `clean`
    """

    reports_dir: str = "./replay"
    transactions_path: str = "./replay/transactions/transactions.json"
    samples_dir: str = "./replay/transactions"
    deployed_sources_dir: str = "./contracts/deployed"
    upgraded_sources_dir: str = "./contracts"
    proxy_path: str = ""
    upgraded_logic_path: str = ""
    deployed_proxy_address: str = ""
    deployed_logic_address: str = ""
    state_vars_blacklist: Tuple[str, ...] = ("__gap", "_gap")
    explorer_api_url: str = "https://api.etherscan.io/api"
    explorer_api_key: str = ""
    explorer_end_block: int = 20357000
    harness_command: Tuple[str, ...] = ("npx", "hardhat", "test")
    harness_result_file: str = "harness-result.json"
    sampling_seed: Optional[int] = None
    clean_dirs: Tuple[str, ...] = field(default=("./artifacts", "./cache"))

    @property
    def reports_path(self) -> Path:
        return Path(self.reports_dir)

    @property
    def harness_result_path(self) -> Path:
        return self.reports_path / self.harness_result_file

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to a serialisable dictionary."""
        data = asdict(self)
        data["explorer_api_key"] = "***REDACTED***" if self.explorer_api_key else ""
        return data

    def to_json(self) -> str:
        """Convert to JSON string (API key redacted)."""
        return json.dumps(self.to_dict(), indent=2, default=str)

    def missing_for_replay(self) -> List[str]:
        """Return the required replay keys that are empty."""
        return [key for key in REQUIRED_FOR_REPLAY if not getattr(self, key)]

    def require_complete(self) -> None:
        """
        Verify every value needed for a replay session is present.

        Raises:
            ConfigIncomplete: If one or more required values are empty
        """
        missing = self.missing_for_replay()
        if missing:
            raise ConfigIncomplete(missing)


def _normalize(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Convert list-valued YAML entries to the tuple types used by ReplayConfig."""
    values = dict(raw)

    command = values.get("harness_command")
    if isinstance(command, str):
        values["harness_command"] = tuple(shlex.split(command))
    elif command is not None:
        values["harness_command"] = tuple(command)

    for key in ("state_vars_blacklist", "clean_dirs"):
        if values.get(key) is not None:
            values[key] = tuple(values[key])

    return values


def _apply_env_overrides(config: ReplayConfig) -> ReplayConfig:
    """Apply environment variable overrides on top of the file configuration."""
    overrides: Dict[str, Any] = {}

    api_key = os.getenv(EXPLORER_API_KEY_ENV)
    if api_key:
        overrides["explorer_api_key"] = api_key

    seed_raw = os.getenv(SAMPLING_SEED_ENV)
    if seed_raw:
        try:
            overrides["sampling_seed"] = int(seed_raw)
        except ValueError as e:
            raise ConfigurationError(
                f"{SAMPLING_SEED_ENV} must be an integer, got {seed_raw!r}"
            ) from e

    return replace(config, **overrides) if overrides else config


def load_schema() -> Dict[str, Any]:
    """Load the configuration JSON schema bundled with the package."""
    with open(SCHEMA_PATH, "r", encoding="utf-8") as f:
        return json.load(f)


def load_config(config_path: Optional[str] = None) -> ReplayConfig:
    """
    Build the ReplayConfig for this process.

    Resolution order: explicit path, then REPLAY_CONFIG_FILE, then
    ./replay-config.yaml. A missing default file yields the built-in defaults;
    a missing explicitly requested file is an error.

    Args:
        config_path: Path to a YAML configuration file

    Returns:
        Frozen ReplayConfig

    Raises:
        ConfigurationError: If the file is missing, invalid YAML, or fails schema validation
    """
    explicit = config_path or os.getenv(CONFIG_FILE_ENV)
    path = Path(explicit or DEFAULT_CONFIG_FILE)

    raw: Dict[str, Any] = {}
    if path.exists():
        try:
            with path.open("r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.error(f"Invalid YAML in configuration: {e}")
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
        logger.debug(f"Loaded configuration from {path}")
    elif explicit:
        raise ConfigurationError(f"Configuration file not found: {path}")
    else:
        logger.debug(f"No configuration file at {path}; using defaults")

    if not isinstance(raw, dict):
        raise ConfigurationError(f"Configuration in {path} must be a mapping")

    try:
        jsonschema.validate(instance=raw, schema=load_schema())
    except jsonschema.ValidationError as e:
        logger.error(f"Configuration failed schema validation: {e.message}")
        raise ConfigurationError(f"Configuration validation failed: {e.message}") from e

    config = ReplayConfig(**_normalize(raw))
    return _apply_env_overrides(config)
