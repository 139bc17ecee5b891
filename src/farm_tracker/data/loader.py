"""Settings loader: packaged defaults, optional YAML file, environment overrides."""

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from farm_tracker.exceptions import ConfigurationError
from farm_tracker.rpc.codec import checksum
from farm_tracker.rpc.multicall import DEFAULT_CHUNK_SIZE, AggregateMode
from farm_tracker.rpc.retry import RetryConfig

DEFAULTS_PATH = Path(__file__).parent / "contracts.yaml"
ENV_PREFIX = "FARM_TRACKER_"


class RetrySettings(BaseModel):
    """Backoff parameters for transport retries."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_retries: int = Field(3, ge=0)
    base_delay: float = Field(1.0, ge=0)
    max_delay: float = Field(30.0, ge=0)
    exponential_base: float = Field(2.0, ge=1)

    def to_config(self) -> RetryConfig:
        return RetryConfig(
            max_retries=self.max_retries,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            exponential_base=self.exponential_base,
        )


class Settings(BaseModel):
    """
    Process configuration.

    Attributes
    ----------
    rpc_endpoint : str | None
        JSON-RPC endpoint URL; when unset, ``network`` is used through Ape
    network : str | None
        Ape network choice (e.g., 'bsc:mainnet')
    farm_address : str
        Farm contract address
    multicall_address : str
        Aggregator contract address
    aggregate_mode : AggregateMode
        Aggregator entry point
    chunk_size : int
        Maximum calls per aggregator invocation
    excluded_pool_ids : frozenset[int]
        Pool ids never listed
    first_pool_id : int
        Lowest pool id to read
    pool_count_inclusive : bool
        Whether the pool count itself is a readable pool id
    reward_decimals : int
        Decimals of the reward token
    reward_symbol : str
        Symbol of the reward token (display only)
    probe_workers : int
        Maximum concurrent pair probes
    request_timeout : float
        HTTP request timeout in seconds
    retry : RetrySettings
        Transport retry parameters

    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    rpc_endpoint: str | None = None
    network: str | None = None
    farm_address: str
    multicall_address: str
    aggregate_mode: AggregateMode = AggregateMode.TRY_AGGREGATE
    chunk_size: int = Field(DEFAULT_CHUNK_SIZE, ge=1)
    excluded_pool_ids: frozenset[int] = frozenset()
    first_pool_id: int = Field(1, ge=0)
    pool_count_inclusive: bool = True
    reward_decimals: int = Field(18, ge=0)
    reward_symbol: str = "AUTO"
    probe_workers: int = Field(16, ge=1)
    request_timeout: float = Field(30.0, gt=0)
    retry: RetrySettings = Field(default_factory=RetrySettings)

    @field_validator("farm_address", "multicall_address")
    @classmethod
    def _checksum_address(cls, value: str) -> str:
        return checksum(value)

    @field_validator("excluded_pool_ids", mode="before")
    @classmethod
    def _split_pool_ids(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        msg = f"Cannot read settings file {path}: {e}"
        raise ConfigurationError(msg) from e
    except yaml.YAMLError as e:
        msg = f"Invalid YAML in {path}: {e}"
        raise ConfigurationError(msg) from e

    if not isinstance(data, dict):
        msg = f"Settings file {path} must contain a mapping"
        raise ConfigurationError(msg)
    return data


def _env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    retry: dict[str, Any] = {}
    for name in Settings.model_fields:
        if name == "retry":
            continue
        value = environ.get(f"{ENV_PREFIX}{name.upper()}")
        if value is not None:
            overrides[name] = value
    for name in RetrySettings.model_fields:
        value = environ.get(f"{ENV_PREFIX}RETRY_{name.upper()}")
        if value is not None:
            retry[name] = value
    if retry:
        overrides["retry"] = retry
    return overrides


def _merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in overlay.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


def load_settings(path: str | Path | None = None, environ: Mapping[str, str] | None = None) -> Settings:
    """
    Load settings.

    Values are layered: packaged ``contracts.yaml`` defaults, then the
    optional YAML file at ``path``, then ``FARM_TRACKER_*`` environment
    variables (``FARM_TRACKER_RETRY_*`` for the retry block).

    Parameters
    ----------
    path : str | Path | None
        Optional user settings file
    environ : Mapping[str, str] | None
        Environment to read overrides from (defaults to ``os.environ``)

    Returns
    -------
    Settings
        Validated, immutable settings

    Raises
    ------
    ConfigurationError
        If a file cannot be read or a value is invalid

    """
    data = _read_yaml(DEFAULTS_PATH)
    if path is not None:
        data = _merge(data, _read_yaml(Path(path)))
    data = _merge(data, _env_overrides(os.environ if environ is None else environ))

    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        msg = f"Invalid settings: {e}"
        raise ConfigurationError(msg) from e
