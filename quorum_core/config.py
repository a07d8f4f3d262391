"""
TOML-based configuration for Quorum.

Loads settings from a TOML file and/or environment variables.
Environment variables take precedence over file values.

Usage:
    from quorum_core.config import load_config
    cfg = load_config("quorum.toml")
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomllib  # type: ignore[import]
    except ModuleNotFoundError:
        import tomli as tomllib  # type: ignore[import,no-redef]


@dataclass
class NetworkConfig:
    """Ledger network and operator (fee payer) identity."""
    name: str = "testnet"
    shard: int = 0
    realm: int = 0
    operator_id: str = ""
    operator_key: str = ""             # hex private key
    operator_balance: int = 10_000 * 100_000_000   # units, in-memory ledger only


@dataclass
class ScheduleConfig:
    """Schedule defaults and expiry sweep timing."""
    default_ttl_seconds: int = 1800
    max_memo_bytes: int = 100
    sweep_interval_seconds: float = 5.0
    # hex private key whose public key becomes the admin authority of
    # schedules created by the service
    admin_key: str = ""


@dataclass
class APIConfig:
    """REST API settings."""
    enabled: bool = False
    host: str = "127.0.0.1"
    port: int = 8080
    api_key: str = ""                 # require this key on POST endpoints (empty = no auth)
    max_body_bytes: int = 65_536


@dataclass
class LoggingConfig:
    """Logging settings."""
    level: str = "INFO"
    format: str = "human"   # "human" or "json"
    file: str | None = None


@dataclass
class QuorumConfig:
    """Top-level configuration container."""
    network: NetworkConfig = field(default_factory=NetworkConfig)
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    api: APIConfig = field(default_factory=APIConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _merge(dc: Any, raw: dict[str, Any]) -> None:
    """Merge a raw dict into a dataclass instance (in-place)."""
    for key, value in raw.items():
        key_under = key.replace("-", "_")
        if hasattr(dc, key_under):
            setattr(dc, key_under, value)


def load_config(path: str | None = None) -> QuorumConfig:
    """
    Load configuration from a TOML file, then overlay environment variables.

    Env-var mapping:
        QUORUM_NETWORK         -> network.name
        QUORUM_OPERATOR_ID     -> network.operator_id
        QUORUM_OPERATOR_KEY    -> network.operator_key
        QUORUM_ADMIN_KEY       -> schedule.admin_key
        QUORUM_DEFAULT_TTL     -> schedule.default_ttl_seconds
        QUORUM_SWEEP_INTERVAL  -> schedule.sweep_interval_seconds
        QUORUM_API_PORT        -> api.port (and enables the API)
        QUORUM_API_KEY         -> api.api_key
        QUORUM_LOG_LEVEL       -> logging.level
        QUORUM_LOG_FMT         -> logging.format
    """
    cfg = QuorumConfig()

    # ── TOML file ────────────────────────────────────────────────
    if path is not None:
        p = Path(path)
        if p.exists():
            with open(p, "rb") as f:
                data = tomllib.load(f)
            for section_name, section_dc in [
                ("network", cfg.network),
                ("schedule", cfg.schedule),
                ("api", cfg.api),
                ("logging", cfg.logging),
            ]:
                if section_name in data:
                    _merge(section_dc, data[section_name])

    # ── Environment variable overrides ───────────────────────────
    if v := os.environ.get("QUORUM_NETWORK"):
        cfg.network.name = v
    if v := os.environ.get("QUORUM_OPERATOR_ID"):
        cfg.network.operator_id = v
    if v := os.environ.get("QUORUM_OPERATOR_KEY"):
        cfg.network.operator_key = v
    if v := os.environ.get("QUORUM_ADMIN_KEY"):
        cfg.schedule.admin_key = v
    if v := os.environ.get("QUORUM_DEFAULT_TTL"):
        cfg.schedule.default_ttl_seconds = int(v)
    if v := os.environ.get("QUORUM_SWEEP_INTERVAL"):
        cfg.schedule.sweep_interval_seconds = float(v)
    if v := os.environ.get("QUORUM_API_PORT"):
        cfg.api.port = int(v)
        cfg.api.enabled = True
    if v := os.environ.get("QUORUM_API_KEY"):
        cfg.api.api_key = v
    if v := os.environ.get("QUORUM_LOG_LEVEL"):
        cfg.logging.level = v.upper()
    if v := os.environ.get("QUORUM_LOG_FMT"):
        cfg.logging.format = v

    return cfg
