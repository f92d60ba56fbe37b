"""
Safe Core Configuration

Supports a local development network and mainnet with separate defaults.

All values can be overridden through environment variables:
- SAFE_CORE_NETWORK           testnet | mainnet (default: testnet)
- SAFE_CORE_CHAIN_ID          chain identifier mixed into every message digest
- SAFE_CORE_BLOCK_GAS_LIMIT   gas available to a single block
- SAFE_CORE_TX_GAS_LIMIT      default gas limit for a top-level transaction
- SAFE_CORE_LOG_LEVEL         root log level for setup_logging()
- SAFE_CORE_LOG_JSON          "1" for JSON log lines, "0" for plain text
"""

from __future__ import annotations

import logging
import os
from enum import Enum

logger = logging.getLogger(__name__)


class NetworkType(Enum):
    TESTNET = "testnet"
    MAINNET = "mainnet"


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def _get_int_env(env_var: str, default: int) -> int:
    """Read a non-negative integer from the environment.

    Raises:
        ConfigurationError: If the variable is set but is not a valid integer.
    """
    raw = os.getenv(env_var, "").strip()
    if not raw:
        return default
    try:
        value = int(raw, 0)
    except ValueError:
        raise ConfigurationError(f"{env_var} must be an integer, got {raw!r}")
    if value < 0:
        raise ConfigurationError(f"{env_var} must not be negative, got {value}")
    return value


def _get_bool_env(env_var: str, default: bool) -> bool:
    raw = os.getenv(env_var, "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


def _validate_gas_limits(block_gas_limit: int, tx_gas_limit: int) -> None:
    if tx_gas_limit > block_gas_limit:
        raise ConfigurationError(
            f"SAFE_CORE_TX_GAS_LIMIT ({tx_gas_limit}) exceeds "
            f"SAFE_CORE_BLOCK_GAS_LIMIT ({block_gas_limit})"
        )


# Get network type from environment variable
NETWORK = os.getenv("SAFE_CORE_NETWORK", "testnet")  # Default to testnet for safety

LOG_LEVEL = os.getenv("SAFE_CORE_LOG_LEVEL", "INFO").upper()
LOG_JSON = _get_bool_env("SAFE_CORE_LOG_JSON", True)

# Selectors and magic values reproduced bit-exact for interoperability
EIP1271_LEGACY_MAGIC_VALUE = bytes.fromhex("20c13b0b")  # isValidSignature(bytes,bytes)
EIP1271_MAGIC_VALUE = bytes.fromhex("1626ba7e")  # isValidSignature(bytes32,bytes)
ERC1155_RECEIVED_VALUE = bytes.fromhex("f23a6e61")
ERC1155_BATCH_RECEIVED_VALUE = bytes.fromhex("bc197c81")
ERC721_RECEIVED_VALUE = bytes.fromhex("150b7a02")

# Upper bound of nested message calls
MAX_CALL_DEPTH = 1024


class TestnetConfig:
    """Local development network (hardhat-compatible chain id)."""

    NETWORK_TYPE = NetworkType.TESTNET
    CHAIN_ID = _get_int_env("SAFE_CORE_CHAIN_ID", 31337)
    BLOCK_GAS_LIMIT = _get_int_env("SAFE_CORE_BLOCK_GAS_LIMIT", 30_000_000)
    TX_GAS_LIMIT = _get_int_env("SAFE_CORE_TX_GAS_LIMIT", 10_000_000)
    LOG_LEVEL = LOG_LEVEL
    LOG_JSON = LOG_JSON
    MAX_CALL_DEPTH = MAX_CALL_DEPTH


class MainnetConfig:
    """Mainnet Configuration"""

    NETWORK_TYPE = NetworkType.MAINNET
    CHAIN_ID = _get_int_env("SAFE_CORE_CHAIN_ID", 1)
    BLOCK_GAS_LIMIT = _get_int_env("SAFE_CORE_BLOCK_GAS_LIMIT", 30_000_000)
    TX_GAS_LIMIT = _get_int_env("SAFE_CORE_TX_GAS_LIMIT", 10_000_000)
    LOG_LEVEL = LOG_LEVEL
    LOG_JSON = LOG_JSON
    MAX_CALL_DEPTH = MAX_CALL_DEPTH


def select_config(network: str | None = None):
    """Return the configuration class for ``network`` (defaults to SAFE_CORE_NETWORK).

    Raises:
        ConfigurationError: On an unknown network name or inconsistent gas limits.
    """
    name = (network or NETWORK).strip().lower()
    if name == NetworkType.MAINNET.value:
        selected = MainnetConfig
    elif name == NetworkType.TESTNET.value:
        selected = TestnetConfig
    else:
        raise ConfigurationError(
            f"SAFE_CORE_NETWORK must be 'testnet' or 'mainnet', got {name!r}"
        )
    _validate_gas_limits(selected.BLOCK_GAS_LIMIT, selected.TX_GAS_LIMIT)
    logger.debug(
        "Configuration selected",
        extra={
            "event": "config.selected",
            "network": selected.NETWORK_TYPE.value,
            "chain_id": selected.CHAIN_ID,
        },
    )
    return selected


# Select config based on network
Config = select_config()

# Export config
__all__ = [
    "Config",
    "ConfigurationError",
    "NetworkType",
    "TestnetConfig",
    "MainnetConfig",
    "select_config",
    "EIP1271_LEGACY_MAGIC_VALUE",
    "EIP1271_MAGIC_VALUE",
    "ERC1155_RECEIVED_VALUE",
    "ERC1155_BATCH_RECEIVED_VALUE",
    "ERC721_RECEIVED_VALUE",
    "MAX_CALL_DEPTH",
]
