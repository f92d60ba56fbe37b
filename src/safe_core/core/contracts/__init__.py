"""
Safe Core Contracts

Multi-owner account, its fallback handler and helper contracts:
- Safe: threshold-signature account (owners, modules, fallback handler)
- CompatibilityFallbackHandler: EIP-1271 validation, token hooks, simulation
- SignMessageLib: on-chain message signing
- SimulateTxAccessor: isolated operation simulation
- SignatureValidator: the threshold signature algorithm itself
"""

from .compatibility_fallback_handler import CompatibilityFallbackHandler
from .safe import Safe
from .sign_message_lib import SignMessageLib
from .signature_validator import (
    InMemoryApprovedHashStore,
    InMemoryOwnerRegistry,
    MalformedSignatureError,
    SignatureError,
    SignatureFailure,
    SignatureKind,
    SignatureOrderError,
    SignatureRecord,
    SignatureValidator,
    ThresholdNotMetError,
    ValidationReport,
    parse_signatures,
)
from .simulate_tx_accessor import (
    SimulateTxAccessor,
    SimulationError,
    SimulationResult,
    simulate_transaction,
)
from .token_callback_handler import TokenCallbackHandler

__all__ = [
    # Accounts
    "Safe",
    "CompatibilityFallbackHandler",
    "TokenCallbackHandler",
    "SignMessageLib",
    # Signatures
    "SignatureValidator",
    "SignatureKind",
    "SignatureRecord",
    "SignatureFailure",
    "SignatureError",
    "MalformedSignatureError",
    "SignatureOrderError",
    "ThresholdNotMetError",
    "ValidationReport",
    "InMemoryOwnerRegistry",
    "InMemoryApprovedHashStore",
    "parse_signatures",
    # Simulation
    "SimulateTxAccessor",
    "SimulationResult",
    "SimulationError",
    "simulate_transaction",
]
