"""
Safe Core - Multi-owner account approval and execution core.

Main Components:
- Threshold Signature Validator: decides whether enough distinct owners
  authorized a digest (ECDSA, personal-sign, contract and approved-hash
  signatures in one blob)
- Isolated Simulation: runs an arbitrary call in the account's own storage
  context and reports its outcome and gas without persisting any change
- Execution host: in-process ledger with journaled state, gas metering and
  CALL / DELEGATECALL / STATICCALL message calls

For detailed documentation, see: DESIGN.md
"""

__version__ = "0.1.0"
__author__ = "Safe Core Development Team"

__all__ = []
