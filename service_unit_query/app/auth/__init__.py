"""
Inbound authentication for the Unit Query gateway.
"""

from .credential_gate import CredentialGate, GateOutcome

__all__ = ["CredentialGate", "GateOutcome"]
