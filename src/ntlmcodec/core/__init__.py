"""
ntlmcodec Core Module

Provides foundational pieces used by the NTLM message types.

Components:
- wire: Little-endian integers and security buffers
- encoding: OEM/Unicode text encoding resolution
- crypto: Response provider and random source collaborators
- state_machine: Base state machine for the handshake driver
- exceptions: Custom exception types
"""

from ntlmcodec.core.crypto import (
    NTLMv2ResponseProvider,
    RandomSource,
    ResponseProvider,
    SecureRandomSource,
)
from ntlmcodec.core.encoding import EncodingConfig, select_encoding
from ntlmcodec.core.exceptions import (
    CryptoError,
    CryptoProviderFailure,
    EncodingFailure,
    MalformedMessage,
    NTLMCodecError,
    OversizedField,
    ProtocolError,
    StateError,
    TruncatedBuffer,
)
from ntlmcodec.core.state_machine import StateMachineBase, Transition
from ntlmcodec.core.wire import NTLMSSP_SIGNATURE

__all__ = [
    # Wire
    "NTLMSSP_SIGNATURE",
    # Encoding
    "EncodingConfig",
    "select_encoding",
    # Crypto
    "RandomSource",
    "ResponseProvider",
    "SecureRandomSource",
    "NTLMv2ResponseProvider",
    # State Machine
    "StateMachineBase",
    "Transition",
    # Exceptions
    "NTLMCodecError",
    "ProtocolError",
    "MalformedMessage",
    "TruncatedBuffer",
    "OversizedField",
    "EncodingFailure",
    "CryptoError",
    "CryptoProviderFailure",
    "StateError",
]
