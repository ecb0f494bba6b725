"""
ntlmcodec NTLM Module

NTLMSSP message codec (MS-NLMP).

Components:
- types: Flags, NEGOTIATE/CHALLENGE/AUTHENTICATE messages, handshake states
- client: Handshake driver and stateless codec entry points

WARNING: NTLM has inherent security vulnerabilities:
- Pass-the-hash attacks (cannot be prevented by protocol)
- Relay attacks
- Weak by design (no mutual authentication)
"""

from ntlmcodec.ntlm.types import (
    DEFAULT_WORKSTATION,
    AuthenticateMessage,
    ChallengeMessage,
    NegotiateFlags,
    NegotiateMessage,
    NTLMContext,
    NTLMState,
    default_flags,
)
from ntlmcodec.ntlm.client import (
    NTLMClient,
    build_authenticate,
    build_authenticate_prebuilt,
    build_negotiate,
    parse_challenge,
)

__all__ = [
    # State machine
    "NTLMState",
    "NTLMContext",
    # Flags
    "NegotiateFlags",
    "DEFAULT_WORKSTATION",
    "default_flags",
    # Messages
    "NegotiateMessage",
    "ChallengeMessage",
    "AuthenticateMessage",
    # Client
    "NTLMClient",
    # Codec functions
    "build_negotiate",
    "parse_challenge",
    "build_authenticate",
    "build_authenticate_prebuilt",
]
