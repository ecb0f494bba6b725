"""
ntlmcodec - NTLMSSP Handshake Message Codec

Construction, serialization and parsing of the three NTLMSSP messages
exchanged during NTLM authentication (e.g. SMTP/IMAP "AUTH NTLM"):

- NEGOTIATE_MESSAGE (Type 1): built by the client
- CHALLENGE_MESSAGE (Type 2): parsed from the server's bytes
- AUTHENTICATE_MESSAGE (Type 3): built by the client with LMv2/NTLMv2 responses

Example Usage:
    from ntlmcodec import build_negotiate, parse_challenge, build_authenticate

    transport.send(build_negotiate(domain="EXAMPLE"))

    challenge = parse_challenge(transport.receive()).unwrap()
    transport.send(
        build_authenticate(challenge, "secret", "EXAMPLE", "jdoe", "WS1")
    )

Transport, SASL framing and session security are left to the caller.
"""

from ntlmcodec.core.encoding import EncodingConfig
from ntlmcodec.core.exceptions import (
    CryptoProviderFailure,
    EncodingFailure,
    MalformedMessage,
    NTLMCodecError,
    OversizedField,
)
from ntlmcodec.ntlm.client import (
    NTLMClient,
    build_authenticate,
    build_authenticate_prebuilt,
    build_negotiate,
    parse_challenge,
)
from ntlmcodec.ntlm.types import (
    AuthenticateMessage,
    ChallengeMessage,
    NegotiateFlags,
    NegotiateMessage,
)

__version__ = "0.1.0"

__all__ = [
    # Codec API
    "build_negotiate",
    "parse_challenge",
    "build_authenticate",
    "build_authenticate_prebuilt",
    "NTLMClient",
    # Messages
    "NegotiateFlags",
    "NegotiateMessage",
    "ChallengeMessage",
    "AuthenticateMessage",
    # Configuration
    "EncodingConfig",
    # Exceptions
    "NTLMCodecError",
    "MalformedMessage",
    "EncodingFailure",
    "CryptoProviderFailure",
    "OversizedField",
    # Metadata
    "__version__",
]
