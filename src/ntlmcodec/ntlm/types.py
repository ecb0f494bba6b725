"""
ntlmcodec NTLM Types

NTLMSSP message types and handshake structures per MS-NLMP.

Wire layout (all integers little-endian):

    Type 1  0 signature | 8 type | 12 flags | 16 domain SB | 24 workstation SB
    Type 2  0 signature | 8 type | 12 target SB | 20 flags | 24 challenge
            | 32 context | 40 target information SB
    Type 3  0 signature | 8 type | 12 LM SB | 20 NT SB | 28 domain SB
            | 36 user SB | 44 workstation SB | 52 session key SB | 60 flags

WARNING: NTLM has known vulnerabilities. Use Kerberos when possible.
"""

from __future__ import annotations

from enum import Enum, Flag, auto
from typing import Optional

import attrs
import structlog
from attrs import field

from ntlmcodec.core.crypto import (
    CLIENT_NONCE_LENGTH,
    DEFAULT_RANDOM_SOURCE,
    DEFAULT_RESPONSE_PROVIDER,
    RandomSource,
    ResponseProvider,
)
from ntlmcodec.core.encoding import (
    DEFAULT_ENCODING_CONFIG,
    EncodingConfig,
    ascii_upper,
    decode_text,
    encode_text,
    is_unicode,
)
from ntlmcodec.core.exceptions import (
    CryptoProviderFailure,
    MalformedMessage,
)
from ntlmcodec.core.wire import (
    MESSAGE_TYPE_OFFSET,
    NTLMSSP_SIGNATURE,
    is_all_zero,
    read_bytes,
    read_security_buffer,
    read_uint32_le,
    write_bytes,
    write_header,
    write_security_buffer,
    write_uint32_le,
)

logger = structlog.get_logger()


# =============================================================================
# NTLM FLAGS
# =============================================================================


class NegotiateFlags(Flag):
    """NTLM negotiate flags per MS-NLMP 2.2.2.5."""

    NEGOTIATE_UNICODE = 0x00000001
    NEGOTIATE_OEM = 0x00000002
    NEGOTIATE_NTLM = 0x00000200
    NEGOTIATE_OEM_DOMAIN_SUPPLIED = 0x00001000
    NEGOTIATE_OEM_WORKSTATION_SUPPLIED = 0x00002000

    @classmethod
    def base_flags(cls) -> int:
        """Flags every Negotiate message carries: NTLM | OEM."""
        return cls.NEGOTIATE_NTLM.value | cls.NEGOTIATE_OEM.value


DEFAULT_WORKSTATION = "android"

NEGOTIATE_MESSAGE_TYPE = 1
CHALLENGE_MESSAGE_TYPE = 2
AUTHENTICATE_MESSAGE_TYPE = 3


def _summarize(value: Optional[bytes]) -> str:
    """attrs repr for byte fields: length only."""
    if value is None:
        return "None"
    return f"<{len(value)} bytes>"


def _encoded_field(
    value: Optional[str],
    flags: int,
    config: EncodingConfig,
    upper: bool = True,
) -> bytes:
    """
    Encode an optional string field per the message's Unicode flag.

    OEM fields are ASCII-uppercased unless upper is False.
    """
    if not value:
        return b""
    if is_unicode(flags):
        return encode_text(value, config.select(flags))
    if upper:
        value = ascii_upper(value)
    return encode_text(value, config.oem_encoding)


# =============================================================================
# NEGOTIATE MESSAGE
# =============================================================================


def _with_base_flags(flags: int) -> int:
    return (flags | NegotiateFlags.base_flags()) & 0xFFFFFFFF


def _workstation_or_default(workstation: Optional[str]) -> str:
    # Only an absent workstation falls back; "" means "send none"
    if workstation is None:
        return DEFAULT_WORKSTATION
    return workstation


@attrs.define(frozen=True, slots=True)
class NegotiateMessage:
    """
    NTLM NEGOTIATE_MESSAGE (Type 1).

    Client -> Server: Initiates NTLM authentication.

    Extra flags are merged with NTLM | OEM. An absent workstation falls
    back to DEFAULT_WORKSTATION; pass "" to send no host information.
    """

    # Message type (always 1)
    message_type: int = field(default=NEGOTIATE_MESSAGE_TYPE, init=False)

    flags: int = field(default=0, converter=_with_base_flags)

    # Sets OEM_DOMAIN_SUPPLIED when non-empty
    supplied_domain: Optional[str] = None

    # Sets OEM_WORKSTATION_SUPPLIED when non-empty
    supplied_workstation: str = field(
        default=DEFAULT_WORKSTATION,
        converter=_workstation_or_default,
    )

    # Fixed header without host info
    MINIMAL_SIZE = 16

    # Fixed header with domain and workstation descriptors
    HOST_INFO_SIZE = 32

    @classmethod
    def create(
        cls,
        flags: int = 0,
        domain: Optional[str] = None,
        workstation: Optional[str] = None,
    ) -> "NegotiateMessage":
        """Create a Type 1 message."""
        return cls(flags=flags, supplied_domain=domain, supplied_workstation=workstation)

    def to_bytes(self, config: EncodingConfig = DEFAULT_ENCODING_CONFIG) -> bytes:
        """
        Serialize to wire format.

        Domain and workstation are always ASCII-uppercased and OEM-encoded.

        Raises:
            EncodingFailure: If the OEM charset cannot encode a field
        """
        flags = self.flags
        domain_flag = NegotiateFlags.NEGOTIATE_OEM_DOMAIN_SUPPLIED.value
        workstation_flag = NegotiateFlags.NEGOTIATE_OEM_WORKSTATION_SUPPLIED.value

        domain = b""
        if self.supplied_domain:
            flags |= domain_flag
            domain = encode_text(ascii_upper(self.supplied_domain), config.oem_encoding)
        else:
            flags &= ~domain_flag

        workstation = b""
        if self.supplied_workstation:
            flags |= workstation_flag
            workstation = encode_text(
                ascii_upper(self.supplied_workstation), config.oem_encoding
            )
        else:
            flags &= ~workstation_flag

        host_info = bool(domain or workstation)
        size = self.HOST_INFO_SIZE + len(domain) + len(workstation) if host_info else self.MINIMAL_SIZE

        msg = bytearray(size)
        write_header(msg, self.message_type)
        write_uint32_le(msg, 12, flags)

        if host_info:
            offset = self.HOST_INFO_SIZE
            write_security_buffer(msg, 16, offset, domain)
            write_bytes(msg, offset, domain)
            offset += len(domain)
            write_security_buffer(msg, 24, offset, workstation)
            write_bytes(msg, offset, workstation)

        return bytes(msg)


# =============================================================================
# CHALLENGE MESSAGE
# =============================================================================


def _optional_block(length: int):
    """Validator: value is None or exactly length bytes."""

    def check(instance: object, attribute: attrs.Attribute, value: Optional[bytes]) -> None:
        if value is not None and len(value) != length:
            raise ValueError(f"{attribute.name} must be {length} bytes, got {len(value)}")

    return check


class ChallengeParseStage(Enum):
    """
    Stages of CHALLENGE_MESSAGE parsing, in order.

    Legacy servers send short messages that end after HEADER or CONTEXT.
    """

    SIGNATURE = auto()
    MESSAGE_TYPE = auto()
    HEADER = auto()
    CONTEXT = auto()
    TARGET_INFORMATION = auto()


@attrs.define(frozen=True, slots=True)
class ChallengeMessage:
    """
    NTLM CHALLENGE_MESSAGE (Type 2).

    Server -> Client: Contains server challenge and target info.

    An all-zero challenge or context is reported as None. Some servers
    zero-pad unused fields instead of omitting them; a server that sends a
    genuinely all-zero challenge is indistinguishable from that.
    """

    # Message type (always 2)
    message_type: int = field(default=CHALLENGE_MESSAGE_TYPE, init=False)

    flags: int = 0

    # Server challenge (8 bytes)
    challenge: Optional[bytes] = field(
        default=None, validator=_optional_block(8), repr=_summarize
    )

    # Target name (domain or server)
    target: Optional[str] = None

    # Local security context (8 bytes)
    context: Optional[bytes] = field(
        default=None, validator=_optional_block(8), repr=_summarize
    )

    # Target info (AV_PAIRs), opaque here
    target_information: Optional[bytes] = field(default=None, repr=_summarize)

    # Header ends before the context field
    LEGACY_HEADER_SIZE = 32

    # Header ends before the target information descriptor
    CONTEXT_HEADER_SIZE = 40

    # Full header
    HEADER_SIZE = 48

    @property
    def negotiated_unicode(self) -> bool:
        return is_unicode(self.flags)

    @classmethod
    def from_bytes(
        cls,
        data: bytes,
        config: EncodingConfig = DEFAULT_ENCODING_CONFIG,
    ) -> "ChallengeMessage":
        """
        Parse from wire format.

        Raises:
            MalformedMessage: Bad signature, wrong type or truncated data
            EncodingFailure: If the OEM charset is unavailable
        """
        data = bytes(data)
        fields = {}
        stage = ChallengeParseStage.SIGNATURE

        while True:
            if stage is ChallengeParseStage.SIGNATURE:
                if read_bytes(data, 0, len(NTLMSSP_SIGNATURE)) != NTLMSSP_SIGNATURE:
                    raise MalformedMessage("Not an NTLMSSP message")
                stage = ChallengeParseStage.MESSAGE_TYPE

            elif stage is ChallengeParseStage.MESSAGE_TYPE:
                if read_uint32_le(data, MESSAGE_TYPE_OFFSET) != CHALLENGE_MESSAGE_TYPE:
                    raise MalformedMessage("Not a Type 2 message")
                stage = ChallengeParseStage.HEADER

            elif stage is ChallengeParseStage.HEADER:
                flags = read_uint32_le(data, 20)
                fields["flags"] = flags
                fields["target"] = cls._read_target(data, flags, config)
                fields["challenge"] = cls._read_block(data, 24)

                target_offset = read_uint32_le(data, 16)
                if target_offset == cls.LEGACY_HEADER_SIZE or len(data) == cls.LEGACY_HEADER_SIZE:
                    break
                stage = ChallengeParseStage.CONTEXT

            elif stage is ChallengeParseStage.CONTEXT:
                fields["context"] = cls._read_block(data, 32)
                if target_offset == cls.CONTEXT_HEADER_SIZE or len(data) == cls.CONTEXT_HEADER_SIZE:
                    break
                stage = ChallengeParseStage.TARGET_INFORMATION

            elif stage is ChallengeParseStage.TARGET_INFORMATION:
                fields["target_information"] = read_security_buffer(data, 40) or None
                break

        return cls(**fields)

    @staticmethod
    def _read_target(data: bytes, flags: int, config: EncodingConfig) -> Optional[str]:
        raw = read_security_buffer(data, 12)
        if not raw:
            return None
        # Undecodable bytes are replaced, not rejected
        return decode_text(raw, config.select(flags))

    @staticmethod
    def _read_block(data: bytes, offset: int) -> Optional[bytes]:
        block = read_bytes(data, offset, 8)
        if is_all_zero(block):
            return None
        return block

    def to_bytes(self, config: EncodingConfig = DEFAULT_ENCODING_CONFIG) -> bytes:
        """
        Serialize to wire format using the full 48-byte header.

        Absent challenge and context are written as zeros.
        """
        target = b""
        if self.target:
            target = encode_text(self.target, config.select(self.flags))
        target_information = self.target_information or b""

        msg = bytearray(self.HEADER_SIZE + len(target) + len(target_information))
        write_header(msg, self.message_type)

        offset = self.HEADER_SIZE
        write_security_buffer(msg, 12, offset, target)
        write_bytes(msg, offset, target)
        offset += len(target)

        write_uint32_le(msg, 20, self.flags)
        write_bytes(msg, 24, self.challenge)
        write_bytes(msg, 32, self.context)

        write_security_buffer(msg, 40, offset, target_information)
        write_bytes(msg, offset, target_information)

        return bytes(msg)


# =============================================================================
# AUTHENTICATE MESSAGE
# =============================================================================


def default_flags(challenge: Optional[ChallengeMessage] = None) -> int:
    """
    Default flags for a Type 3 message answering challenge.

    Mirrors the Challenge's text encoding: NTLM | UNICODE if the server
    negotiated Unicode, else NTLM | OEM. Without a challenge, NTLM | OEM.
    """
    if challenge is None:
        return NegotiateFlags.base_flags()
    flags = NegotiateFlags.NEGOTIATE_NTLM.value
    if challenge.negotiated_unicode:
        flags |= NegotiateFlags.NEGOTIATE_UNICODE.value
    else:
        flags |= NegotiateFlags.NEGOTIATE_OEM.value
    return flags


@attrs.define(frozen=True, slots=True)
class AuthenticateMessage:
    """
    NTLM AUTHENTICATE_MESSAGE (Type 3).

    Client -> Server: Contains authentication response.

    Build with from_challenge() to compute LMv2/NTLMv2 responses, or with
    create() when the responses were computed elsewhere (e.g. NTLMv1).
    """

    # Message type (always 3)
    message_type: int = field(default=AUTHENTICATE_MESSAGE_TYPE, init=False)

    flags: int = field(default=0, converter=lambda f: f & 0xFFFFFFFF)

    domain: Optional[str] = None

    user: Optional[str] = None

    workstation: Optional[str] = DEFAULT_WORKSTATION

    lm_response: Optional[bytes] = field(default=None, repr=_summarize)

    nt_response: Optional[bytes] = field(default=None, repr=_summarize)

    # Session key derivation is not supported; always empty on the wire
    session_key: Optional[bytes] = field(default=None, init=False, repr=_summarize)

    HEADER_SIZE = 64

    @classmethod
    def create(
        cls,
        flags: int,
        lm_response: Optional[bytes],
        nt_response: Optional[bytes],
        domain: Optional[str] = None,
        user: Optional[str] = None,
        workstation: Optional[str] = None,
    ) -> "AuthenticateMessage":
        """Create a Type 3 message from precomputed responses."""
        return cls(
            flags=flags,
            domain=domain,
            user=user,
            workstation=workstation,
            lm_response=lm_response,
            nt_response=nt_response,
        )

    @classmethod
    def from_challenge(
        cls,
        challenge: ChallengeMessage,
        password: str,
        domain: Optional[str],
        user: Optional[str],
        workstation: Optional[str],
        flags: int = 0,
        provider: ResponseProvider = DEFAULT_RESPONSE_PROVIDER,
        random_source: RandomSource = DEFAULT_RANDOM_SOURCE,
    ) -> "AuthenticateMessage":
        """
        Create a Type 3 message answering challenge with LMv2/NTLMv2 responses.

        Two independent client nonces are drawn: the first for the LMv2
        response, the second for the NTLMv2 response. An absent server
        challenge is treated as eight zero bytes, which is what it was on
        the wire.

        Raises:
            CryptoProviderFailure: If the provider or random source fails
        """
        server_challenge = challenge.challenge or bytes(8)

        try:
            lm_nonce = random_source.next_bytes(CLIENT_NONCE_LENGTH)
            lm_response = provider.lmv2_response(
                domain or "",
                user or "",
                password,
                server_challenge,
                lm_nonce,
            )
            nt_nonce = random_source.next_bytes(CLIENT_NONCE_LENGTH)
            nt_response = provider.ntlmv2_response(
                domain or "",
                user or "",
                password,
                challenge.target_information,
                server_challenge,
                nt_nonce,
            )
        except Exception as e:
            logger.error(
                "response_provider_failed",
                provider=type(provider).__name__,
                error=str(e),
            )
            raise CryptoProviderFailure(f"Failed to compute NTLM responses: {e}") from e

        msg = cls(
            flags=flags | default_flags(challenge),
            domain=domain,
            user=user,
            workstation=workstation,
            lm_response=lm_response,
            nt_response=nt_response,
        )
        # The provider saw the domain as given; only the wire copy is uppercased
        if domain and not msg.uses_unicode:
            msg = attrs.evolve(msg, domain=ascii_upper(domain))
        return msg

    @property
    def uses_unicode(self) -> bool:
        return is_unicode(self.flags)

    def to_bytes(self, config: EncodingConfig = DEFAULT_ENCODING_CONFIG) -> bytes:
        """
        Serialize to wire format.

        Unicode messages keep string case. OEM messages uppercase user and
        workstation; the domain is written as stored, which from_challenge()
        has already uppercased.

        Raises:
            EncodingFailure: If a string cannot be encoded
            OversizedField: If a field exceeds 65535 bytes
        """
        domain = _encoded_field(self.domain, self.flags, config, upper=False)
        user = _encoded_field(self.user, self.flags, config)
        workstation = _encoded_field(self.workstation, self.flags, config)
        lm_response = self.lm_response or b""
        nt_response = self.nt_response or b""
        session_key = self.session_key or b""

        # Payload order matches descriptor order
        payload = (
            (12, lm_response),
            (20, nt_response),
            (28, domain),
            (36, user),
            (44, workstation),
            (52, session_key),
        )

        msg = bytearray(self.HEADER_SIZE + sum(len(data) for _, data in payload))
        write_header(msg, self.message_type)

        offset = self.HEADER_SIZE
        for descriptor_offset, data in payload:
            write_security_buffer(msg, descriptor_offset, offset, data)
            write_bytes(msg, offset, data)
            offset += len(data)

        write_uint32_le(msg, 60, self.flags)

        return bytes(msg)


# =============================================================================
# HANDSHAKE STATE
# =============================================================================


class NTLMState(Enum):
    """NTLM handshake states, client side."""

    INITIAL = auto()
    NEGOTIATE_SENT = auto()
    CHALLENGE_RECEIVED = auto()
    AUTHENTICATE_SENT = auto()
    ERROR = auto()


@attrs.define
class NTLMContext:
    """
    NTLM handshake context.

    Mutable state maintained during one handshake.
    """

    negotiate_flags: int = 0
    challenge: Optional[ChallengeMessage] = None
    error_message: str = ""


# =============================================================================
# NTLM EVENTS (for state machine)
# =============================================================================


@attrs.define(frozen=True, slots=True)
class NegotiateSent:
    """Event: Client sent NEGOTIATE_MESSAGE."""

    negotiate_flags: int


@attrs.define(frozen=True, slots=True)
class ChallengeReceived:
    """Event: Client parsed a CHALLENGE_MESSAGE."""

    challenge: ChallengeMessage


@attrs.define(frozen=True, slots=True)
class AuthenticateSent:
    """Event: Client built AUTHENTICATE_MESSAGE."""

    negotiate_flags: int


@attrs.define(frozen=True, slots=True)
class HandshakeFailed:
    """Event: Handshake cannot continue."""

    error_message: str
