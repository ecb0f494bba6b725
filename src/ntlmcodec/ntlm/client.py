"""
ntlmcodec NTLM Client

Handshake driver and codec entry points.

The three NTLMSSP messages must be exchanged strictly in order:

    NEGOTIATE (client) -> CHALLENGE (server) -> AUTHENTICATE (client)

NTLMClient enforces that order for one handshake. The module-level
functions (build_negotiate, parse_challenge, build_authenticate,
build_authenticate_prebuilt) are stateless and may be used directly by a
transport that tracks the order itself.

WARNING: NTLM has known security vulnerabilities:
- Pass-the-hash: Attacker with NT hash can authenticate without password
- Relay attacks: Attacker can relay authentication to another server
- No mutual authentication: Client cannot verify server identity
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

import attrs
import structlog
from returns.result import Failure, Result, Success

from ntlmcodec.core.crypto import (
    DEFAULT_RANDOM_SOURCE,
    DEFAULT_RESPONSE_PROVIDER,
    RandomSource,
    ResponseProvider,
)
from ntlmcodec.core.encoding import DEFAULT_ENCODING_CONFIG, EncodingConfig
from ntlmcodec.core.exceptions import MalformedMessage
from ntlmcodec.core.state_machine import StateMachineBase, TransitionEntry
from ntlmcodec.ntlm.types import (
    AuthenticateMessage,
    AuthenticateSent,
    ChallengeMessage,
    ChallengeReceived,
    HandshakeFailed,
    NegotiateMessage,
    NegotiateSent,
    NTLMContext,
    NTLMState,
)

logger = structlog.get_logger()


# =============================================================================
# NTLM CLIENT STATE MACHINE
# =============================================================================


@attrs.define
class NTLMClientStateMachine(StateMachineBase[NTLMState, Any, NTLMContext]):
    """
    State machine for one NTLM handshake.

    States:
    - INITIAL: Nothing sent
    - NEGOTIATE_SENT: Sent NEGOTIATE, waiting for CHALLENGE
    - CHALLENGE_RECEIVED: CHALLENGE parsed, ready to authenticate
    - AUTHENTICATE_SENT: AUTHENTICATE built; the handshake is over for the codec
    - ERROR: Handshake failed
    """

    def initial_state(self) -> NTLMState:
        return NTLMState.INITIAL

    def transition_table(self) -> Dict[Tuple[NTLMState, type], TransitionEntry]:
        return {
            (NTLMState.INITIAL, NegotiateSent): (
                NTLMState.NEGOTIATE_SENT,
                self._handle_negotiate,
            ),
            (NTLMState.NEGOTIATE_SENT, ChallengeReceived): (
                NTLMState.CHALLENGE_RECEIVED,
                self._handle_challenge,
            ),
            (NTLMState.NEGOTIATE_SENT, HandshakeFailed): (
                NTLMState.ERROR,
                self._handle_error,
            ),
            (NTLMState.CHALLENGE_RECEIVED, AuthenticateSent): (
                NTLMState.AUTHENTICATE_SENT,
                self._handle_authenticate,
            ),
            (NTLMState.CHALLENGE_RECEIVED, HandshakeFailed): (
                NTLMState.ERROR,
                self._handle_error,
            ),
        }

    @staticmethod
    def _handle_negotiate(event: NegotiateSent, ctx: NTLMContext) -> NTLMContext:
        return attrs.evolve(ctx, negotiate_flags=event.negotiate_flags, error_message="")

    @staticmethod
    def _handle_challenge(event: ChallengeReceived, ctx: NTLMContext) -> NTLMContext:
        return attrs.evolve(ctx, challenge=event.challenge)

    @staticmethod
    def _handle_authenticate(event: AuthenticateSent, ctx: NTLMContext) -> NTLMContext:
        return attrs.evolve(ctx, negotiate_flags=event.negotiate_flags)

    @staticmethod
    def _handle_error(event: HandshakeFailed, ctx: NTLMContext) -> NTLMContext:
        return attrs.evolve(ctx, error_message=event.error_message)


def _new_state_machine() -> NTLMClientStateMachine:
    return NTLMClientStateMachine(_context=NTLMContext())


# =============================================================================
# NTLM CLIENT
# =============================================================================


@attrs.define
class NTLMClient:
    """
    Client side of one NTLMSSP handshake.

    Example:
        client = NTLMClient(domain="EXAMPLE", workstation="WS1")

        negotiate = client.create_negotiate().unwrap()
        challenge_bytes = transport.exchange(negotiate)

        client.process_challenge(challenge_bytes).unwrap()
        authenticate = client.create_authenticate("jdoe", "secret").unwrap()
        transport.send(authenticate)

    Attributes:
        domain: Domain sent in NEGOTIATE and AUTHENTICATE
        workstation: Workstation name; None selects DEFAULT_WORKSTATION
        flags: Extra negotiate flags for NEGOTIATE and AUTHENTICATE
        encoding: Text encoding configuration
        provider: LMv2/NTLMv2 response provider
        random_source: Source of client nonces
    """

    domain: Optional[str] = None
    workstation: Optional[str] = None
    flags: int = 0
    encoding: EncodingConfig = DEFAULT_ENCODING_CONFIG
    provider: ResponseProvider = attrs.field(default=DEFAULT_RESPONSE_PROVIDER, repr=False)
    random_source: RandomSource = attrs.field(default=DEFAULT_RANDOM_SOURCE, repr=False)

    _state_machine: NTLMClientStateMachine = attrs.Factory(_new_state_machine)

    def __attrs_post_init__(self) -> None:
        self._state_machine.add_invariant(
            "challenge_before_authenticate",
            self._challenge_before_authenticate,
        )

    @staticmethod
    def _challenge_before_authenticate(state: NTLMState, ctx: NTLMContext) -> bool:
        """Invariant: a challenge is held once one was received."""
        if state in (NTLMState.CHALLENGE_RECEIVED, NTLMState.AUTHENTICATE_SENT):
            return ctx.challenge is not None
        return True

    @property
    def state(self) -> NTLMState:
        """Current handshake state."""
        return self._state_machine.state

    @property
    def context(self) -> NTLMContext:
        """Current context (read-only)."""
        return self._state_machine.context

    @property
    def challenge(self) -> Optional[ChallengeMessage]:
        """Parsed CHALLENGE_MESSAGE, once received."""
        return self.context.challenge

    def _out_of_order(self, step: str, event_type: type) -> Optional[Failure]:
        if self._state_machine.can_accept(event_type):
            return None
        logger.warning("handshake_out_of_order", step=step, state=self.state.name)
        return Failure(f"Invalid state for {step}: {self.state.name}")

    def create_negotiate(self) -> Result[bytes, str]:
        """
        Create NTLM NEGOTIATE_MESSAGE (Type 1).

        Returns:
            Success(message bytes) or Failure(error) if already negotiated
        """
        failure = self._out_of_order("negotiate", NegotiateSent)
        if failure is not None:
            return failure

        msg = NegotiateMessage.create(
            flags=self.flags,
            domain=self.domain,
            workstation=self.workstation,
        )
        data = msg.to_bytes(self.encoding)
        self._state_machine.process_event(NegotiateSent(negotiate_flags=msg.flags))

        logger.debug("created_negotiate_message", flags=hex(msg.flags), length=len(data))
        return Success(data)

    def process_challenge(self, data: bytes) -> Result[ChallengeMessage, str]:
        """
        Parse the server's CHALLENGE_MESSAGE (Type 2).

        A malformed message moves the handshake to ERROR.

        Returns:
            Success(ChallengeMessage) or Failure(error)
        """
        failure = self._out_of_order("challenge", ChallengeReceived)
        if failure is not None:
            return failure

        result = parse_challenge(data, self.encoding)
        if isinstance(result, Failure):
            error = result.failure().message
            self._state_machine.process_event(HandshakeFailed(error_message=error))
            return Failure(error)

        challenge = result.unwrap()
        self._state_machine.process_event(ChallengeReceived(challenge=challenge))
        return Success(challenge)

    def create_authenticate(
        self,
        user: Optional[str],
        password: str,
        domain: Optional[str] = None,
    ) -> Result[bytes, str]:
        """
        Create NTLM AUTHENTICATE_MESSAGE (Type 3) answering the challenge.

        Args:
            user: User name
            password: User password
            domain: Domain; defaults to the client's domain

        Returns:
            Success(message bytes) or Failure(error) if no challenge is held

        Raises:
            CryptoProviderFailure: If the responses cannot be computed
        """
        failure = self._out_of_order("authenticate", AuthenticateSent)
        if failure is not None:
            return failure

        if domain is None:
            domain = self.domain

        try:
            msg = AuthenticateMessage.from_challenge(
                self.context.challenge,
                password,
                domain,
                user,
                self.workstation,
                flags=self.flags,
                provider=self.provider,
                random_source=self.random_source,
            )
            data = msg.to_bytes(self.encoding)
        except Exception as e:
            self._state_machine.process_event(HandshakeFailed(error_message=str(e)))
            raise

        self._state_machine.process_event(AuthenticateSent(negotiate_flags=msg.flags))
        return Success(data)

    def get_trace(self) -> List[Dict[str, Any]]:
        """Return the handshake's transition history."""
        return [t.to_dict() for t in self._state_machine.get_trace()]


# =============================================================================
# CODEC ENTRY POINTS
# =============================================================================


def build_negotiate(
    flags: int = 0,
    domain: Optional[str] = None,
    workstation: Optional[str] = None,
    config: EncodingConfig = DEFAULT_ENCODING_CONFIG,
) -> bytes:
    """
    Build NEGOTIATE_MESSAGE bytes.

    Raises:
        EncodingFailure: If the OEM charset cannot encode domain/workstation
    """
    return NegotiateMessage.create(flags, domain, workstation).to_bytes(config)


def parse_challenge(
    data: bytes,
    config: EncodingConfig = DEFAULT_ENCODING_CONFIG,
) -> Result[ChallengeMessage, MalformedMessage]:
    """
    Parse CHALLENGE_MESSAGE bytes.

    Returns:
        Success(ChallengeMessage) or Failure(MalformedMessage)

    Raises:
        EncodingFailure: If the configured charset is unavailable
    """
    try:
        challenge = ChallengeMessage.from_bytes(data, config)
    except MalformedMessage as e:
        logger.warning("challenge_parse_failed", error=e.message, length=len(data))
        return Failure(e)

    logger.debug(
        "challenge_parsed",
        flags=hex(challenge.flags),
        target=challenge.target,
        has_challenge=challenge.challenge is not None,
        has_context=challenge.context is not None,
        target_info_len=len(challenge.target_information or b""),
    )
    return Success(challenge)


def build_authenticate(
    challenge: ChallengeMessage,
    password: str,
    domain: Optional[str],
    user: Optional[str],
    workstation: Optional[str],
    flags: int = 0,
    provider: ResponseProvider = DEFAULT_RESPONSE_PROVIDER,
    random_source: RandomSource = DEFAULT_RANDOM_SOURCE,
    config: EncodingConfig = DEFAULT_ENCODING_CONFIG,
) -> bytes:
    """
    Build AUTHENTICATE_MESSAGE bytes with LMv2/NTLMv2 responses.

    Raises:
        CryptoProviderFailure: If the responses cannot be computed
        EncodingFailure: If a string cannot be encoded
    """
    msg = AuthenticateMessage.from_challenge(
        challenge,
        password,
        domain,
        user,
        workstation,
        flags=flags,
        provider=provider,
        random_source=random_source,
    )
    data = msg.to_bytes(config)
    logger.debug("authenticate_built", flags=hex(msg.flags), length=len(data))
    return data


def build_authenticate_prebuilt(
    flags: int,
    lm_response: Optional[bytes],
    nt_response: Optional[bytes],
    domain: Optional[str],
    user: Optional[str],
    workstation: Optional[str],
    config: EncodingConfig = DEFAULT_ENCODING_CONFIG,
) -> bytes:
    """Build AUTHENTICATE_MESSAGE bytes from precomputed responses."""
    return AuthenticateMessage.create(
        flags, lm_response, nt_response, domain, user, workstation
    ).to_bytes(config)
