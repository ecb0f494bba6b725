"""
ntlmcodec Exception Types

Custom exceptions for NTLMSSP codec errors.
"""


class NTLMCodecError(Exception):
    """Base exception for all ntlmcodec errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ProtocolError(NTLMCodecError):
    """
    Protocol-level error.

    This indicates an error in the protocol exchange itself,
    such as malformed messages or unexpected responses.
    """

    pass


class MalformedMessage(ProtocolError):
    """
    Received bytes are not a well-formed NTLMSSP message.

    Recoverable: the caller should abort this authentication attempt
    or fall back to another mechanism.
    """

    pass


class TruncatedBuffer(MalformedMessage):
    """A read or write ran past the end of the message buffer."""

    def __init__(self, offset: int, size: int, length: int) -> None:
        super().__init__(
            f"Truncated buffer: need {size} bytes at offset {offset}, "
            f"buffer holds {length}"
        )
        self.offset = offset
        self.size = size
        self.length = length


class OversizedField(NTLMCodecError):
    """A field is too long for the 16-bit length of a security buffer."""

    def __init__(self, length: int, limit: int) -> None:
        super().__init__(
            f"Field of {length} bytes exceeds security buffer limit of {limit}"
        )
        self.length = length
        self.limit = limit


class EncodingFailure(NTLMCodecError):
    """
    Configured text encoding is unavailable or cannot represent the text.

    This is an environment or programming defect, not a protocol error.
    """

    pass


class CryptoError(NTLMCodecError):
    """
    Cryptographic operation failed.

    This indicates an error in hashing or keyed-MAC computation.
    """

    pass


class CryptoProviderFailure(CryptoError):
    """
    The response provider failed to compute LM/NT responses.

    Raised from the computed Authenticate construction path.
    """

    pass


class StateError(NTLMCodecError):
    """
    Invalid state transition.

    This indicates an attempt to perform a handshake step that is
    not valid in the current handshake state.
    """

    pass
