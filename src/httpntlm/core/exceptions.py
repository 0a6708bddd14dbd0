"""
httpntlm Exception Types

Errors surfaced by the NTLM-over-HTTP handshake.
"""

from typing import Any, Optional


class HttpNtlmError(Exception):
    """Base exception for all httpntlm errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationError(HttpNtlmError):
    """
    The call cannot be attempted.

    Raised before any network activity, e.g. when no transport was
    supplied or the options are malformed.
    """

    pass


class TransportError(HttpNtlmError):
    """
    The transport failed.

    When the transport signalled the failure with an HTTP response
    (anything other than the 401 expected mid-handshake), that response
    is attached as ``response``. Network failures and timeouts carry none.
    """

    def __init__(self, message: str, response: Optional[Any] = None) -> None:
        super().__init__(message)
        self.response = response


class HandshakeError(HttpNtlmError):
    """The server's answers did not follow the NTLM handshake."""

    pass


class ChallengeMissingError(HandshakeError):
    """
    The 401 answer to the negotiate request had no WWW-Authenticate header.

    Only raised in strict mode; lenient mode hands the 401 back instead.
    """

    def __init__(
        self,
        message: str = "www-authenticate not found on response of second request",
    ) -> None:
        super().__init__(message)


class TooManyRedirectsError(HandshakeError):
    """Redirects during the negotiate step exceeded the configured limit."""

    def __init__(self, limit: int) -> None:
        super().__init__(f"Exceeded maximum of {limit} redirects")
        self.limit = limit


class CodecError(HttpNtlmError):
    """An NTLM message could not be built or parsed."""

    pass


class ChallengeDecodeError(CodecError):
    """The server's CHALLENGE_MESSAGE (Type 2) could not be decoded."""

    pass


class StateError(HttpNtlmError):
    """
    Invalid state transition.

    This indicates an attempt to perform an operation that is
    not valid in the current handshake state.
    """

    pass


class InvariantViolation(HttpNtlmError):
    """
    A handshake invariant was violated.

    This indicates a bug: the state machine entered a state its
    invariants forbid.
    """

    pass
