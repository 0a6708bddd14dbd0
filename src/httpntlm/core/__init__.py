"""
httpntlm Core Module

Foundational types and abstractions shared by the handshake and the codec.

Components:
- types: Options, headers, request and response values
- config: Client-wide handshake settings
- state_machine: Base state machine with invariant checking
- exceptions: Custom exception types
"""

from httpntlm.core.types import (
    Credentials,
    Headers,
    NTLMMode,
    RequestDescription,
    RequestOptions,
    Response,
)
from httpntlm.core.config import HandshakeConfig
from httpntlm.core.state_machine import StateMachineBase, Transition
from httpntlm.core.exceptions import (
    HttpNtlmError,
    ConfigurationError,
    TransportError,
    HandshakeError,
    ChallengeMissingError,
    TooManyRedirectsError,
    CodecError,
    ChallengeDecodeError,
    StateError,
    InvariantViolation,
)

__all__ = [
    # Types
    "Credentials",
    "Headers",
    "NTLMMode",
    "RequestDescription",
    "RequestOptions",
    "Response",
    # Config
    "HandshakeConfig",
    # State Machine
    "StateMachineBase",
    "Transition",
    # Exceptions
    "HttpNtlmError",
    "ConfigurationError",
    "TransportError",
    "HandshakeError",
    "ChallengeMissingError",
    "TooManyRedirectsError",
    "CodecError",
    "ChallengeDecodeError",
    "StateError",
    "InvariantViolation",
]
