"""
httpntlm Handshake Module

Orchestration of the three-step NTLM exchange over HTTP.

Components:
- merge: Per-step request construction from caller options
- invoker: Uniform Result-returning wrapper around the transport
- types: Handshake states, context and events
- machine: The handshake state machine and its runner
"""

from httpntlm.handshake.types import HandshakeState, HandshakeContext
from httpntlm.handshake.merge import build_authenticate_request, build_negotiate_request
from httpntlm.handshake.invoker import Transport, TransportInvoker, resolve_transport
from httpntlm.handshake.machine import Handshake, HandshakeStateMachine

__all__ = [
    "HandshakeState",
    "HandshakeContext",
    "build_negotiate_request",
    "build_authenticate_request",
    "Transport",
    "TransportInvoker",
    "resolve_transport",
    "Handshake",
    "HandshakeStateMachine",
]
