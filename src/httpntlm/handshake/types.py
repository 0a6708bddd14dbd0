"""
httpntlm Handshake Types

States, context and events of the handshake state machine.

    START --401--> AWAITING_CHALLENGE --challenge--> AWAITING_AUTH_RESULT --> DONE
      |                 |        \
      +--other/error--> DONE      +--Location--> REDIRECT --restarted call--> DONE
"""

from __future__ import annotations

from enum import Enum, auto
from typing import Any, Optional

import attrs

from httpntlm.core.exceptions import HttpNtlmError
from httpntlm.core.types import NTLMMode


class HandshakeState(Enum):
    """Handshake protocol states."""

    START = auto()
    AWAITING_CHALLENGE = auto()
    AWAITING_AUTH_RESULT = auto()
    REDIRECT = auto()
    DONE = auto()


@attrs.define(frozen=True)
class HandshakeContext:
    """
    What the machine knows about one logical call.

    The decoded challenge is held opaquely; only the codec reads it.
    """

    url: str
    method: str
    mode: NTLMMode = NTLMMode.LENIENT
    redirect_depth: int = 0

    negotiate_status: Optional[int] = None
    challenge: Optional[Any] = attrs.field(default=None, repr=False)
    redirect_location: Optional[str] = None

    final_status: Optional[int] = None
    error: Optional[HttpNtlmError] = None


# =============================================================================
# EVENTS
# =============================================================================


@attrs.define(frozen=True, slots=True)
class ChallengeRequested:
    """Event: the negotiate request was answered with 401."""

    status: int


@attrs.define(frozen=True, slots=True)
class RedirectReceived:
    """Event: the 401 pointed elsewhere via Location."""

    location: str


@attrs.define(frozen=True, slots=True)
class ChallengeDecoded:
    """Event: the codec accepted the server's challenge."""

    challenge: Any = attrs.field(repr=False)


@attrs.define(frozen=True, slots=True)
class ResponseReceived:
    """Event: a response that ends the call."""

    status: int


@attrs.define(frozen=True, slots=True)
class HandshakeFailed:
    """Event: an error that ends the call."""

    error: HttpNtlmError
