"""
httpntlm Handshake State Machine

Drives one logical call through the NTLM handshake:

1. NEGOTIATE: send the Type 1 token. A 3xx with Location restarts the
   call at that url; anything else but 401 ends the call.
2. CHALLENGE: read the 401. A Location restarts the call at that url;
   a missing WWW-Authenticate fails (strict) or hands the 401 back
   (lenient); otherwise the codec decodes the Type 2 token.
3. AUTHENTICATE: send the Type 3 token. Whatever comes back, even a
   final 401 or a redirect, is the result.

Nothing is retried: an NTLM challenge is single-use, so a failed step
ends the call.
"""

from __future__ import annotations

from typing import Any, Dict, List, Tuple
from urllib.parse import urljoin

import attrs
import structlog
from returns.result import Failure, Result, Success

from httpntlm.core.config import HandshakeConfig
from httpntlm.core.exceptions import (
    ChallengeMissingError,
    CodecError,
    HttpNtlmError,
    StateError,
    TooManyRedirectsError,
)
from httpntlm.core.state_machine import StateMachineBase, Transition, TransitionEntry
from httpntlm.core.types import Credentials, RequestOptions, Response
from httpntlm.handshake.invoker import UNAUTHORIZED, Transport, TransportInvoker
from httpntlm.handshake.merge import (
    DEFAULT_METHOD,
    build_authenticate_request,
    build_negotiate_request,
)
from httpntlm.handshake.types import (
    ChallengeDecoded,
    ChallengeRequested,
    HandshakeContext,
    HandshakeFailed,
    HandshakeState,
    RedirectReceived,
    ResponseReceived,
)
from httpntlm.ntlm.codec import NTLMCodec

logger = structlog.get_logger()


EXPOSE_HEADERS_HINT = (
    'If this 401 response is unexpected, make sure your server sets '
    '"Access-Control-Expose-Headers" to "location, www-authenticate"'
)


# =============================================================================
# HANDSHAKE STATE MACHINE
# =============================================================================


@attrs.define
class HandshakeStateMachine(
    StateMachineBase[HandshakeState, Any, HandshakeContext]
):
    """
    State machine for one logical NTLM-over-HTTP call.

    States:
    - START: negotiate request not yet answered
    - AWAITING_CHALLENGE: negotiate answered with 401
    - AWAITING_AUTH_RESULT: challenge decoded, authenticate request in flight
    - REDIRECT: call restarted at another url
    - DONE: response or error settled
    """

    def initial_state(self) -> HandshakeState:
        return HandshakeState.START

    def transition_table(
        self,
    ) -> Dict[Tuple[HandshakeState, type], TransitionEntry]:
        done_on_response = (HandshakeState.DONE, self._handle_response)
        done_on_failure = (HandshakeState.DONE, self._handle_failure)
        return {
            (HandshakeState.START, ChallengeRequested): (
                HandshakeState.AWAITING_CHALLENGE,
                self._handle_challenge_requested,
            ),
            (HandshakeState.START, RedirectReceived): (
                HandshakeState.REDIRECT,
                self._handle_redirect,
            ),
            (HandshakeState.START, ResponseReceived): done_on_response,
            (HandshakeState.START, HandshakeFailed): done_on_failure,
            (HandshakeState.AWAITING_CHALLENGE, RedirectReceived): (
                HandshakeState.REDIRECT,
                self._handle_redirect,
            ),
            (HandshakeState.AWAITING_CHALLENGE, ChallengeDecoded): (
                HandshakeState.AWAITING_AUTH_RESULT,
                self._handle_challenge_decoded,
            ),
            (HandshakeState.AWAITING_CHALLENGE, ResponseReceived): done_on_response,
            (HandshakeState.AWAITING_CHALLENGE, HandshakeFailed): done_on_failure,
            (HandshakeState.AWAITING_AUTH_RESULT, ResponseReceived): done_on_response,
            (HandshakeState.AWAITING_AUTH_RESULT, HandshakeFailed): done_on_failure,
            (HandshakeState.REDIRECT, ResponseReceived): done_on_response,
            (HandshakeState.REDIRECT, HandshakeFailed): done_on_failure,
        }

    @staticmethod
    def _handle_challenge_requested(
        event: ChallengeRequested, ctx: HandshakeContext
    ) -> HandshakeContext:
        return attrs.evolve(ctx, negotiate_status=event.status)

    @staticmethod
    def _handle_redirect(
        event: RedirectReceived, ctx: HandshakeContext
    ) -> HandshakeContext:
        return attrs.evolve(ctx, redirect_location=event.location)

    @staticmethod
    def _handle_challenge_decoded(
        event: ChallengeDecoded, ctx: HandshakeContext
    ) -> HandshakeContext:
        return attrs.evolve(ctx, challenge=event.challenge)

    @staticmethod
    def _handle_response(
        event: ResponseReceived, ctx: HandshakeContext
    ) -> HandshakeContext:
        return attrs.evolve(ctx, final_status=event.status)

    @staticmethod
    def _handle_failure(
        event: HandshakeFailed, ctx: HandshakeContext
    ) -> HandshakeContext:
        return attrs.evolve(ctx, error=event.error)


def _is_redirect(status: int) -> bool:
    return 300 <= status < 400


def _challenge_before_authenticate(state: HandshakeState, ctx: HandshakeContext) -> bool:
    """Invariant: the authenticate step needs a decoded challenge."""
    if state is HandshakeState.AWAITING_AUTH_RESULT:
        return ctx.challenge is not None
    return True


def _done_has_outcome(state: HandshakeState, ctx: HandshakeContext) -> bool:
    """Invariant: a finished call carries exactly one of response or error."""
    if state is HandshakeState.DONE:
        return (ctx.final_status is None) != (ctx.error is None)
    return True


# =============================================================================
# HANDSHAKE
# =============================================================================


@attrs.define
class Handshake:
    """
    One logical call, run to completion by ``run()``.

    A redirect (a 3xx answer to the negotiate request, or a 401 carrying
    Location) runs a fresh Handshake against the new url (with
    ``redirect_depth + 1``); its outcome becomes this call's outcome.

    Example:
        handshake = Handshake(options, transport=my_transport, codec=NTLMv2Codec())
        result = await handshake.run()
        if isinstance(result, Success):
            print(result.unwrap().status)
    """

    options: RequestOptions
    transport: Transport
    codec: NTLMCodec
    config: HandshakeConfig = attrs.Factory(HandshakeConfig)
    redirect_depth: int = 0

    _invoker: TransportInvoker = attrs.field(init=False)
    _state_machine: HandshakeStateMachine = attrs.field(init=False)
    _logger: Any = attrs.field(init=False)

    def __attrs_post_init__(self) -> None:
        method = self.options.method or DEFAULT_METHOD
        self._logger = structlog.get_logger().bind(url=self.options.url, method=method)
        self._invoker = TransportInvoker(self.transport, logger=self._logger)
        self._state_machine = HandshakeStateMachine(
            _state=HandshakeState.START,
            _context=HandshakeContext(
                url=self.options.url,
                method=method,
                mode=self.options.ntlm_mode,
                redirect_depth=self.redirect_depth,
            ),
            _logger=self._logger,
        )
        self._state_machine.add_invariant(
            "challenge_before_authenticate", _challenge_before_authenticate
        )
        self._state_machine.add_invariant("done_has_outcome", _done_has_outcome)

    @property
    def state(self) -> HandshakeState:
        """Current handshake state."""
        return self._state_machine.state

    @property
    def context(self) -> HandshakeContext:
        """Current context (read-only)."""
        return self._state_machine.context

    def get_trace(self) -> List[Transition]:
        """Transition history of this call (redirect restarts keep their own)."""
        return self._state_machine.get_trace()

    async def run(self) -> Result[Response, HttpNtlmError]:
        """Run the handshake; errors are returned, never raised."""
        credentials = self.options.credentials

        try:
            authorization = self.codec.encode_negotiate(credentials)
        except CodecError as e:
            return self._fail(e)

        self._logger.debug("negotiate_sent", mode=self.options.ntlm_mode.value)
        outcome = await self._invoker.invoke(
            build_negotiate_request(self.options, authorization)
        )
        if isinstance(outcome, Failure):
            return self._fail(outcome.failure())

        response = outcome.unwrap()
        location = response.header("location")
        if _is_redirect(response.status) and location:
            return await self._follow_redirect(location)

        if response.status != UNAUTHORIZED:
            # No challenge needed, or access already granted
            return self._finish(response)

        self._advance(ChallengeRequested(status=response.status))
        return await self._answer_challenge(response, credentials)

    async def _answer_challenge(
        self, response: Response, credentials: Credentials
    ) -> Result[Response, HttpNtlmError]:
        location = response.header("location")
        if location:
            return await self._follow_redirect(location)

        www_authenticate = response.header("www-authenticate")
        if not www_authenticate:
            if self.options.is_strict:
                return self._fail(ChallengeMissingError())
            if self.config.warn_on_unexposed_headers:
                self._logger.warning(
                    "ntlm_headers_not_exposed",
                    status=response.status,
                    hint=EXPOSE_HEADERS_HINT,
                )
            return self._finish(response)

        decoded = self.codec.decode_challenge(www_authenticate)
        if isinstance(decoded, Failure):
            return self._fail(decoded.failure())

        challenge = decoded.unwrap()
        self._advance(ChallengeDecoded(challenge=challenge))
        self._logger.debug("challenge_received")

        authorization = self.codec.encode_authenticate(challenge, credentials)
        if isinstance(authorization, Failure):
            return self._fail(authorization.failure())

        self._logger.debug("authenticate_sent")
        outcome = await self._invoker.invoke(
            build_authenticate_request(self.options, authorization.unwrap())
        )
        if isinstance(outcome, Failure):
            return self._fail(outcome.failure())

        return self._finish(outcome.unwrap())

    async def _follow_redirect(self, location: str) -> Result[Response, HttpNtlmError]:
        target = urljoin(self.options.url, location)
        self._advance(RedirectReceived(location=target))

        if self.redirect_depth >= self.config.max_redirects:
            return self._fail(TooManyRedirectsError(self.config.max_redirects))

        self._logger.info(
            "redirect_followed",
            location=target,
            depth=self.redirect_depth + 1,
        )
        restarted = Handshake(
            options=self.options.with_url(target),
            transport=self.transport,
            codec=self.codec,
            config=self.config,
            redirect_depth=self.redirect_depth + 1,
        )
        result = await restarted.run()

        # The restarted call already logged its own outcome
        if isinstance(result, Failure):
            return self._fail(result.failure(), log=False)
        return self._finish(result.unwrap())

    def _advance(self, event: Any) -> None:
        result = self._state_machine.process_event(event)
        if isinstance(result, Failure):
            raise StateError(result.failure())

    def _finish(self, response: Response) -> Result[Response, HttpNtlmError]:
        self._advance(ResponseReceived(status=response.status))
        self._logger.debug("handshake_complete", status=response.status)
        return Success(response)

    def _fail(self, error: HttpNtlmError, log: bool = True) -> Result[Response, HttpNtlmError]:
        self._advance(HandshakeFailed(error=error))
        if log:
            self._logger.warning(
                "handshake_failed",
                error=error.message,
                error_type=type(error).__name__,
                state=self._state_machine.get_trace()[-1].from_state.name,
            )
        return Failure(error)
