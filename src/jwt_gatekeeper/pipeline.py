"""
The authentication pipeline.

For every request: skip check, transport guard, token lookup, verification,
then either the authenticated path (before hook, attach token, dispatch,
after hook) or the failure path (error hook on a 401 response).
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from .errors import AuthenticationFailed
from .hooks import default_after, default_before, default_error
from .locator import LocatedToken, TokenLocator
from .models import DecodedToken, GateRequest, GateResponse, VerificationOutcome
from .options import GateOptions
from .transport import check_transport
from .verifier import TokenVerifier

logger = logging.getLogger("jwt_gatekeeper")

Handler = Callable[[GateRequest], GateResponse]
AsyncHandler = Callable[[GateRequest], Awaitable[GateResponse]]


class DecisionState(enum.Enum):
    SKIPPED = "skipped"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"


@dataclass(frozen=True)
class Decision:
    """
    What the pipeline decided about one request.

    Attributes:
        state: SKIPPED, AUTHENTICATED or UNAUTHENTICATED
        request: The request to dispatch; on the authenticated path this is
            the before hook's result with the token attached
        token: Decoded token when authenticated
        error: The failure when unauthenticated
    """
    state: DecisionState
    request: GateRequest
    token: DecodedToken | None = None
    error: AuthenticationFailed | None = None

    @classmethod
    def skip(cls, request: GateRequest) -> Decision:
        return cls(DecisionState.SKIPPED, request)

    @classmethod
    def authenticated(cls, request: GateRequest, token: DecodedToken) -> Decision:
        return cls(DecisionState.AUTHENTICATED, request, token=token)

    @classmethod
    def unauthenticated(cls, request: GateRequest, outcome: VerificationOutcome) -> Decision:
        return cls(DecisionState.UNAUTHENTICATED, request, error=AuthenticationFailed(outcome))


class JwtAuthentication:
    """
    Framework-neutral JWT authentication gate.

    Args:
        options: Shared, immutable configuration
        verifier: Token verifier; built from ``options`` when omitted

    Example:
        >>> auth = JwtAuthentication(GateOptions.create(secret))
        >>> response = auth.process(request, handler)

    Raises:
        InsecureTransportError: From process/decide, for plain HTTP to a
            host that is not relaxed while ``options.secure`` is on
    """

    def __init__(self, options: GateOptions, verifier: TokenVerifier | None = None):
        self.options = options
        self.logger = options.logger or logger
        self.locator = TokenLocator(options.locations, log=self.logger)
        self.verifier = verifier or TokenVerifier(
            key=options.key,
            algorithms=options.algorithms,
            audience=options.audience,
            issuer=options.issuer,
            leeway=options.leeway,
            log=self.logger,
        )

    def should_authenticate(self, request: GateRequest) -> bool:
        # Preflight requests never carry credentials
        if request.method == "OPTIONS":
            return False
        return self.options.rules.should_authenticate(request.path, request.method)

    def decide(self, request: GateRequest) -> Decision:
        gated = self._gate(request)
        if isinstance(gated, Decision):
            return gated
        return self._conclude(request, self.verifier.verify(gated.token))

    async def adecide(self, request: GateRequest) -> Decision:
        gated = self._gate(request)
        if isinstance(gated, Decision):
            return gated
        return self._conclude(request, await self.verifier.averify(gated.token))

    def fail(self, decision: Decision) -> GateResponse:
        """Build the response for an unauthenticated decision."""
        error_hook = self.options.error or default_error
        return error_hook(decision.request, GateResponse.unauthorized(), decision.error)

    def complete(self, response: GateResponse, decision: Decision) -> GateResponse:
        """Run the after hook on the downstream response of an authenticated request."""
        after_hook = self.options.after or default_after
        return after_hook(response, decision.token)

    def process(self, request: GateRequest, handler: Handler) -> GateResponse:
        """
        Run the whole pipeline around ``handler``.

        ``handler`` is called at most once, and never when authentication
        fails.
        """
        decision = self.decide(request)
        if decision.state is DecisionState.SKIPPED:
            return handler(request)
        if decision.state is DecisionState.UNAUTHENTICATED:
            return self.fail(decision)
        return self.complete(handler(decision.request), decision)

    async def aprocess(self, request: GateRequest, handler: AsyncHandler) -> GateResponse:
        """Async variant of process, for coroutine handlers and key resolvers."""
        decision = await self.adecide(request)
        if decision.state is DecisionState.SKIPPED:
            return await handler(request)
        if decision.state is DecisionState.UNAUTHENTICATED:
            return self.fail(decision)
        return self.complete(await handler(decision.request), decision)

    __call__ = process

    def _gate(self, request: GateRequest) -> Decision | LocatedToken:
        if not self.should_authenticate(request):
            return Decision.skip(request)

        check_transport(request.scheme, request.host, self.options.secure, self.options.relaxed)

        located = self.locator.locate(request)
        if located is None:
            return Decision.unauthenticated(request, VerificationOutcome.not_found())
        return located

    def _conclude(self, request: GateRequest, outcome: VerificationOutcome) -> Decision:
        if not outcome.ok:
            return Decision.unauthenticated(request, outcome)

        token = outcome.token
        before_hook = self.options.before or default_before
        request = before_hook(request, token)
        request = request.with_attribute(self.options.attribute, token)
        return Decision.authenticated(request, token)
