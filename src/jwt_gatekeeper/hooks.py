"""
Hook signatures for observing or rewriting requests and responses.

Any function, lambda or object with a matching ``__call__`` can be used.
"""

from typing import Protocol

from .errors import AuthenticationFailed
from .models import DecodedToken, GateRequest, GateResponse


class BeforeHook(Protocol):
    """Runs after a successful verification; its return value goes downstream."""

    def __call__(self, request: GateRequest, token: DecodedToken) -> GateRequest: ...


class AfterHook(Protocol):
    """Runs on the downstream response of an authenticated request."""

    def __call__(self, response: GateResponse, token: DecodedToken) -> GateResponse: ...


class ErrorHook(Protocol):
    """Builds the final response when authentication fails."""

    def __call__(
        self,
        request: GateRequest,
        response: GateResponse,
        error: AuthenticationFailed,
    ) -> GateResponse: ...


def default_before(request: GateRequest, token: DecodedToken) -> GateRequest:
    return request


def default_after(response: GateResponse, token: DecodedToken) -> GateResponse:
    return response


def default_error(
    request: GateRequest,
    response: GateResponse,
    error: AuthenticationFailed,
) -> GateResponse:
    return response
