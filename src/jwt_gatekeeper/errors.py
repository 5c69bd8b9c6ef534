"""
Exception taxonomy for the authentication gate.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import VerificationOutcome


INSECURE_TRANSPORT_MESSAGE = "Insecure use of middleware over HTTP denied by configuration"


class GatekeeperError(Exception):
    """Base class for every error raised by jwt_gatekeeper."""


class ConfigurationError(GatekeeperError, ValueError):
    """Options were built with values that can never work."""


class InsecureTransportError(GatekeeperError, RuntimeError):
    """
    Authentication was attempted over plain HTTP on a host that is not relaxed.

    This is a deployment bug, not an authentication failure. It is never
    turned into a response by the pipeline and propagates to the caller.
    """

    def __init__(self, scheme: str, host: str):
        super().__init__(INSECURE_TRANSPORT_MESSAGE)
        self.scheme = scheme
        self.host = host


class TokenParseError(GatekeeperError, ValueError):
    """The token string is not a well-formed JWT."""


class KeyFetchError(GatekeeperError):
    """A verification key could not be fetched or found in the key set."""


class AuthenticationFailed(GatekeeperError):
    """
    Authentication was required and did not succeed.

    Handed to the error hook; the pipeline never raises it to callers.

    Attributes:
        outcome: The failed VerificationOutcome
    """

    def __init__(self, outcome: VerificationOutcome):
        super().__init__(outcome.reason)
        self.outcome = outcome

    @property
    def reason(self) -> str:
        return self.outcome.reason

    @property
    def raw(self) -> str | None:
        return self.outcome.raw
