"""
jwt-gatekeeper

Bearer-token (JWT) authentication gate for HTTP requests: decides which
requests need a token, finds and verifies it, and runs before/after/error
hooks around the wrapped application.
"""

from .errors import (
    AuthenticationFailed,
    ConfigurationError,
    GatekeeperError,
    InsecureTransportError,
    KeyFetchError,
    TokenParseError,
)
from .keys import JwksClient, KeyResolver
from .locator import TokenLocation, TokenLocator
from .models import (
    DecodedToken,
    GateRequest,
    GateResponse,
    OutcomeKind,
    VerificationOutcome,
)
from .options import GateOptions
from .pipeline import Decision, DecisionState, JwtAuthentication
from .rules import CallableRule, RequestMethodRule, RequestPathRule, RuleMatch, RuleSet
from .transport import check_transport
from .verifier import JwtParser, TokenVerifier
from .middleware.wsgi import JwtAuthenticationWSGIMiddleware

__version__ = "0.1.0"

__all__ = [
    "AuthenticationFailed",
    "CallableRule",
    "ConfigurationError",
    "Decision",
    "DecisionState",
    "DecodedToken",
    "GateOptions",
    "GateRequest",
    "GateResponse",
    "GatekeeperError",
    "InsecureTransportError",
    "JwksClient",
    "JwtAuthentication",
    "JwtAuthenticationWSGIMiddleware",
    "JwtParser",
    "KeyFetchError",
    "KeyResolver",
    "OutcomeKind",
    "RequestMethodRule",
    "RequestPathRule",
    "RuleMatch",
    "RuleSet",
    "TokenLocation",
    "TokenLocator",
    "TokenParseError",
    "TokenVerifier",
    "VerificationOutcome",
    "check_transport",
]

# ASGI middleware - optional, requires starlette
try:
    from .middleware.asgi import JwtAuthenticationASGIMiddleware
    __all__.append("JwtAuthenticationASGIMiddleware")
except ImportError:
    pass
