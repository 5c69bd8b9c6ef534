"""
Token verification on top of PyJWT.

``JwtParser`` is the thin collaborator around PyJWT. ``TokenVerifier`` drives
it and turns every possible outcome into a VerificationOutcome, so no PyJWT
exception escapes this module.
"""

from __future__ import annotations

import logging
import numbers
import time
from typing import Any, Callable, Iterable, Mapping, Protocol

import jwt

from .errors import KeyFetchError, TokenParseError
from .keys import KeyResolver
from .models import DecodedToken, VerificationOutcome

logger = logging.getLogger("jwt_gatekeeper")

DEFAULT_ALGORITHMS = ("HS256",)


class ParsedToken:
    """
    A syntactically valid JWT whose signature has not been checked yet.

    Attributes:
        raw: Token string
        header: JOSE header
    """

    def __init__(self, raw: str, header: Mapping[str, Any], claims: Mapping[str, Any]):
        self.raw = raw
        self.header = dict(header)
        self._claims = dict(claims)

    def claims(self) -> dict[str, Any]:
        return dict(self._claims)

    def is_expired(self, now: float, leeway: float = 0) -> bool:
        exp = self._claims.get("exp")
        if exp is None:
            return False
        return exp <= now - leeway

    def verify(
        self,
        key: Any,
        algorithms: Iterable[str],
        audience: str | Iterable[str] | None = None,
        issuer: str | None = None,
        leeway: float = 0,
    ) -> None:
        """
        Check signature and structural claims, ignoring expiry.

        Raises:
            jwt.PyJWTError: When the token does not verify against ``key``
        """
        options = {"verify_exp": False, "verify_aud": audience is not None}
        kwargs: dict[str, Any] = {}
        if audience is not None:
            kwargs["audience"] = audience
        if issuer is not None:
            kwargs["issuer"] = issuer
        jwt.decode(
            self.raw,
            key,
            algorithms=list(algorithms),
            options=options,
            leeway=leeway,
            **kwargs,
        )


class TokenParser(Protocol):
    def parse(self, raw: str) -> ParsedToken: ...


class JwtParser:
    """Parses tokens with PyJWT without trusting them."""

    def parse(self, raw: str) -> ParsedToken:
        """
        Raises:
            TokenParseError: If ``raw`` is not a well-formed JWT
        """
        try:
            header = jwt.get_unverified_header(raw)
            claims = jwt.decode(raw, options={"verify_signature": False})
        except jwt.PyJWTError as e:
            raise TokenParseError(str(e)) from e

        exp = claims.get("exp")
        if exp is not None and (isinstance(exp, bool) or not isinstance(exp, numbers.Real)):
            raise TokenParseError("Expiration Time claim (exp) must be a number")

        return ParsedToken(raw, header, claims)


class TokenVerifier:
    """
    Verifies a raw token and classifies the result.

    Order of checks: parse, key lookup and signature, expiry. A token with
    a valid signature and a past ``exp`` is EXPIRED, never SUCCESS.

    Args:
        key: HMAC secret, public key, or a KeyResolver such as JwksClient
        algorithms: Allowed algorithms
        audience: Expected ``aud``; unchecked when None
        issuer: Expected ``iss``; unchecked when None
        leeway: Clock skew tolerance in seconds
        parser: Token parser, JwtParser by default
        clock: Returns the current Unix time
        log: Logger receiving warnings; never given the key
    """

    def __init__(
        self,
        key: Any,
        algorithms: Iterable[str] = DEFAULT_ALGORITHMS,
        audience: str | Iterable[str] | None = None,
        issuer: str | None = None,
        leeway: float = 0,
        parser: TokenParser | None = None,
        clock: Callable[[], float] = time.time,
        log: logging.Logger | logging.LoggerAdapter | None = None,
    ):
        self.key = key
        self.algorithms = tuple(algorithms)
        self.audience = audience
        self.issuer = issuer
        self.leeway = leeway
        self.parser = parser or JwtParser()
        self.clock = clock
        self.logger = log or logger

    def __repr__(self) -> str:
        return f"TokenVerifier(algorithms={self.algorithms!r})"

    def verify(self, raw: str) -> VerificationOutcome:
        parsed = self._parse(raw)
        if parsed is None:
            return VerificationOutcome.parse_failure(raw)

        try:
            key = self._resolve_key(parsed)
        except KeyFetchError:
            self.logger.warning("Token not signed", extra={"token": raw})
            return VerificationOutcome.unverified(raw)

        return self._check(parsed, key)

    async def averify(self, raw: str) -> VerificationOutcome:
        """Same as verify, awaiting async key resolvers."""
        parsed = self._parse(raw)
        if parsed is None:
            return VerificationOutcome.parse_failure(raw)

        try:
            resolve = getattr(self.key, "aget_signing_key", None)
            if resolve is not None:
                key = await resolve(parsed.header.get("kid"))
            else:
                key = self._resolve_key(parsed)
        except KeyFetchError:
            self.logger.warning("Token not signed", extra={"token": raw})
            return VerificationOutcome.unverified(raw)

        return self._check(parsed, key)

    def _parse(self, raw: str) -> ParsedToken | None:
        try:
            return self.parser.parse(raw)
        except TokenParseError:
            self.logger.warning("Token could not be parsed", extra={"token": raw})
            return None

    def _resolve_key(self, parsed: ParsedToken) -> Any:
        if isinstance(self.key, KeyResolver):
            return self.key.get_signing_key(parsed.header.get("kid"))
        return self.key

    def _check(self, parsed: ParsedToken, key: Any) -> VerificationOutcome:
        raw = parsed.raw
        try:
            parsed.verify(
                key,
                self.algorithms,
                audience=self.audience,
                issuer=self.issuer,
                leeway=self.leeway,
            )
        except (jwt.PyJWTError, ValueError):
            self.logger.warning("Token not signed", extra={"token": raw})
            return VerificationOutcome.unverified(raw)

        if parsed.is_expired(self.clock(), self.leeway):
            self.logger.warning("Token expired", extra={"token": raw})
            return VerificationOutcome.expired(raw)

        return VerificationOutcome.success(
            DecodedToken(raw=raw, header=parsed.header, claims=parsed.claims())
        )
