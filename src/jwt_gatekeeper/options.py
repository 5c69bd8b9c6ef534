"""
Immutable configuration for the authentication gate.

Options are built once at startup and shared by every request. Each
``with_*`` method returns a new instance and leaves the original untouched.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Mapping

from .errors import ConfigurationError
from .hooks import AfterHook, BeforeHook, ErrorHook
from .locator import DEFAULT_LOCATIONS, LocationKind, TokenLocation
from .rules import Rule, RuleSet
from .verifier import DEFAULT_ALGORITHMS

ENV_PREFIX = "JWT_GATEKEEPER_"


def _split(value: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass(frozen=True)
class GateOptions:
    """
    Configuration for JwtAuthentication.

    Attributes:
        key: HMAC secret, public key, or a KeyResolver such as JwksClient
        algorithms: Allowed signing algorithms; "none" is never accepted
        locations: Ordered places to look for the token
        attribute: Request attribute the decoded token is attached under
        secure: Refuse plain HTTP unless the host is relaxed
        relaxed: Hosts allowed over plain HTTP
        rules: Which requests need a token
        before: Hook run before dispatching an authenticated request
        after: Hook run on the response of an authenticated request
        error: Hook building the response for a failed authentication
        logger: Logger for debug and warning events
        audience: Expected ``aud`` claim
        issuer: Expected ``iss`` claim
        leeway: Clock skew tolerance in seconds

    Example:
        >>> options = (
        ...     GateOptions.create("my-very-long-shared-hmac-secret!")
        ...     .with_header("X-Token")
        ...     .add_rule(RequestPathRule(["/api"], ["/api/login"]))
        ... )
    """
    key: Any
    algorithms: tuple[str, ...] = DEFAULT_ALGORITHMS
    locations: tuple[TokenLocation, ...] = DEFAULT_LOCATIONS
    attribute: str = "token"
    secure: bool = True
    relaxed: frozenset[str] = frozenset()
    rules: RuleSet = field(default_factory=RuleSet)
    before: BeforeHook | None = None
    after: AfterHook | None = None
    error: ErrorHook | None = None
    logger: logging.Logger | logging.LoggerAdapter | None = None
    audience: str | tuple[str, ...] | None = None
    issuer: str | None = None
    leeway: float = 0

    def __post_init__(self) -> None:
        if self.key is None or self.key == "" or self.key == b"":
            raise ConfigurationError("A signing key is required")
        algorithms = tuple(self.algorithms)
        if not algorithms:
            raise ConfigurationError("At least one algorithm must be allowed")
        if any(alg.lower() == "none" for alg in algorithms):
            raise ConfigurationError("Unsigned tokens (alg 'none') cannot be allowed")
        object.__setattr__(self, "algorithms", algorithms)
        object.__setattr__(self, "locations", tuple(self.locations))
        object.__setattr__(self, "relaxed", frozenset(self.relaxed))

    @classmethod
    def create(cls, key: Any) -> GateOptions:
        return cls(key=key)

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        prefix: str = ENV_PREFIX,
    ) -> GateOptions:
        """
        Build options from environment variables.

        Reads ``{prefix}SECRET`` (required) and the optional ``ALGORITHMS``,
        ``HEADER``, ``COOKIE``, ``ATTRIBUTE``, ``SECURE``, ``RELAXED``,
        ``AUDIENCE``, ``ISSUER`` and ``LEEWAY``. List values are comma
        separated.

        Raises:
            ConfigurationError: If the secret is missing or a value is invalid
        """
        env = os.environ if environ is None else environ

        def get(name: str) -> str | None:
            value = env.get(prefix + name)
            return value if value else None

        secret = get("SECRET")
        if secret is None:
            raise ConfigurationError(f"{prefix}SECRET is not set")

        options = cls.create(secret)
        algorithms = get("ALGORITHMS")
        if algorithms is not None:
            options = options.with_algorithms(_split(algorithms))
        header = get("HEADER")
        if header is not None:
            options = options.with_header(header)
        cookie = get("COOKIE")
        if cookie is not None:
            options = options.with_cookie(cookie)
        attribute = get("ATTRIBUTE")
        if attribute is not None:
            options = options.with_attribute(attribute)
        secure = get("SECURE")
        if secure is not None:
            options = options.with_secure(secure.lower() in ("1", "true", "yes", "on"))
        relaxed = get("RELAXED")
        if relaxed is not None:
            options = options.with_relaxed(_split(relaxed))
        audience = get("AUDIENCE")
        if audience is not None:
            options = options.with_audience(audience)
        issuer = get("ISSUER")
        if issuer is not None:
            options = options.with_issuer(issuer)
        leeway = get("LEEWAY")
        if leeway is not None:
            try:
                options = options.with_leeway(float(leeway))
            except ValueError as e:
                raise ConfigurationError(f"{prefix}LEEWAY must be a number") from e
        return options

    def _with_location(self, kind: LocationKind, **changes: Any) -> GateOptions:
        locations = []
        replaced = False
        for location in self.locations:
            if location.kind is kind and not replaced:
                location = replace(location, **changes)
                replaced = True
            locations.append(location)
        if not replaced:
            base = TokenLocation.header() if kind is LocationKind.HEADER else TokenLocation.cookie()
            locations.append(replace(base, **changes))
        return replace(self, locations=tuple(locations))

    def with_header(self, name: str) -> GateOptions:
        """Look for the token in header ``name`` instead of Authorization."""
        return self._with_location(LocationKind.HEADER, name=name)

    def with_cookie(self, name: str) -> GateOptions:
        """Look for the token in cookie ``name`` instead of "token"."""
        return self._with_location(LocationKind.COOKIE, name=name)

    def with_regexp(self, pattern: str) -> GateOptions:
        """Extract the token from the header value with ``pattern``."""
        return self._with_location(LocationKind.HEADER, pattern=pattern)

    def with_locations(self, locations: Iterable[TokenLocation]) -> GateOptions:
        return replace(self, locations=tuple(locations))

    def with_attribute(self, attribute: str) -> GateOptions:
        return replace(self, attribute=attribute)

    def with_secure(self, secure: bool) -> GateOptions:
        return replace(self, secure=secure)

    def with_relaxed(self, hosts: Iterable[str]) -> GateOptions:
        return replace(self, relaxed=frozenset(hosts))

    def with_rules(self, *rules: Rule) -> GateOptions:
        return replace(self, rules=RuleSet(rules))

    def add_rule(self, rule: Rule) -> GateOptions:
        return replace(self, rules=self.rules.add(rule))

    def with_before(self, hook: BeforeHook | None) -> GateOptions:
        return replace(self, before=hook)

    def with_after(self, hook: AfterHook | None) -> GateOptions:
        return replace(self, after=hook)

    def with_error(self, hook: ErrorHook | None) -> GateOptions:
        return replace(self, error=hook)

    def with_logger(self, logger: logging.Logger | logging.LoggerAdapter | None) -> GateOptions:
        return replace(self, logger=logger)

    def with_algorithms(self, algorithms: Iterable[str]) -> GateOptions:
        return replace(self, algorithms=tuple(algorithms))

    def with_audience(self, audience: str | Iterable[str] | None) -> GateOptions:
        if audience is not None and not isinstance(audience, str):
            audience = tuple(audience)
        return replace(self, audience=audience)

    def with_issuer(self, issuer: str | None) -> GateOptions:
        return replace(self, issuer=issuer)

    def with_leeway(self, leeway: float) -> GateOptions:
        return replace(self, leeway=leeway)
