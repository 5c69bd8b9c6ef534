"""
Finding the bearer token in a request.
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass, replace
from typing import Iterable, Pattern

from .errors import ConfigurationError
from .models import GateRequest

logger = logging.getLogger("jwt_gatekeeper")

# Whole value is an optional "Bearer " prefix and one token; a lone "Bearer" is no token
DEFAULT_PATTERN = r"(?i)^(?:Bearer(?:\s+|$))?(?!Bearer$)(\S+)$"

_BEARER_PREFIX = re.compile(r"^Bearer(?:\s+|$)", re.IGNORECASE)


class LocationKind(str, enum.Enum):
    HEADER = "header"
    COOKIE = "cookie"


@dataclass(frozen=True)
class TokenLocation:
    """
    A place to look for the token.

    Attributes:
        kind: "header" or "cookie"
        name: Header or cookie name
        pattern: Regex applied to header values; the first group (or the
            whole match when there is no group) is the token. Unused for
            cookies.
    """
    kind: LocationKind
    name: str
    pattern: str | None = None

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "kind", LocationKind(self.kind))
        except ValueError as e:
            raise ConfigurationError(f"Unknown token location kind: {self.kind!r}") from e
        if self.pattern is not None:
            try:
                re.compile(self.pattern)
            except re.error as e:
                raise ConfigurationError(f"Invalid token pattern {self.pattern!r}: {e}") from e

    @classmethod
    def header(cls, name: str = "Authorization", pattern: str = DEFAULT_PATTERN) -> TokenLocation:
        return cls(LocationKind.HEADER, name, pattern)

    @classmethod
    def cookie(cls, name: str = "token") -> TokenLocation:
        return cls(LocationKind.COOKIE, name)

    def with_name(self, name: str) -> TokenLocation:
        return replace(self, name=name)

    def with_pattern(self, pattern: str) -> TokenLocation:
        return replace(self, pattern=pattern)


DEFAULT_LOCATIONS: tuple[TokenLocation, ...] = (
    TokenLocation.header(),
    TokenLocation.cookie(),
)


@dataclass(frozen=True)
class LocatedToken:
    """A token string and where it was found."""
    token: str
    location: TokenLocation


def _compile(pattern: str | None) -> Pattern[str]:
    return re.compile(pattern if pattern is not None else DEFAULT_PATTERN)


def _extract(pattern: Pattern[str], value: str) -> str | None:
    match = pattern.search(value)
    if match is None:
        return None
    token = match.group(1) if pattern.groups else match.group(0)
    return token or None


class TokenLocator:
    """
    Looks for a token in the configured locations, strictly in order.

    The first location yielding a non-empty token wins; later locations
    are not consulted.

    Args:
        locations: Ordered locations to search
        log: Logger receiving the debug events
    """

    def __init__(
        self,
        locations: Iterable[TokenLocation] = DEFAULT_LOCATIONS,
        log: logging.Logger | logging.LoggerAdapter | None = None,
    ):
        self.locations = tuple(locations)
        self.logger = log or logger
        self._patterns = {
            location: _compile(location.pattern)
            for location in self.locations
            if location.kind is LocationKind.HEADER
        }

    def locate(self, request: GateRequest) -> LocatedToken | None:
        for location in self.locations:
            if location.kind is LocationKind.HEADER:
                token = self._from_header(request, location)
                if token:
                    self.logger.debug("Using token from request header")
                    return LocatedToken(token, location)
            else:
                token = self._from_cookie(request, location)
                if token:
                    self.logger.debug("Using token from cookie")
                    return LocatedToken(token, location)

        self.logger.debug("Token not found")
        return None

    def _from_header(self, request: GateRequest, location: TokenLocation) -> str | None:
        value = request.header(location.name)
        if not value:
            return None
        return _extract(self._patterns[location], value.strip())

    def _from_cookie(self, request: GateRequest, location: TokenLocation) -> str | None:
        value = request.cookies.get(location.name)
        if not value:
            return None
        return _BEARER_PREFIX.sub("", value.strip()) or None
