"""
Data models for the authentication gate.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from http.cookies import CookieError, SimpleCookie
from types import MappingProxyType
from typing import Any, Iterable, Mapping
from urllib.parse import urlsplit


def normalize_headers(
    headers: Mapping[str, str | Iterable[str]] | Iterable[tuple[str, str]] | None,
) -> dict[str, tuple[str, ...]]:
    """Lower-case header names and collect every value in arrival order."""
    normalized: dict[str, tuple[str, ...]] = {}
    if headers is None:
        return normalized

    items = headers.items() if isinstance(headers, Mapping) else headers
    for name, value in items:
        key = name.lower()
        values = (value,) if isinstance(value, str) else tuple(value)
        normalized[key] = normalized.get(key, ()) + values
    return normalized


def parse_cookie_header(header: str | None) -> dict[str, str]:
    """
    Parse a Cookie header into a name -> value dict.

    Malformed headers yield an empty dict rather than an error.

    Examples:
        >>> parse_cookie_header("token=abc; theme=dark")
        {'token': 'abc', 'theme': 'dark'}
    """
    if not header:
        return {}
    jar: SimpleCookie = SimpleCookie()
    try:
        jar.load(header)
    except CookieError:
        return {}
    return {name: morsel.value for name, morsel in jar.items()}


@dataclass(frozen=True)
class GateRequest:
    """
    Framework-neutral view of an incoming request.

    Instances are never mutated; the ``with_*`` helpers return copies.

    Attributes:
        method: HTTP method (GET, POST, etc.)
        path: Request path, always starting with "/"
        headers: Lower-cased header name -> tuple of values
        cookies: Cookie name -> value
        scheme: "http" or "https"
        host: Host name, optionally with a port
        query: Raw query string without the leading "?"
        attributes: Values attached for downstream consumers
    """
    method: str
    path: str = "/"
    headers: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    cookies: Mapping[str, str] = field(default_factory=dict)
    scheme: str = "https"
    host: str = "localhost"
    query: str = ""
    attributes: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        method: str,
        url: str,
        headers: Mapping[str, str | Iterable[str]] | Iterable[tuple[str, str]] | None = None,
        cookies: Mapping[str, str] | None = None,
    ) -> GateRequest:
        """
        Build a request from a full URL.

        When ``cookies`` is not given they are parsed from the Cookie header.

        Example:
            >>> req = GateRequest.build("GET", "https://example.com/api?x=1",
            ...                         headers={"Authorization": "Bearer abc"})
            >>> req.header("authorization")
            'Bearer abc'
        """
        parts = urlsplit(url)
        normalized = normalize_headers(headers)
        if cookies is None:
            cookie_values = normalized.get("cookie", ())
            cookies = parse_cookie_header("; ".join(cookie_values))
        return cls(
            method=method,
            path=parts.path or "/",
            headers=normalized,
            cookies=dict(cookies),
            scheme=parts.scheme or "http",
            host=parts.netloc or "localhost",
            query=parts.query,
        )

    @property
    def uri(self) -> str:
        uri = f"{self.scheme}://{self.host}{self.path}"
        if self.query:
            uri = f"{uri}?{self.query}"
        return uri

    def header(self, name: str) -> str | None:
        """First value of a header, or None."""
        values = self.headers.get(name.lower())
        if not values:
            return None
        return values[0]

    def with_header(self, name: str, value: str) -> GateRequest:
        headers = dict(self.headers)
        headers[name.lower()] = (value,)
        return replace(self, headers=headers)

    def with_attribute(self, name: str, value: Any) -> GateRequest:
        attributes = dict(self.attributes)
        attributes[name] = value
        return replace(self, attributes=attributes)

    def get_attribute(self, name: str, default: Any = None) -> Any:
        return self.attributes.get(name, default)


@dataclass(frozen=True)
class GateResponse:
    """
    Framework-neutral response.

    Attributes:
        status: HTTP status code
        headers: (name, value) pairs in order; a name may repeat, as
            Set-Cookie does. A mapping is accepted and converted.
        body: Response body
    """
    status: int = 200
    headers: tuple[tuple[str, str], ...] = ()
    body: bytes = b""

    def __post_init__(self) -> None:
        headers = self.headers
        if isinstance(headers, Mapping):
            headers = headers.items()
        object.__setattr__(self, "headers", tuple((name, value) for name, value in headers))

    @classmethod
    def unauthorized(cls) -> GateResponse:
        """The default failure response: 401 with an empty body."""
        return cls(status=401)

    def header(self, name: str) -> str | None:
        """First value of a header, or None."""
        values = self.header_values(name)
        if not values:
            return None
        return values[0]

    def header_values(self, name: str) -> list[str]:
        wanted = name.lower()
        return [value for key, value in self.headers if key.lower() == wanted]

    def with_status(self, status: int) -> GateResponse:
        return replace(self, status=status)

    def with_header(self, name: str, value: str) -> GateResponse:
        """Set a header, replacing every existing value of it."""
        wanted = name.lower()
        headers = [(k, v) for k, v in self.headers if k.lower() != wanted]
        headers.append((name, value))
        return replace(self, headers=tuple(headers))

    def with_added_header(self, name: str, value: str) -> GateResponse:
        """Add a header value, keeping the existing ones."""
        return replace(self, headers=self.headers + ((name, value),))

    def with_body(self, body: bytes | str) -> GateResponse:
        if isinstance(body, str):
            body = body.encode("utf-8")
        return replace(self, body=body)

    def with_appended_body(self, chunk: bytes | str) -> GateResponse:
        if isinstance(chunk, str):
            chunk = chunk.encode("utf-8")
        return replace(self, body=self.body + chunk)

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


@dataclass(frozen=True)
class DecodedToken:
    """
    A verified token.

    Attributes:
        raw: The token string as found in the request
        header: JOSE header
        claims: Read-only claims mapping
    """
    raw: str
    header: Mapping[str, Any]
    claims: Mapping[str, Any]

    def __post_init__(self) -> None:
        object.__setattr__(self, "header", MappingProxyType(dict(self.header)))
        object.__setattr__(self, "claims", MappingProxyType(dict(self.claims)))

    def get(self, claim: str, default: Any = None) -> Any:
        return self.claims.get(claim, default)


class OutcomeKind(enum.Enum):
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    PARSE_FAILURE = "parse_failure"
    UNVERIFIED = "unverified"
    EXPIRED = "expired"


_REASONS = {
    OutcomeKind.SUCCESS: "Token verified",
    OutcomeKind.NOT_FOUND: "Token not found",
    OutcomeKind.PARSE_FAILURE: "Token could not be parsed",
    OutcomeKind.UNVERIFIED: "Token not signed",
    OutcomeKind.EXPIRED: "Token expired",
}


@dataclass(frozen=True)
class VerificationOutcome:
    """
    Result of locating and verifying a token.

    Every failure except NOT_FOUND keeps the raw token for diagnostics.

    Attributes:
        kind: What happened
        raw: Raw token string, when one was located
        token: Decoded token on success
    """
    kind: OutcomeKind
    raw: str | None = None
    token: DecodedToken | None = None

    @classmethod
    def success(cls, token: DecodedToken) -> VerificationOutcome:
        return cls(OutcomeKind.SUCCESS, raw=token.raw, token=token)

    @classmethod
    def not_found(cls) -> VerificationOutcome:
        return cls(OutcomeKind.NOT_FOUND)

    @classmethod
    def parse_failure(cls, raw: str) -> VerificationOutcome:
        return cls(OutcomeKind.PARSE_FAILURE, raw=raw)

    @classmethod
    def unverified(cls, raw: str) -> VerificationOutcome:
        return cls(OutcomeKind.UNVERIFIED, raw=raw)

    @classmethod
    def expired(cls, raw: str) -> VerificationOutcome:
        return cls(OutcomeKind.EXPIRED, raw=raw)

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS

    @property
    def reason(self) -> str:
        return _REASONS[self.kind]
