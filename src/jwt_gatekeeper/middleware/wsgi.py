"""
WSGI middleware for JWT authentication (Flask).
"""

from __future__ import annotations

from http import HTTPStatus
from typing import Any, Callable, Iterable

from ..models import GateRequest, GateResponse, parse_cookie_header
from ..options import GateOptions
from ..pipeline import DecisionState, JwtAuthentication
from ..verifier import TokenVerifier

ENVIRON_PREFIX = "jwt_gatekeeper."


def _build_host(environ: dict[str, Any]) -> str:
    host = environ.get("HTTP_HOST")
    if host:
        return host
    host = environ.get("SERVER_NAME", "localhost")
    port = str(environ.get("SERVER_PORT", ""))
    scheme = environ.get("wsgi.url_scheme", "http")
    if port and (scheme, port) not in (("http", "80"), ("https", "443")):
        host = f"{host}:{port}"
    return host


def _to_gate_request(environ: dict[str, Any]) -> GateRequest:
    headers: dict[str, tuple[str, ...]] = {}
    for key, value in environ.items():
        # HTTP_X_TOKEN is the x-token header; the content headers have no prefix
        if key.startswith("HTTP_"):
            name = key[5:]
        elif key in ("CONTENT_TYPE", "CONTENT_LENGTH"):
            name = key
        else:
            continue
        headers[name.replace("_", "-").lower()] = (value,)

    path = environ.get("SCRIPT_NAME", "") + environ.get("PATH_INFO", "")
    return GateRequest(
        method=environ.get("REQUEST_METHOD", "GET"),
        path=path or "/",
        headers=headers,
        cookies=parse_cookie_header(environ.get("HTTP_COOKIE")),
        scheme=environ.get("wsgi.url_scheme", "http"),
        host=_build_host(environ),
        query=environ.get("QUERY_STRING", ""),
    )


def _status_line(status: int) -> str:
    try:
        phrase = HTTPStatus(status).phrase
    except ValueError:
        phrase = "Unknown"
    return f"{status} {phrase}"


class JwtAuthenticationWSGIMiddleware:
    """
    WSGI middleware for JWT authentication.

    Attributes of an authenticated request are stored in the environ under
    ``"jwt_gatekeeper.<name>"``; the decoded token is at
    ``environ["jwt_gatekeeper.token"]`` by default. Failures return the
    error hook's response (401 with an empty body by default).
    InsecureTransportError is not caught.

    Args:
        app: WSGI application
        options: Gate configuration
        verifier: Optional custom TokenVerifier

    Example (Flask):
        >>> from flask import Flask, request
        >>> from jwt_gatekeeper.middleware.wsgi import JwtAuthenticationWSGIMiddleware
        >>>
        >>> app = Flask(__name__)
        >>> app.wsgi_app = JwtAuthenticationWSGIMiddleware(
        ...     app.wsgi_app, GateOptions.create(secret)
        ... )
        >>>
        >>> @app.route("/protected")
        >>> def protected():
        ...     token = request.environ["jwt_gatekeeper.token"]
        ...     return {"sub": token.get("sub")}
    """

    def __init__(
        self,
        app: Callable[..., Iterable[bytes]],
        options: GateOptions,
        verifier: TokenVerifier | None = None,
    ):
        self.app = app
        self.auth = JwtAuthentication(options, verifier)

    def __call__(
        self,
        environ: dict[str, Any],
        start_response: Callable[..., Any],
    ) -> Iterable[bytes]:
        request = _to_gate_request(environ)
        decision = self.auth.decide(request)

        if decision.state is DecisionState.SKIPPED:
            return self.app(environ, start_response)

        if decision.state is DecisionState.UNAUTHENTICATED:
            return self._respond(start_response, self.auth.fail(decision))

        authenticated = decision.request
        for name, value in authenticated.attributes.items():
            environ[ENVIRON_PREFIX + name] = value
        for name, values in authenticated.headers.items():
            if request.headers.get(name) != values:
                environ["HTTP_" + name.upper().replace("-", "_")] = values[0]

        if self.auth.options.after is None:
            return self.app(environ, start_response)

        return self._respond(start_response, self.auth.complete(self._run(environ), decision))

    def _run(self, environ: dict[str, Any]) -> GateResponse:
        """Call the wrapped app and collect its whole response."""
        captured: dict[str, Any] = {}
        written: list[bytes] = []

        def capture_start_response(
            status: str,
            response_headers: list[tuple[str, str]],
            exc_info: Any = None,
        ) -> Callable[[bytes], None]:
            captured["status"] = status
            captured["headers"] = response_headers
            return written.append

        result = self.app(environ, capture_start_response)
        try:
            chunks = list(result)
        finally:
            close = getattr(result, "close", None)
            if close is not None:
                close()

        return GateResponse(
            status=int(captured["status"].split(" ", 1)[0]),
            headers=captured["headers"],
            body=b"".join(written) + b"".join(chunks),
        )

    def _respond(
        self,
        start_response: Callable[..., Any],
        response: GateResponse,
    ) -> Iterable[bytes]:
        headers = [
            (name, value)
            for name, value in response.headers
            if name.lower() != "content-length"
        ]
        headers.append(("Content-Length", str(len(response.body))))
        start_response(_status_line(response.status), headers)
        return [response.body]
