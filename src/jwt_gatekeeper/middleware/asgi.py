"""
ASGI middleware for JWT authentication (FastAPI/Starlette).
"""

from typing import Any, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from ..models import GateRequest, GateResponse, normalize_headers
from ..options import GateOptions
from ..pipeline import DecisionState, JwtAuthentication
from ..verifier import TokenVerifier


def _decode_raw(raw: list[tuple[bytes, bytes]]) -> list[tuple[str, str]]:
    return [(name.decode("latin-1"), value.decode("latin-1")) for name, value in raw]


def _to_gate_request(request: Request) -> GateRequest:
    """Build a GateRequest from a Starlette request."""
    url = request.url
    return GateRequest(
        method=request.method,
        path=url.path or "/",
        headers=normalize_headers(_decode_raw(request.headers.raw)),
        cookies=dict(request.cookies),
        scheme=url.scheme,
        host=request.headers.get("host") or url.netloc,
        query=url.query,
    )


def _to_response(response: GateResponse) -> Response:
    result = Response(content=response.body, status_code=response.status)
    for name, value in response.headers:
        # Content-Length is already set for the final body
        if name.lower() != "content-length":
            result.headers.append(name, value)
    return result


async def _read_response(response: Any) -> GateResponse:
    """Drain a downstream response into a GateResponse."""
    chunks = []
    async for chunk in response.body_iterator:
        chunks.append(chunk.encode("utf-8") if isinstance(chunk, str) else chunk)
    return GateResponse(
        status=response.status_code,
        headers=_decode_raw(response.headers.raw),
        body=b"".join(chunks),
    )


class JwtAuthenticationASGIMiddleware(BaseHTTPMiddleware):
    """
    ASGI middleware for JWT authentication.

    Authenticated requests get every attribute of the pipeline's request
    copied to ``request.state``; the decoded token lives at
    ``request.state.token`` unless ``options.attribute`` says otherwise.
    Failures return the error hook's response (401 with an empty body by
    default). InsecureTransportError is not caught.

    Args:
        app: ASGI application
        options: Gate configuration
        verifier: Optional custom TokenVerifier

    Example (FastAPI):
        >>> from fastapi import FastAPI, Request
        >>> from jwt_gatekeeper import GateOptions, JwtAuthenticationASGIMiddleware
        >>>
        >>> app = FastAPI()
        >>> app.add_middleware(
        ...     JwtAuthenticationASGIMiddleware,
        ...     options=GateOptions.create(secret),
        ... )
        >>>
        >>> @app.get("/protected")
        >>> async def protected(request: Request):
        ...     return {"sub": request.state.token.get("sub")}
    """

    def __init__(
        self,
        app: Any,
        options: GateOptions,
        verifier: TokenVerifier | None = None,
    ):
        super().__init__(app)
        self.auth = JwtAuthentication(options, verifier)

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Any],
    ) -> Response:
        gate_request = _to_gate_request(request)
        decision = await self.auth.adecide(gate_request)

        if decision.state is DecisionState.SKIPPED:
            return await call_next(request)

        if decision.state is DecisionState.UNAUTHENTICATED:
            return _to_response(self.auth.fail(decision))

        authenticated = decision.request
        for name, value in authenticated.attributes.items():
            setattr(request.state, name, value)

        # Header rewrites from the before hook are passed downstream
        if authenticated.headers != gate_request.headers:
            request.scope["headers"] = [
                (name.encode("latin-1"), value.encode("latin-1"))
                for name, values in authenticated.headers.items()
                for value in values
            ]

        response = await call_next(request)
        if self.auth.options.after is None:
            return response

        return _to_response(self.auth.complete(await _read_response(response), decision))
