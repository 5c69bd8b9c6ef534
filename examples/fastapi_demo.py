"""
FastAPI demo with JWT authentication.

Usage:
    # Install dependencies
    pip install -e ".[fastapi]"

    # Run the server
    uvicorn examples.fastapi_demo:app --port 8009 --reload

    # Or directly
    python examples/fastapi_demo.py

Test with curl:
    # Public endpoint (no token required)
    curl http://localhost:8009/public

    # Get a demo token, then call the protected endpoint with it
    TOKEN=$(curl -s http://localhost:8009/token | jq -r .token)
    curl -H "Authorization: Bearer $TOKEN" http://localhost:8009/protected

Environment variables:
    JWT_GATEKEEPER_SECRET - HMAC secret (default: a demo secret)
    JWT_GATEKEEPER_* - Any other setting read by GateOptions.from_env
"""

import os
import time

import jwt
from fastapi import FastAPI, Request

# Import from installed package
from jwt_gatekeeper import GateOptions, JwtAuthenticationASGIMiddleware, RequestPathRule

DEMO_SECRET = "demo-secret-change-me-demo-secret-change-me"

# Configuration from environment
os.environ.setdefault("JWT_GATEKEEPER_SECRET", DEMO_SECRET)
OPTIONS = GateOptions.from_env().add_rule(
    RequestPathRule(["/protected"])
)

app = FastAPI(
    title="jwt-gatekeeper Demo API",
    description="Demo API with JWT authentication",
    version="0.1.0",
)

# Add JWT authentication middleware
app.add_middleware(JwtAuthenticationASGIMiddleware, options=OPTIONS)


@app.get("/")
async def root():
    """API info endpoint."""
    return {
        "service": "jwt-gatekeeper Demo API",
        "endpoints": {
            "/public": "No token required",
            "/token": "Issues a demo token valid for one hour",
            "/protected": "Requires a bearer token (401 otherwise)",
        },
    }


@app.get("/public")
async def public():
    """Public endpoint - no token required."""
    return {"message": "This is public content", "access": "unrestricted"}


@app.get("/token")
async def token():
    """Issue a demo token signed with the configured secret."""
    now = int(time.time())
    claims = {"sub": "demo-user", "iat": now, "exp": now + 3600}
    return {"token": jwt.encode(claims, OPTIONS.key, algorithm=OPTIONS.algorithms[0])}


@app.get("/protected")
async def protected(request: Request):
    """
    Protected endpoint.

    Requests without a valid token never get here; the middleware answers
    401 first.
    """
    decoded = getattr(request.state, OPTIONS.attribute)
    return {
        "message": "Access granted",
        "sub": decoded.get("sub"),
        "expires": decoded.get("exp"),
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8009)
