"""
Flask demo with JWT authentication.

Usage:
    # Install dependencies
    pip install -e ".[flask]"

    # Run the server
    flask --app examples.flask_demo run --port 8010

    # Or directly
    python examples/flask_demo.py

Test with curl:
    # Public endpoint (no token required)
    curl http://localhost:8010/public

    # Token in a cookie works as well as the Authorization header
    TOKEN=$(curl -s http://localhost:8010/token | jq -r .token)
    curl --cookie "token=$TOKEN" http://localhost:8010/protected

Environment variables:
    JWT_GATEKEEPER_SECRET - HMAC secret (default: a demo secret)
    JWT_GATEKEEPER_* - Any other setting read by GateOptions.from_env
"""

import logging
import os
import time

import jwt
from flask import Flask, g, jsonify, request

# Import from installed package
from jwt_gatekeeper import GateOptions, RequestPathRule
from jwt_gatekeeper.middleware import JwtAuthenticationWSGIMiddleware

DEMO_SECRET = "demo-secret-change-me-demo-secret-change-me"

# Configuration from environment
os.environ.setdefault("JWT_GATEKEEPER_SECRET", DEMO_SECRET)
OPTIONS = (
    GateOptions.from_env()
    .add_rule(RequestPathRule(["/protected"]))
    .with_error(
        lambda req, response, error: response.with_header("Content-Type", "application/json")
        .with_body('{"error": "%s"}' % error.reason)
    )
)

app = Flask(__name__)

# Wrap with JWT authentication middleware
app.wsgi_app = JwtAuthenticationWSGIMiddleware(app.wsgi_app, OPTIONS)


@app.before_request
def extract_token():
    """Extract the decoded token from environ and attach it to Flask g object."""
    g.token = request.environ.get("jwt_gatekeeper." + OPTIONS.attribute)


@app.route("/")
def root():
    """API info endpoint."""
    return jsonify({
        "service": "jwt-gatekeeper Flask Demo API",
        "endpoints": {
            "/public": "No token required",
            "/token": "Issues a demo token valid for one hour",
            "/protected": "Requires a token in the header or the token cookie",
        },
    })


@app.route("/public")
def public():
    """Public endpoint - no token required."""
    return jsonify({"message": "This is public content", "access": "unrestricted"})


@app.route("/token")
def token():
    """Issue a demo token signed with the configured secret."""
    now = int(time.time())
    claims = {"sub": "demo-user", "iat": now, "exp": now + 3600}
    return jsonify({"token": jwt.encode(claims, OPTIONS.key, algorithm=OPTIONS.algorithms[0])})


@app.route("/protected")
def protected():
    """Protected endpoint - only reached with a valid token."""
    return jsonify({
        "message": "Access granted",
        "sub": g.token.get("sub"),
        "expires": g.token.get("exp"),
    })


@app.route("/health")
def health():
    """Health check endpoint."""
    return jsonify({"status": "ok"})


if __name__ == "__main__":
    logging.basicConfig(level=logging.DEBUG)
    app.run(host="127.0.0.1", port=8010, debug=True)
