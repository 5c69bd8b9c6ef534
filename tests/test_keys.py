"""Tests for JwksClient."""

import httpx
import pytest
import respx
from jwt.utils import base64url_encode

from conftest import SECRET
from jwt_gatekeeper import GateOptions, GateRequest, GateResponse, JwtAuthentication, OutcomeKind
from jwt_gatekeeper.errors import KeyFetchError
from jwt_gatekeeper.keys import JwksClient, KeyResolver
from jwt_gatekeeper.verifier import TokenVerifier

JWKS_URL = "https://issuer.example.com/.well-known/jwks.json"


def oct_jwk(kid, secret=SECRET):
    return {
        "kty": "oct",
        "kid": kid,
        "alg": "HS256",
        "use": "sig",
        "k": base64url_encode(secret.encode()).decode(),
    }


@pytest.fixture
def mock_jwks():
    """Create a respx mock for the key set endpoint."""
    with respx.mock(assert_all_called=False) as mock:
        yield mock


class TestJwksClient:
    """Tests for JwksClient."""

    def test_is_key_resolver(self):
        assert isinstance(JwksClient(JWKS_URL), KeyResolver)

    def test_get_signing_key(self, mock_jwks):
        mock_jwks.get(JWKS_URL).respond(json={"keys": [oct_jwk("k1")]})

        key = JwksClient(JWKS_URL).get_signing_key("k1")

        assert key == SECRET.encode()

    def test_keys_are_cached(self, mock_jwks):
        route = mock_jwks.get(JWKS_URL).respond(json={"keys": [oct_jwk("k1")]})
        client = JwksClient(JWKS_URL)

        client.get_signing_key("k1")
        client.get_signing_key("k1")

        assert route.call_count == 1

    def test_cache_expires(self, mock_jwks):
        route = mock_jwks.get(JWKS_URL).respond(json={"keys": [oct_jwk("k1")]})
        now = [0.0]
        client = JwksClient(JWKS_URL, cache_ttl_s=60, clock=lambda: now[0])

        client.get_signing_key("k1")
        now[0] = 61.0
        client.get_signing_key("k1")

        assert route.call_count == 2

    def test_unknown_kid_refetches_then_fails(self, mock_jwks):
        route = mock_jwks.get(JWKS_URL).respond(json={"keys": [oct_jwk("k1")]})
        client = JwksClient(JWKS_URL)
        client.get_signing_key("k1")

        with pytest.raises(KeyFetchError):
            client.get_signing_key("k2")
        assert route.call_count == 2

    def test_single_key_without_kid(self, mock_jwks):
        mock_jwks.get(JWKS_URL).respond(json={"keys": [oct_jwk("only")]})
        assert JwksClient(JWKS_URL).get_signing_key(None) == SECRET.encode()

    def test_skips_encryption_keys(self, mock_jwks):
        enc = dict(oct_jwk("k1"), use="enc")
        mock_jwks.get(JWKS_URL).respond(json={"keys": [enc]})
        with pytest.raises(KeyFetchError):
            JwksClient(JWKS_URL).get_signing_key("k1")

    def test_server_error(self, mock_jwks):
        mock_jwks.get(JWKS_URL).respond(status_code=503, json={"error": "down"})
        with pytest.raises(KeyFetchError):
            JwksClient(JWKS_URL).get_signing_key("k1")

    def test_invalid_json(self, mock_jwks):
        mock_jwks.get(JWKS_URL).respond(text="not json")
        with pytest.raises(KeyFetchError):
            JwksClient(JWKS_URL).get_signing_key("k1")

    def test_missing_keys_list(self, mock_jwks):
        mock_jwks.get(JWKS_URL).respond(json={"nope": []})
        with pytest.raises(KeyFetchError):
            JwksClient(JWKS_URL).get_signing_key("k1")

    def test_network_error(self, mock_jwks):
        mock_jwks.get(JWKS_URL).mock(side_effect=httpx.ConnectError("refused"))
        with pytest.raises(KeyFetchError):
            JwksClient(JWKS_URL).get_signing_key("k1")

    @pytest.mark.asyncio
    async def test_aget_signing_key(self, mock_jwks):
        mock_jwks.get(JWKS_URL).respond(json={"keys": [oct_jwk("k1")]})
        key = await JwksClient(JWKS_URL).aget_signing_key("k1")
        assert key == SECRET.encode()


class TestJwksVerification:
    """JwksClient used as the key of the gate."""

    def test_verifies_token_by_kid(self, mock_jwks, make_token):
        mock_jwks.get(JWKS_URL).respond(json={"keys": [oct_jwk("k1")]})
        token = make_token(headers={"kid": "k1"})

        outcome = TokenVerifier(JwksClient(JWKS_URL)).verify(token)

        assert outcome.kind is OutcomeKind.SUCCESS

    def test_unknown_kid_is_unverified(self, mock_jwks, make_token):
        mock_jwks.get(JWKS_URL).respond(json={"keys": [oct_jwk("k1")]})
        token = make_token(headers={"kid": "rotated-away"})

        outcome = TokenVerifier(JwksClient(JWKS_URL)).verify(token)

        assert outcome.kind is OutcomeKind.UNVERIFIED

    @pytest.mark.asyncio
    async def test_pipeline_async_path(self, mock_jwks, make_token):
        mock_jwks.get(JWKS_URL).respond(json={"keys": [oct_jwk("k1")]})
        token = make_token(headers={"kid": "k1"})
        auth = JwtAuthentication(GateOptions.create(JwksClient(JWKS_URL)))
        request = GateRequest.build(
            "GET", "https://example.com/api", headers={"Authorization": f"Bearer {token}"}
        )

        async def handler(req):
            return GateResponse(body=req.get_attribute("token").get("sub").encode())

        response = await auth.aprocess(request, handler)

        assert response.status == 200
        assert response.body == b"1"
