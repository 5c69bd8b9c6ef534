"""Tests for token discovery in headers and cookies."""

import logging

import pytest

from jwt_gatekeeper.errors import ConfigurationError
from jwt_gatekeeper.locator import TokenLocation, TokenLocator
from jwt_gatekeeper.models import GateRequest


def request(headers=None, cookies=None):
    return GateRequest.build("GET", "https://example.com/api", headers=headers, cookies=cookies)


class TestHeaderLocation:
    """Tests for header locations."""

    def test_bearer_prefix_stripped(self):
        locator = TokenLocator()
        located = locator.locate(request({"Authorization": "Bearer abc.def.ghi"}))
        assert located is not None
        assert located.token == "abc.def.ghi"
        assert located.location.name == "Authorization"

    def test_bearer_prefix_is_optional(self):
        locator = TokenLocator()
        assert locator.locate(request({"Authorization": "abc.def.ghi"})).token == "abc.def.ghi"

    def test_bearer_prefix_case_insensitive(self):
        locator = TokenLocator()
        assert locator.locate(request({"Authorization": "bearer abc"})).token == "abc"

    def test_header_name_case_insensitive(self):
        locator = TokenLocator([TokenLocation.header("X-Token")])
        assert locator.locate(request({"x-token": "Bearer abc"})).token == "abc"

    def test_first_header_value_used(self):
        locator = TokenLocator([TokenLocation.header("X-Token")])
        req = request([("X-Token", "first"), ("X-Token", "second")])
        assert locator.locate(req).token == "first"

    def test_custom_pattern(self):
        """A custom pattern's first group is the token."""
        locator = TokenLocator([TokenLocation.header("X-Token", r"Token=(\w+)")])
        assert locator.locate(request({"X-Token": "Token=secret123"})).token == "secret123"

    def test_pattern_without_group_uses_whole_match(self):
        locator = TokenLocator([TokenLocation.header("X-Token", r"[a-z]+")])
        assert locator.locate(request({"X-Token": "123abc456"})).token == "abc"

    def test_pattern_mismatch_is_not_found(self):
        locator = TokenLocator([TokenLocation.header("X-Token", r"^Token (\S+)$")])
        assert locator.locate(request({"X-Token": "Bearer abc"})) is None

    def test_empty_header_is_not_found(self):
        locator = TokenLocator()
        assert locator.locate(request({"Authorization": ""})) is None

    @pytest.mark.parametrize("value", ["Bearer", "Bearer   ", "bearer"])
    def test_bare_bearer_is_not_found(self, value, logged):
        """A scheme with no token after it is not a token."""
        assert TokenLocator().locate(request({"Authorization": value})) is None
        assert logged(logging.DEBUG) == ["Token not found"]

    def test_bare_bearer_falls_through_to_cookie(self):
        req = request({"Authorization": "Bearer"}, cookies={"token": "abc"})
        assert TokenLocator().locate(req).token == "abc"

    def test_extra_words_are_not_a_token(self):
        """The default pattern takes the whole value, never a fragment of it."""
        assert TokenLocator().locate(request({"Authorization": "Bearer a b"})) is None

    def test_multiple_spaces_after_bearer(self):
        assert TokenLocator().locate(request({"Authorization": "Bearer   abc"})).token == "abc"


class TestCookieLocation:
    """Tests for cookie locations."""

    def test_cookie_value(self):
        locator = TokenLocator([TokenLocation.cookie("nekot")])
        assert locator.locate(request(cookies={"nekot": "abc.def.ghi"})).token == "abc.def.ghi"

    def test_bearer_cookie(self):
        locator = TokenLocator([TokenLocation.cookie("nekot")])
        assert locator.locate(request(cookies={"nekot": "Bearer abc.def.ghi"})).token == "abc.def.ghi"

    def test_cookie_from_header(self):
        """Cookies are parsed from the Cookie header when not given."""
        locator = TokenLocator()
        assert locator.locate(request({"Cookie": "theme=dark; token=abc"})).token == "abc"

    @pytest.mark.parametrize("value", ["", "   ", "Bearer "])
    def test_empty_cookie_never_yields_token(self, value):
        """A present but empty cookie is reported as not found."""
        locator = TokenLocator([TokenLocation.cookie("nekot")])
        assert locator.locate(request(cookies={"nekot": value})) is None


class TestLocationOrder:
    """Tests for location ordering."""

    def test_header_before_cookie(self):
        """The first configured location wins even when later ones match."""
        locator = TokenLocator()
        req = request({"Authorization": "Bearer from-header"}, cookies={"token": "from-cookie"})
        located = locator.locate(req)
        assert located.token == "from-header"
        assert located.location.kind == "header"

    def test_cookie_before_header_when_configured(self):
        locator = TokenLocator([TokenLocation.cookie(), TokenLocation.header()])
        req = request({"Authorization": "Bearer from-header"}, cookies={"token": "from-cookie"})
        assert locator.locate(req).token == "from-cookie"

    def test_falls_through_to_cookie(self):
        """A missing header falls through to the cookie."""
        locator = TokenLocator([TokenLocation.header("X-Token", "(.*)"), TokenLocation.cookie()])
        assert locator.locate(request(cookies={"token": "abc"})).token == "abc"

    def test_nothing_found(self):
        assert TokenLocator().locate(request()) is None


class TestLocatorLogging:
    """Tests for debug events."""

    def test_header_event(self, logged):
        TokenLocator().locate(request({"Authorization": "Bearer abc"}))
        assert logged(logging.DEBUG) == ["Using token from request header"]

    def test_cookie_event(self, logged):
        TokenLocator().locate(request(cookies={"token": "abc"}))
        assert logged(logging.DEBUG) == ["Using token from cookie"]

    def test_not_found_event(self, logged):
        TokenLocator().locate(request())
        assert logged(logging.DEBUG) == ["Token not found"]


class TestTokenLocation:
    """Tests for TokenLocation validation."""

    def test_unknown_kind(self):
        with pytest.raises(ConfigurationError):
            TokenLocation("query", "token")

    def test_invalid_pattern(self):
        with pytest.raises(ConfigurationError):
            TokenLocation.header("X-Token", "(unclosed")

    def test_kind_accepts_plain_string(self):
        assert TokenLocation("cookie", "token") == TokenLocation.cookie("token")
