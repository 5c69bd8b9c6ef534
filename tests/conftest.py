"""Shared fixtures: a signing secret and a token factory."""

import logging
import time

import jwt
import pytest

SECRET = "gatekeeper-test-secret-" + "0123456789abcdef" * 3
OTHER_SECRET = "another-secret-nobody-trusts-" + "fedcba9876543210" * 3

# One hour either side of "now" keeps tokens clearly valid or clearly expired
HOUR = 3600


@pytest.fixture
def secret():
    return SECRET


@pytest.fixture
def make_token():
    """
    Return a factory minting HS256 tokens.

    Defaults: iss "Acme Toothpics Ltd", sub "1", issued now, expiring in an hour.
    """

    def factory(key=SECRET, algorithm="HS256", headers=None, **claims):
        now = int(time.time())
        payload = {
            "iss": "Acme Toothpics Ltd",
            "sub": "1",
            "iat": now,
            "exp": now + HOUR,
        }
        payload.update(claims)
        payload = {k: v for k, v in payload.items() if v is not None}
        return jwt.encode(payload, key, algorithm=algorithm, headers=headers)

    return factory


@pytest.fixture
def acme_token(make_token):
    return make_token()


@pytest.fixture
def expired_token(make_token):
    now = int(time.time())
    return make_token(iat=now - 2 * HOUR, exp=now - HOUR)


@pytest.fixture
def logged(caplog):
    """
    Capture the gate's log records from debug level up.

    Returns a function mapping a level to the messages logged at it.
    """
    caplog.set_level(logging.DEBUG, logger="jwt_gatekeeper")

    def at(level):
        return [
            record.getMessage()
            for record in caplog.records
            if record.name == "jwt_gatekeeper" and record.levelno == level
        ]

    return at
