"""
Unit tests for session tokens.
"""

import sys
from datetime import timedelta
from pathlib import Path
from types import SimpleNamespace

import jwt
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from linkfolio.tokens import TokenService


@pytest.fixture
def tokens():
    return TokenService(
        access_secret="access-secret",
        refresh_secret="refresh-secret",
        access_ttl=timedelta(minutes=15),
        refresh_ttl=timedelta(days=7),
    )


@pytest.fixture
def account():
    return SimpleNamespace(id=42, email="user@example.com", name="User", role="user")


class TestTokenService:
    """Tests for TokenService."""

    def test_access_token_round_trip(self, tokens, account):
        payload = tokens.verify_access_token(tokens.create_access_token(account))
        assert payload["sub"] == "42"
        assert payload["email"] == "user@example.com"
        assert payload["role"] == "user"
        assert payload["type"] == "access"

    def test_refresh_token_is_not_an_access_token(self, tokens, account):
        refresh = tokens.create_refresh_token(account)
        assert tokens.verify_refresh_token(refresh) is not None
        assert tokens.verify_access_token(refresh) is None

    def test_access_token_is_not_a_refresh_token(self, tokens, account):
        access = tokens.create_access_token(account)
        assert tokens.verify_refresh_token(access) is None

    def test_expired_token(self, account):
        short_lived = TokenService(
            access_secret="a",
            refresh_secret="b",
            access_ttl=timedelta(seconds=-1),
            refresh_ttl=timedelta(days=1),
        )
        assert short_lived.verify_access_token(short_lived.create_access_token(account)) is None

    def test_foreign_signature(self, tokens, account):
        forged = jwt.encode({"sub": "42", "type": "access", "exp": 9999999999}, "other", algorithm="HS256")
        assert tokens.verify_access_token(forged) is None

    def test_garbage_and_missing(self, tokens):
        assert tokens.verify_access_token("not.a.token") is None
        assert tokens.verify_access_token(None) is None

    def test_ttls(self, tokens):
        assert tokens.access_ttl == timedelta(minutes=15)
        assert tokens.refresh_ttl == timedelta(days=7)
