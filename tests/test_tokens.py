"""Tests for TokenIssuer - access token signing and validation."""

import base64
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from tracker.auth.exceptions import ConfigurationError, InvalidTokenError
from tracker.auth.tokens import TokenClaims, TokenIssuer

SECRET = "unit-test-signing-key-0123456789abcdef"


@pytest.fixture
def issuer():
    return TokenIssuer(secret_key=SECRET, access_token_expire_minutes=60, refresh_token_expire_days=7)


@pytest.fixture
def expired_issuer():
    """Issues tokens that are already expired."""
    return TokenIssuer(secret_key=SECRET, access_token_expire_minutes=-5)


def _issue(issuer, role="Client"):
    return issuer.create_access_token(
        user_id=uuid.UUID("11111111-2222-3333-4444-555555555555"),
        email="alice@example.com",
        first_name="Alice",
        last_name="Anders",
        role=role,
    )


class TestConstruction:
    """Signing configuration is validated up front."""

    def test_short_secret_is_fatal(self):
        with pytest.raises(ConfigurationError):
            TokenIssuer(secret_key="too-short")

    def test_empty_secret_is_fatal(self):
        with pytest.raises(ConfigurationError):
            TokenIssuer(secret_key="")

    def test_32_character_secret_is_accepted(self):
        TokenIssuer(secret_key="x" * 32)


class TestAccessToken:
    """Claims carried by access tokens."""

    def test_carries_identity_claims(self, issuer):
        claims = issuer.validate_access_token(_issue(issuer))

        assert claims["sub"] == "alice@example.com"
        assert claims["email"] == "alice@example.com"
        assert claims["uid"] == "11111111-2222-3333-4444-555555555555"
        assert claims["given_name"] == "Alice"
        assert claims["family_name"] == "Anders"
        assert claims["role"] == "Client"
        uuid.UUID(claims["jti"])
        assert claims["exp"] > claims["iat"]

    def test_each_token_has_unique_jti(self, issuer):
        first = issuer.validate_access_token(_issue(issuer))
        second = issuer.validate_access_token(_issue(issuer))
        assert first["jti"] != second["jti"]

    def test_signed_with_hs256(self, issuer):
        assert jwt.get_unverified_header(_issue(issuer))["alg"] == "HS256"

    def test_issuer_and_audience_when_configured(self):
        issuer = TokenIssuer(secret_key=SECRET, issuer="tracker-api", audience="tracker-client")
        claims = issuer.validate_access_token(_issue(issuer))
        assert claims["iss"] == "tracker-api"
        assert claims["aud"] == "tracker-client"

    def test_token_claims_model(self, issuer):
        claims = TokenClaims.from_payload(issuer.validate_access_token(_issue(issuer, role="Admin")))
        assert claims.user_id == uuid.UUID("11111111-2222-3333-4444-555555555555")
        assert claims.first_name == "Alice"
        assert claims.role == "Admin"

    def test_token_claims_missing_identity(self):
        with pytest.raises(InvalidTokenError):
            TokenClaims.from_payload({"sub": "alice@example.com"})


class TestRefreshToken:
    """Opaque refresh tokens."""

    def test_is_32_random_bytes_base64(self, issuer):
        token = issuer.generate_refresh_token()
        assert len(base64.b64decode(token)) == 32

    def test_values_differ(self, issuer):
        assert issuer.generate_refresh_token() != issuer.generate_refresh_token()

    def test_expiry_is_days_ahead(self, issuer):
        expiry = issuer.refresh_token_expiry()
        expected = datetime.now(timezone.utc) + timedelta(days=7)
        assert abs((expiry - expected).total_seconds()) < 5


class TestExpiredTokenClaims:
    """Reading claims for refresh/revoke ignores expiry but nothing else."""

    def test_accepts_expired_token(self, issuer, expired_issuer):
        token = _issue(expired_issuer)
        claims = issuer.get_claims_from_expired_token(token)
        assert claims["sub"] == "alice@example.com"

    def test_full_validation_rejects_expired_token(self, issuer, expired_issuer):
        with pytest.raises(InvalidTokenError):
            issuer.validate_access_token(_issue(expired_issuer))

    def test_rejects_other_signing_key(self, issuer):
        other = TokenIssuer(secret_key="another-signing-key-0123456789abcdef")
        with pytest.raises(InvalidTokenError):
            issuer.get_claims_from_expired_token(_issue(other))

    def test_rejects_other_algorithm(self, issuer):
        token = jwt.encode({"sub": "alice@example.com"}, SECRET, algorithm="HS512")
        with pytest.raises(InvalidTokenError):
            issuer.get_claims_from_expired_token(token)

    def test_rejects_garbage(self, issuer):
        with pytest.raises(InvalidTokenError):
            issuer.get_claims_from_expired_token("not-a-jwt")

    def test_ignores_audience_mismatch(self):
        minted = TokenIssuer(secret_key=SECRET, audience="somebody-else")
        reader = TokenIssuer(secret_key=SECRET, audience="tracker-client")
        claims = reader.get_claims_from_expired_token(_issue(minted))
        assert claims["aud"] == "somebody-else"
