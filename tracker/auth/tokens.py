"""
Token Issuer
Signs access tokens, mints opaque refresh tokens and validates access tokens.
"""

import base64
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from uuid import UUID

from jose import JWTError, jwt
from pydantic import BaseModel, Field, ValidationError

from tracker.auth.exceptions import ConfigurationError, InvalidTokenError
from tracker.config import MIN_SECRET_KEY_LENGTH, Settings

REFRESH_TOKEN_BYTES = 32


class TokenClaims(BaseModel):
    """Identity claims read back from a validated access token."""

    user_id: UUID = Field(..., alias="uid")
    email: str
    first_name: str = Field("", alias="given_name")
    last_name: str = Field("", alias="family_name")
    role: str
    jti: str

    model_config = {"populate_by_name": True}

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "TokenClaims":
        try:
            return cls.model_validate(payload)
        except ValidationError as e:
            raise InvalidTokenError("Token is missing identity claims") from e


class TokenIssuer:
    """
    Issues and validates session tokens.

    Access tokens are JWTs signed with a shared secret. Refresh tokens are
    opaque random values; only their hash is ever persisted.
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        access_token_expire_minutes: int = 60,
        refresh_token_expire_days: int = 7,
        issuer: Optional[str] = None,
        audience: Optional[str] = None,
    ):
        if not secret_key or len(secret_key) < MIN_SECRET_KEY_LENGTH:
            raise ConfigurationError(
                f"JWT secret key must be at least {MIN_SECRET_KEY_LENGTH} characters long"
            )
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.access_token_expire_minutes = access_token_expire_minutes
        self.refresh_token_expire_days = refresh_token_expire_days
        self.issuer = issuer
        self.audience = audience

    @classmethod
    def from_settings(cls, config: Settings) -> "TokenIssuer":
        return cls(
            secret_key=config.jwt_secret_key,
            algorithm=config.jwt_algorithm,
            access_token_expire_minutes=config.access_token_expire_minutes,
            refresh_token_expire_days=config.refresh_token_expire_days,
            issuer=config.jwt_issuer,
            audience=config.jwt_audience,
        )

    def create_access_token(
        self,
        user_id: UUID,
        email: str,
        first_name: str,
        last_name: str,
        role: str,
    ) -> str:
        """
        Create a signed access token for an account.

        Args:
            user_id: Account ID
            email: Account email (also the token subject)
            first_name: Given name
            last_name: Family name
            role: The role the session acts as

        Returns:
            Encoded JWT string
        """
        now = datetime.now(timezone.utc)
        payload = {
            "sub": email,
            "jti": str(uuid.uuid4()),
            "uid": str(user_id),
            "email": email,
            "given_name": first_name,
            "family_name": last_name,
            "role": role,
            "iat": now,
            "exp": now + timedelta(minutes=self.access_token_expire_minutes),
        }
        if self.issuer:
            payload["iss"] = self.issuer
        if self.audience:
            payload["aud"] = self.audience

        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def generate_refresh_token(self) -> str:
        """32 random bytes, base64 encoded."""
        return base64.b64encode(secrets.token_bytes(REFRESH_TOKEN_BYTES)).decode("ascii")

    def refresh_token_expiry(self) -> datetime:
        return datetime.now(timezone.utc) + timedelta(days=self.refresh_token_expire_days)

    def get_claims_from_expired_token(self, token: str) -> dict[str, Any]:
        """
        Read the claims of a token whose lifetime may have elapsed.

        Signature and signing algorithm are enforced; expiry, issuer and
        audience are not.

        Raises:
            InvalidTokenError: If the token is malformed, signed with another
                algorithm, or its signature does not verify.
        """
        self._check_algorithm(token)
        try:
            return jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"verify_exp": False, "verify_aud": False, "verify_iss": False},
            )
        except JWTError as e:
            raise InvalidTokenError("Invalid token") from e

    def validate_access_token(self, token: str) -> dict[str, Any]:
        """
        Fully validate an access token presented on a request.

        Raises:
            InvalidTokenError: If the token is invalid or expired.
        """
        self._check_algorithm(token)
        try:
            return jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
            )
        except JWTError as e:
            raise InvalidTokenError("Invalid or expired token") from e

    def _check_algorithm(self, token: str) -> None:
        try:
            header = jwt.get_unverified_header(token)
        except JWTError as e:
            raise InvalidTokenError("Invalid token") from e
        if header.get("alg") != self.algorithm:
            raise InvalidTokenError("Invalid token")
