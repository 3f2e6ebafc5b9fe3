"""
Authentication Utilities
Password hashing, password policy and token hashing helpers.
"""

import hashlib
import hmac
import re
import secrets

from passlib.context import CryptContext

from tracker.config import Settings, settings

# Password hashing context
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.bcrypt_rounds,
)

SPECIAL_CHARACTERS = re.compile(r"[^A-Za-z0-9]")


def hash_password(password: str) -> str:
    """
    Hash a plain text password using bcrypt.

    Args:
        password: Plain text password

    Returns:
        Hashed password string
    """
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a plain text password against a hashed password.

    Args:
        plain_password: Plain text password to verify
        hashed_password: Hashed password to compare against

    Returns:
        True if password matches, False otherwise
    """
    return pwd_context.verify(plain_password, hashed_password)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def validate_password_strength(password: str, config: Settings = settings) -> tuple[bool, list[str]]:
    """
    Check a password against the configured policy.

    Every violated rule is reported, in policy order.

    Returns:
        Tuple of (is_valid, error messages)
    """
    errors = []

    if len(password) < config.password_min_length:
        errors.append(f"Password must be at least {config.password_min_length} characters long.")

    if config.password_require_uppercase and not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter.")

    if config.password_require_lowercase and not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter.")

    if config.password_require_numbers and not re.search(r"\d", password):
        errors.append("Password must contain at least one digit.")

    if config.password_require_special and not SPECIAL_CHARACTERS.search(password):
        errors.append("Password must contain at least one special character.")

    return len(errors) == 0, errors


def hash_token(token: str) -> str:
    """
    Hash a token using SHA256 for secure storage.

    Args:
        token: Token string to hash

    Returns:
        SHA256 hash of the token (hex string)
    """
    return hashlib.sha256(token.encode()).hexdigest()


def token_matches(token: str, token_hash: str | None) -> bool:
    """Constant-time comparison of a presented token with a stored hash."""
    if not token_hash:
        return False
    return hmac.compare_digest(hash_token(token), token_hash)


def generate_secure_token() -> str:
    """
    Generate a URL-safe single-use token.

    Returns:
        URL-safe random token string
    """
    return secrets.token_urlsafe(32)
