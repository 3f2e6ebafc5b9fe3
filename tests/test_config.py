"""Tests for Settings - signing key requirements."""

import pytest
from pydantic import ValidationError

from tracker.config import Settings


class TestSigningKey:
    def test_missing_key_is_rejected(self, monkeypatch):
        monkeypatch.delenv("JWT_SECRET_KEY", raising=False)

        with pytest.raises(ValidationError):
            Settings(_env_file=None)

    def test_short_key_is_rejected(self, monkeypatch):
        monkeypatch.setenv("JWT_SECRET_KEY", "too-short")

        with pytest.raises(ValidationError, match="at least 32 characters"):
            Settings(_env_file=None)

    def test_key_from_environment(self, monkeypatch):
        monkeypatch.setenv("JWT_SECRET_KEY", "k" * 32)
        assert Settings(_env_file=None).jwt_secret_key == "k" * 32
