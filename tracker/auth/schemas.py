"""
Authentication Schemas
Request and response models for auth endpoints.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, model_validator


# =============================================================================
# Request Schemas
# =============================================================================

class RegisterRequest(BaseModel):
    """Request body for account registration."""

    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., max_length=100, description="Password (checked against the password policy)")
    confirm_password: Optional[str] = Field(None, description="Must match password when given")
    first_name: str = Field(..., min_length=1, max_length=100, description="Given name")
    last_name: str = Field(..., min_length=1, max_length=100, description="Family name")
    role: str = Field(default="Client", description="Role to bind to the new account")

    @model_validator(mode="after")
    def check_passwords_match(self) -> "RegisterRequest":
        if self.confirm_password is not None and self.confirm_password != self.password:
            raise ValueError("The password and confirmation password do not match.")
        return self


class LoginRequest(BaseModel):
    """Request body for login."""

    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., description="User password")


class RefreshTokenRequest(BaseModel):
    """Request body for token refresh."""

    access_token: str = Field(..., description="Last access token issued (may be expired)")
    refresh_token: str = Field(..., description="Refresh token issued alongside it")


class RevokeTokenRequest(BaseModel):
    """Request body for refresh token revocation."""

    access_token: str = Field(..., description="Access token of the session to revoke")


class ForgotPasswordRequest(BaseModel):
    """Request body for a password reset request."""

    email: EmailStr = Field(..., description="User email address")


class ResetPasswordRequest(BaseModel):
    """Request body for completing a password reset."""

    email: EmailStr = Field(..., description="User email address")
    token: str = Field(..., description="Password reset token")
    new_password: str = Field(..., max_length=100, description="New password")
    confirm_password: Optional[str] = Field(None, description="Must match new_password when given")

    @model_validator(mode="after")
    def check_passwords_match(self) -> "ResetPasswordRequest":
        if self.confirm_password is not None and self.confirm_password != self.new_password:
            raise ValueError("The password and confirmation password do not match.")
        return self


class ChangePasswordRequest(BaseModel):
    """Request body for password change."""

    current_password: str = Field(..., description="Current password for verification")
    new_password: str = Field(..., max_length=100, description="New password")
    confirm_new_password: Optional[str] = Field(None, description="Must match new_password when given")

    @model_validator(mode="after")
    def check_passwords_match(self) -> "ChangePasswordRequest":
        if self.confirm_new_password is not None and self.confirm_new_password != self.new_password:
            raise ValueError("The new password and confirmation password do not match.")
        return self


# =============================================================================
# Response Schemas
# =============================================================================

class AuthResponse(BaseModel):
    """Session payload returned by register, login and refresh."""

    access_token: str = Field(..., description="JWT access token")
    refresh_token: str = Field(..., description="Opaque refresh token")
    token_type: str = Field(default="bearer", description="Token type")
    user_id: UUID = Field(..., description="Account ID")
    email: str = Field(..., description="Account email")
    first_name: str = Field(..., description="Given name")
    last_name: str = Field(..., description="Family name")
    role: str = Field(..., description="Role the session acts as")
    organization_id: Optional[UUID] = Field(None, description="Primary organization, if any")


class MessageResponse(BaseModel):
    """Plain acknowledgement."""

    message: str


class UserProfileResponse(BaseModel):
    """Profile of the signed-in account."""

    id: UUID = Field(..., description="Account ID")
    email: str = Field(..., description="Account email")
    first_name: str = Field(..., description="Given name")
    last_name: str = Field(..., description="Family name")
    role: str = Field(..., description="Role the session acts as")
    roles: list[str] = Field(default_factory=list, description="All roles bound to the account")
    is_active: bool = Field(..., description="Whether the account is active")
    organization_id: Optional[UUID] = Field(None, description="Primary organization")
    organization_ids: list[UUID] = Field(default_factory=list, description="All organizations")
    last_login_at: Optional[datetime] = Field(None, description="Last successful login")
    created_at: datetime = Field(..., description="Account creation timestamp")

    model_config = {"from_attributes": True}
