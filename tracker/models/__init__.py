"""
Models Package
SQLAlchemy ORM models for the application.
"""

from tracker.models.role import Role, user_roles
from tracker.models.organization import Organization, user_organizations
from tracker.models.user import User
from tracker.models.user_token import UserToken
from tracker.models.login_attempt import LoginAttempt

__all__ = [
    "Role",
    "user_roles",
    "Organization",
    "user_organizations",
    "User",
    "UserToken",
    "LoginAttempt",
]
