"""User database model.

This module defines the User (account) database model using SQLAlchemy.
"""

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from .base import Base


class UserModel(Base):
    """User database model."""

    __tablename__ = "users"

    user_id = Column(String, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    username = Column(String, unique=True, index=True, nullable=True)
    password_hash = Column(String, nullable=True)  # local accounts only
    provider = Column(String, nullable=False, default="local")  # 'local' or 'federated'
    federated_subject = Column(String, unique=True, index=True, nullable=True)
    role = Column(String, nullable=False, default="user")  # 'user', 'expert' or 'admin'
    display_name = Column(String, nullable=True)
    avatar = Column(String, nullable=True)

    is_email_verified = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    is_banned = Column(Boolean, nullable=False, default=False)
    banned_until = Column(DateTime, nullable=True)  # None while banned = permanent
    banned_reason = Column(String, nullable=True)

    login_attempts = Column(Integer, nullable=False, default=0)
    lock_until = Column(DateTime, nullable=True)

    rating = Column(Integer, nullable=False, default=0)
    total_answers = Column(Integer, nullable=False, default=0)

    last_login_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False)
