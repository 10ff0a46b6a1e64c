"""Verification code database model."""

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, text

from .base import Base


class VerificationCodeModel(Base):
    """One-time numeric code bound to (subject, purpose)."""

    __tablename__ = "verification_codes"
    __table_args__ = (
        # At most one unconsumed code per (subject, purpose)
        Index(
            "uq_verification_codes_unconsumed",
            "subject",
            "purpose",
            unique=True,
            sqlite_where=text("consumed = 0"),
            postgresql_where=text("consumed = false"),
        ),
        Index("ix_verification_codes_expires_at", "expires_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    subject = Column(String, index=True, nullable=False)  # lowercase email
    purpose = Column(String, nullable=False)  # 'email_verification' or 'password_reset'
    code = Column(String, nullable=False)
    attempts = Column(Integer, nullable=False, default=0)
    consumed = Column(Boolean, nullable=False, default=False)
    consumed_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False)
    request_ip = Column(String, nullable=True)
