"""Credential record models - server-side shadows of issued long-lived tokens."""

from datetime import datetime

from sqlalchemy import DateTime, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from tokenvault.models.base import BaseModel


class CredentialRecordMixin:
    """Columns shared by every persisted token class.

    ``encrypted_token`` holds the AES-256-GCM envelope of the signed token,
    never the token itself. ``expires_at`` is only read by the sweep.
    """

    # User id or email, whichever the caller used as token subject
    subject_key: Mapped[str] = mapped_column(String(320), nullable=False, index=True)
    encrypted_token: Mapped[str] = mapped_column(Text, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )


class RefreshTokenRecord(CredentialRecordMixin, BaseModel):
    """One live refresh token per (subject, device)."""

    __tablename__ = "refresh_token_records"

    __table_args__ = (
        UniqueConstraint("subject_key", "device", name="uq_refresh_token_records_subject_device"),
    )

    # Non-null so the unique constraint holds (NULLs never conflict)
    device: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    def __repr__(self) -> str:
        return f"<RefreshTokenRecord subject={self.subject_key} device={self.device}>"


class VerifyEmailTokenRecord(CredentialRecordMixin, BaseModel):
    """One live email-verification token per subject."""

    __tablename__ = "verify_email_token_records"

    __table_args__ = (
        UniqueConstraint("subject_key", name="uq_verify_email_token_records_subject"),
    )

    def __repr__(self) -> str:
        return f"<VerifyEmailTokenRecord subject={self.subject_key}>"


class RecoverPasswordTokenRecord(CredentialRecordMixin, BaseModel):
    """One live password-reset token per subject."""

    __tablename__ = "recover_password_token_records"

    __table_args__ = (
        UniqueConstraint("subject_key", name="uq_recover_password_token_records_subject"),
    )

    def __repr__(self) -> str:
        return f"<RecoverPasswordTokenRecord subject={self.subject_key}>"


CredentialRecord = RefreshTokenRecord | VerifyEmailTokenRecord | RecoverPasswordTokenRecord
