from uuid import uuid4
from sqlalchemy import Column, String, DateTime, ForeignKey, Integer, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from esahayak.db.base import Base
from esahayak.core.security import now_utc


class User(Base):
    __tablename__ = "users"
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String(255), nullable=True)
    email = Column(String(255), unique=True, index=True, nullable=False)  # store lowercase
    email_verified = Column(DateTime(timezone=True), nullable=True)
    image = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)

    accounts = relationship("Account", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
    sessions = relationship("Session", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)


class Account(Base):
    """Linked external identity (provider + provider account id) for a user."""
    __tablename__ = "accounts"
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    type = Column(String(255), nullable=False)
    provider = Column(String(255), nullable=False)
    provider_account_id = Column(String(255), nullable=False)
    refresh_token = Column(Text, nullable=True)
    access_token = Column(Text, nullable=True)
    expires_at = Column(Integer, nullable=True)
    token_type = Column(String(255), nullable=True)
    scope = Column(String(255), nullable=True)
    id_token = Column(Text, nullable=True)
    session_state = Column(String(255), nullable=True)

    user = relationship("User", back_populates="accounts")

    __table_args__ = (UniqueConstraint("provider", "provider_account_id", name="uq_account_provider"),)


class Session(Base):
    __tablename__ = "sessions"
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    session_token = Column(String(255), unique=True, nullable=False)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    expires = Column(DateTime(timezone=True), nullable=False)

    user = relationship("User", back_populates="sessions")


class VerificationToken(Base):
    """Single-use magic-link token; consumed (deleted) on verification."""
    __tablename__ = "verification_tokens"
    identifier = Column(String(255), primary_key=True)  # email
    token = Column(String(255), primary_key=True, unique=True)
    expires = Column(DateTime(timezone=True), nullable=False)
    name = Column(String(255), nullable=True)  # display name for users created at verification
