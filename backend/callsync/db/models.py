from sqlalchemy import Column, String, DateTime, ForeignKey, JSON, UniqueConstraint
from datetime import datetime, timezone
from .session import Base
import uuid


def gen_uuid():
    return str(uuid.uuid4())


def utcnow():
    return datetime.now(timezone.utc)

class User(Base):
    __tablename__ = "users"
    id = Column(String, primary_key=True, default=gen_uuid)
    email = Column(String, unique=True, nullable=False)
    hashed_password = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class OAuthCredential(Base):
    """One calendar credential per user. Tokens are Fernet-encrypted."""
    __tablename__ = "oauth_credentials"
    id = Column(String, primary_key=True, default=gen_uuid)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    provider = Column(String, nullable=False, default="google")
    access_token_encrypted = Column(String, nullable=False)
    refresh_token_encrypted = Column(String, nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    calendar_id = Column(String, nullable=False, default="primary")
    scopes = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class Contact(Base):
    __tablename__ = "contacts"
    id = Column(String, primary_key=True, default=gen_uuid)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=True, index=True)
    firm = Column(String, nullable=True)
    position = Column(String, nullable=True)
    connection_type = Column(String, nullable=False, default="cold")
    stage = Column(String, nullable=False, default="researching", index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class CallRecord(Base):
    __tablename__ = "call_records"
    __table_args__ = (
        # idempotency key: at most one mirror per external event
        UniqueConstraint("user_id", "external_provider", "external_event_id", name="uq_call_records_external"),
    )
    id = Column(String, primary_key=True, default=gen_uuid)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    contact_id = Column(String, ForeignKey("contacts.id", ondelete="SET NULL"), nullable=True, index=True)
    title = Column(String, nullable=False)
    start_at = Column(DateTime(timezone=True), nullable=False, index=True)
    end_at = Column(DateTime(timezone=True), nullable=False)
    location = Column(String, nullable=True)
    notes = Column(String, nullable=True)
    status = Column(String, nullable=False, default="scheduled", index=True)
    external_provider = Column(String, nullable=True)
    external_event_id = Column(String, nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class SyncLease(Base):
    __tablename__ = "sync_leases"
    __table_args__ = (
        UniqueConstraint("scope", "owner_key", name="uq_sync_leases_scope_owner"),
    )
    id = Column(String, primary_key=True, default=gen_uuid)
    scope = Column(String, nullable=False)
    owner_key = Column(String, nullable=False)
    holder = Column(String, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
