"""SQLAlchemy ORM models."""
import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, Integer, DateTime, Text, ForeignKey, Index, Float
from sonic.conversation.models import GUEST_OWNER
from sonic.database import Base

DEFAULT_PROFILE_PICTURE = "https://www.redditstatic.com/avatars/defaults/v2/avatar_default_7.png"
DEFAULT_THUMBNAIL = "https://cdn-icons-png.flaticon.com/512/1420/1420337.png"


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=True)
    google_id = Column(String, unique=True, nullable=True)
    name = Column(String, nullable=False, default="")
    profile_picture = Column(String, nullable=False, default=DEFAULT_PROFILE_PICTURE)
    role = Column(String, nullable=False, default="normal")
    subscription_status = Column(String, nullable=False, default="free")
    subscription_end_date = Column(DateTime, nullable=True)
    tokens = Column(Integer, nullable=False, default=100)
    # Local wall-clock time; daily grants compare calendar dates in server time
    last_token_grant_date = Column(DateTime, nullable=True)
    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))


class Conversation(Base):
    __tablename__ = "conversations"

    conversation_id = Column(String, primary_key=True)
    # A user id, or "guest" for unauthenticated flows
    owner_id = Column(String, nullable=False, default=GUEST_OWNER)
    type = Column(Integer, nullable=False, default=0)
    title = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    features_json = Column(Text, nullable=False, default="[]")
    files_json = Column(Text, nullable=False, default="[]")
    chat_history_json = Column(Text, nullable=False, default="[]")
    main_color_theme = Column(String, nullable=True)
    secondary_color_theme = Column(String, nullable=True)
    visibility = Column(String, nullable=False, default="public")
    chai_count = Column(Integer, nullable=False, default=0)
    thumbnail = Column(String, nullable=False, default=DEFAULT_THUMBNAIL)
    version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        Index("ix_conversations_owner_id", "owner_id"),
        Index("ix_conversations_type_visibility", "type", "visibility"),
    )


class Payment(Base):
    __tablename__ = "payments"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    razorpay_payment_id = Column(String, unique=True, nullable=False)
    razorpay_order_id = Column(String, nullable=False)
    amount = Column(Float, nullable=False)
    currency = Column(String, nullable=False, default="INR")
    plan = Column(String, nullable=False)
    receipt_id = Column(String, nullable=False)
    status = Column(String, nullable=False, default="pending")
    payment_date = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
