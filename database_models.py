from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from config.settings import PLAN_FREE_TRIAL, ROLE_USER, STATUS_TRIAL
from database import Base


class User(Base):
    """
    Account record with subscription state and denormalized usage counters.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    email = Column(String, unique=True, nullable=False, index=True)
    phone = Column(String, nullable=True, index=True)
    company = Column(String, nullable=True, default="")
    hashed_password = Column(String, nullable=False)
    role = Column(String, nullable=False, default=ROLE_USER)
    is_active = Column(Boolean, nullable=False, default=True)
    is_suspended = Column(Boolean, nullable=False, default=False)

    # Subscription
    plan = Column(String, nullable=False, default=PLAN_FREE_TRIAL)
    subscription_status = Column(String, nullable=False, default=STATUS_TRIAL)
    trial_start_date = Column(DateTime, nullable=True)
    trial_end_date = Column(DateTime, nullable=True)
    subscription_start_date = Column(DateTime, nullable=True)

    # Aggregate usage counters (derived from the tool_usage ledger)
    total_generations = Column(Integer, nullable=False, default=0)
    monthly_generations = Column(Integer, nullable=False, default=0)
    usage_last_reset = Column(DateTime, nullable=True, default=datetime.utcnow)

    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    tool_stats = relationship(
        "ToolUsageStat",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ToolUsageStat.tool_id",
    )

    def is_trial_expired(self, now: datetime) -> bool:
        return self.trial_end_date is not None and now >= self.trial_end_date


class ToolUsageStat(Base):
    """Per-user, per-tool usage aggregate."""
    __tablename__ = "tool_usage_stats"
    __table_args__ = (UniqueConstraint("user_id", "tool_id", name="uq_tool_usage_stats_user_tool"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    tool_id = Column(String, nullable=False)
    tool_name = Column(String, nullable=False)
    usage_count = Column(Integer, nullable=False, default=0)
    last_used = Column(DateTime, nullable=True)

    user = relationship("User", back_populates="tool_stats")


class UsageRecord(Base):
    """
    Immutable ledger entry: one row per tool invocation attempt.
    """
    __tablename__ = "tool_usage"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    tool_id = Column(String, nullable=False, index=True)
    tool_name = Column(String, nullable=False)
    input = Column(JSON, nullable=True)
    output = Column(JSON, nullable=True)
    processing_time = Column(Integer, nullable=False, default=0)
    status = Column(String, nullable=False)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)


class PlatformSettings(Base):
    """Single-row admin settings document."""
    __tablename__ = "platform_settings"

    id = Column(Integer, primary_key=True)
    platform = Column(JSON, nullable=False, default=dict)
    user_management = Column(JSON, nullable=False, default=dict)
    ai_tools = Column(JSON, nullable=False, default=dict)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
