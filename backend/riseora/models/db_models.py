"""
RiseOra - SQLAlchemy ORM Models
PostgreSQL database models for persistent storage
"""
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, Date, Text, ForeignKey, Enum as SQLEnum, Boolean
from sqlalchemy.orm import relationship
from ..database import Base
from .workflow import DisputeStatus, DisputeTemplateStage, NotificationType


class UserDB(Base):
    """User account with the profile fields used to fill dispute letters."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True)  # UUID
    email = Column(String(255), unique=True, nullable=False, index=True)
    username = Column(String(100), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default="user")  # user, admin
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # ==========================================================================
    # LETTER IDENTITY - sender block and identification lines
    # ==========================================================================
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    date_of_birth = Column(Date, nullable=True)
    ssn_last_4 = Column(String(4), nullable=True)

    street_address = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(2), nullable=True)
    zip_code = Column(String(10), nullable=True)

    # Relationships
    disputes = relationship("DisputeDB", back_populates="user", cascade="all, delete-orphan")
    notifications = relationship("NotificationDB", back_populates="user", cascade="all, delete-orphan")
    notification_settings = relationship(
        "NotificationSettingsDB", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)


class DisputeDB(Base):
    """
    A single dispute owned by a user.

    Never hard-deleted: removal sets status to DELETED.
    """
    __tablename__ = "disputes"

    id = Column(String(36), primary_key=True)  # UUID
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # Dispute details
    creditor_name = Column(String(255), nullable=False)
    account_number = Column(String(64), nullable=True)
    bureau = Column(String(20), nullable=False, index=True)  # EXPERIAN, EQUIFAX, TRANSUNION, ALL
    status = Column(String(32), nullable=False, default=DisputeStatus.DRAFT.value)
    dispute_reason = Column(Text, nullable=False)
    custom_reason = Column(Text, nullable=True)
    dispute_type = Column(String(50), nullable=True)  # identity_theft, inaccurate_reporting, ...

    # Letter workflow
    letter_content = Column(Text, nullable=True)
    template_stage = Column(String(32), nullable=False, default=DisputeTemplateStage.INVESTIGATION_REQUEST.value)
    template_stage_started_at = Column(DateTime, nullable=True)

    # ==========================================================================
    # MAILING / RESPONSE TRACKING
    # ==========================================================================
    mailed_at = Column(DateTime, nullable=True)
    tracking_number = Column(String(64), nullable=True)
    delivered_at = Column(DateTime, nullable=True)
    response_deadline = Column(DateTime, nullable=True)
    response_received_at = Column(DateTime, nullable=True)

    # ==========================================================================
    # VALIDATION / CRA SUB-WORKFLOW - drives escalation path selection
    # ==========================================================================
    dv_sent = Column(Boolean, default=False)
    dv_response_received = Column(Boolean, default=False)
    dv_response_quality = Column(String(20), nullable=True)  # unknown, deficient, sufficient
    cra_dispute_sent = Column(Boolean, default=False)
    cra_response_received = Column(Boolean, default=False)
    cra_response_result = Column(String(20), nullable=True)  # deleted, corrected, verified, no_response
    mov_sent = Column(Boolean, default=False)
    direct_dispute_sent = Column(Boolean, default=False)
    inaccuracy_persists = Column(Boolean, default=True)

    # Optimistic concurrency - bumped on every UPDATE
    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    user = relationship("UserDB", back_populates="disputes")
    notifications = relationship("NotificationDB", back_populates="dispute")
    checklist_items = relationship(
        "DisputeChecklistDB",
        back_populates="dispute",
        cascade="all, delete-orphan",
        order_by="DisputeChecklistDB.order_index",
    )


class NotificationDB(Base):
    """In-app notification (status updates, deadline reminders)."""
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True)  # UUID
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    dispute_id = Column(String(36), ForeignKey("disputes.id", ondelete="SET NULL"), nullable=True, index=True)

    type = Column(SQLEnum(NotificationType), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    read = Column(Boolean, default=False)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    # Relationships
    user = relationship("UserDB", back_populates="notifications")
    dispute = relationship("DisputeDB", back_populates="notifications")


class DisputeChecklistDB(Base):
    """One step of a dispute's to-do checklist."""
    __tablename__ = "dispute_checklist_items"

    id = Column(String(36), primary_key=True)  # UUID
    dispute_id = Column(String(36), ForeignKey("disputes.id", ondelete="CASCADE"), nullable=False, index=True)

    label = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    order_index = Column(Integer, nullable=False, default=0)
    completed = Column(Boolean, default=False)
    completed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    dispute = relationship("DisputeDB", back_populates="checklist_items")


class NotificationSettingsDB(Base):
    """Per-user notification preferences. One row per user, created on first read."""
    __tablename__ = "notification_settings"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)

    email_enabled = Column(Boolean, default=True)
    in_app_enabled = Column(Boolean, default=True)
    reminder_lead_days = Column(Integer, nullable=False, default=5)  # Days before the deadline

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    user = relationship("UserDB", back_populates="notification_settings")
