import enum
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, String, DateTime, Text, ForeignKey, Integer, Numeric, Enum, UniqueConstraint
from sqlalchemy.orm import relationship
from app.database import Base


def new_id() -> str:
    return str(uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything is stored as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class UserRole(str, enum.Enum):
    GUEST = "GUEST"
    GENERAL_USER = "GENERAL_USER"
    COLLEGE_USER = "COLLEGE_USER"
    MODERATOR = "MODERATOR"
    ADMIN = "ADMIN"


class ResourceType(str, enum.Enum):
    TOPPER_NOTES = "TOPPER_NOTES"
    PYQS = "PYQS"
    CASE_DECKS = "CASE_DECKS"
    PRESENTATIONS = "PRESENTATIONS"
    STRATEGIES = "STRATEGIES"


class AccessType(str, enum.Enum):
    OWN_COLLEGE = "OWN_COLLEGE"
    PAID = "PAID"


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    EXPIRED = "EXPIRED"


class PanelType(str, enum.Enum):
    NATIONAL = "NATIONAL"
    COLLEGE = "COLLEGE"


class TargetType(str, enum.Enum):
    POST = "POST"
    COMMENT = "COMMENT"


class ReportStatus(str, enum.Enum):
    PENDING = "PENDING"
    REVIEWED = "REVIEWED"
    RESOLVED = "RESOLVED"


class College(Base):
    """A recognised institution; its email domain decides user affiliation."""

    __tablename__ = "colleges"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False, unique=True)
    email_domain = Column(String(255), nullable=False, unique=True, index=True)
    logo_url = Column(String(1000), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class User(Base):
    """Platform identity with a role and an optional college affiliation."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(320), nullable=False, unique=True)
    username = Column(String(30), nullable=False, unique=True)
    display_name = Column(String(100), nullable=True)
    role = Column(Enum(UserRole), nullable=False, default=UserRole.GENERAL_USER)
    college_id = Column(String(36), ForeignKey("colleges.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    college = relationship("College")


class Moderator(Base):
    """Assignment of a user as moderator of a college."""

    __tablename__ = "moderators"
    __table_args__ = (UniqueConstraint("user_id", "college_id", name="uq_moderator_assignment"),)

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    college_id = Column(String(36), ForeignKey("colleges.id", ondelete="CASCADE"), nullable=False)
    assigned_by = Column(String(36), nullable=False)
    assigned_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    user = relationship("User")
    college = relationship("College")


class Resource(Base):
    """Metadata of one uploaded file positioned in the college hierarchy."""

    __tablename__ = "resources"

    id = Column(String(36), primary_key=True, default=new_id)
    college_id = Column(String(36), ForeignKey("colleges.id", ondelete="CASCADE"), nullable=False, index=True)
    resource_type = Column(Enum(ResourceType), nullable=False)
    department = Column(String(100), nullable=False)
    batch = Column(String(50), nullable=False)
    file_name = Column(String(255), nullable=False)
    file_url = Column(String(1000), nullable=False)
    description = Column(Text, nullable=False, default="")
    uploaded_by = Column(String(36), ForeignKey("users.id"), nullable=False)
    upload_date = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    college = relationship("College")
    uploader = relationship("User")


class ResourceAccess(Base):
    """Durable unlock record. One row per (user, resource, access type)."""

    __tablename__ = "resource_access"
    __table_args__ = (
        UniqueConstraint("user_id", "resource_id", "access_type", name="uq_resource_access_grant"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    resource_id = Column(String(36), ForeignKey("resources.id", ondelete="CASCADE"), nullable=False)
    access_type = Column(Enum(AccessType), nullable=False)
    payment_amount = Column(Numeric(10, 2, asdecimal=False), nullable=True)
    unlocked_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    resource = relationship("Resource")


class PaymentSession(Base):
    """Time-boxed payment intent for unlocking one resource."""

    __tablename__ = "payment_sessions"

    id = Column(String(36), primary_key=True, default=new_id)
    session_id = Column(String(64), nullable=False, unique=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    resource_id = Column(String(36), ForeignKey("resources.id", ondelete="CASCADE"), nullable=False)
    amount = Column(Numeric(10, 2, asdecimal=False), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    status = Column(Enum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)
    # "<user_id>:<resource_id>" while PENDING, NULL once terminal
    pending_key = Column(String(80), nullable=True, unique=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)


class Post(Base):
    """Post on the national panel or on one college's panel."""

    __tablename__ = "posts"

    id = Column(String(36), primary_key=True, default=new_id)
    author_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    panel_type = Column(Enum(PanelType), nullable=False, index=True)
    # Set only for COLLEGE panel posts
    college_id = Column(String(36), ForeignKey("colleges.id", ondelete="CASCADE"), nullable=True, index=True)
    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    likes = Column(Integer, nullable=False, default=0)
    comment_count = Column(Integer, nullable=False, default=0)
    report_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    author = relationship("User")


class Comment(Base):
    __tablename__ = "comments"

    id = Column(String(36), primary_key=True, default=new_id)
    post_id = Column(String(36), ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    parent_comment_id = Column(String(36), ForeignKey("comments.id", ondelete="CASCADE"), nullable=True)
    content = Column(Text, nullable=False)
    likes = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    author = relationship("User")


class Like(Base):
    """One like by one user on a post or comment."""

    __tablename__ = "likes"
    __table_args__ = (UniqueConstraint("target_type", "target_id", "user_id", name="uq_like_target_user"),)

    id = Column(String(36), primary_key=True, default=new_id)
    target_type = Column(Enum(TargetType), nullable=False)
    target_id = Column(String(36), nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class Report(Base):
    __tablename__ = "reports"

    id = Column(String(36), primary_key=True, default=new_id)
    target_type = Column(Enum(TargetType), nullable=False)
    target_id = Column(String(36), nullable=False, index=True)
    reported_by = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    reason = Column(String(500), nullable=False)
    status = Column(Enum(ReportStatus), nullable=False, default=ReportStatus.PENDING)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


def pending_key_for(user_id: str, resource_id: str) -> str:
    return f"{user_id}:{resource_id}"
