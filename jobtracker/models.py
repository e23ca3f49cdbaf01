# jobtracker/models.py
from __future__ import annotations
import enum
from datetime import datetime, timezone

from sqlalchemy import String, Text, DateTime, Enum, ForeignKey, Numeric, Integer, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes even for timezone=True columns
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _enum_column(enum_cls: type[enum.Enum]) -> Enum:
    return Enum(
        enum_cls,
        native_enum=False,
        length=20,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )


class UserRole(str, enum.Enum):
    JOB_SEEKER = "JobSeeker"
    RECRUITER = "Recruiter"
    ADMIN = "Admin"


class JobStatus(str, enum.Enum):
    OPEN = "Open"
    CLOSED = "Closed"
    ON_HOLD = "OnHold"
    FILLED = "Filled"


class ApplicationStatus(str, enum.Enum):
    SUBMITTED = "Submitted"
    UNDER_REVIEW = "UnderReview"
    INTERVIEW = "Interview"
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"
    WITHDRAWN = "Withdrawn"


STATUS_COLORS = {
    ApplicationStatus.SUBMITTED: "primary",
    ApplicationStatus.UNDER_REVIEW: "warning",
    ApplicationStatus.INTERVIEW: "info",
    ApplicationStatus.ACCEPTED: "success",
    ApplicationStatus.REJECTED: "danger",
    ApplicationStatus.WITHDRAWN: "secondary",
}

PENDING_STATUSES = (ApplicationStatus.SUBMITTED, ApplicationStatus.UNDER_REVIEW)


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    # RFC 5321 cap is 320 chars; unique + indexed for login lookups
    email: Mapped[str] = mapped_column(String(320), unique=True, index=True, nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), default="", nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), default="", nullable=False)
    phone: Mapped[str] = mapped_column(String(20), default="", nullable=False)
    bio: Mapped[str] = mapped_column(String(500), default="", nullable=False)
    linkedin_profile: Mapped[str] = mapped_column(String(200), default="", nullable=False)
    github_profile: Mapped[str] = mapped_column(String(200), default="", nullable=False)
    portfolio_url: Mapped[str] = mapped_column(String(200), default="", nullable=False)
    role: Mapped[UserRole] = mapped_column(
        _enum_column(UserRole), default=UserRole.JOB_SEEKER, index=True, nullable=False
    )
    is_active: Mapped[bool] = mapped_column(default=True, index=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    applications: Mapped[list["Application"]] = relationship(
        back_populates="user", foreign_keys="Application.user_id"
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_reviewer(self) -> bool:
        return self.role in (UserRole.RECRUITER, UserRole.ADMIN)


class Job(Base):
    __tablename__ = "jobs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    company: Mapped[str] = mapped_column(String(200), index=True, nullable=False)
    description: Mapped[str] = mapped_column(String(500), default="", nullable=False)
    requirements: Mapped[str] = mapped_column(String(500), default="", nullable=False)
    location: Mapped[str] = mapped_column(String(100), default="", nullable=False)
    salary: Mapped[float | None] = mapped_column(Numeric(18, 2, asdecimal=False), nullable=True)
    status: Mapped[JobStatus] = mapped_column(
        _enum_column(JobStatus), default=JobStatus.OPEN, index=True, nullable=False
    )
    date_posted: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, index=True, nullable=False
    )
    application_deadline: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    job_type: Mapped[str] = mapped_column(String(100), default="", nullable=False)  # Full-time, Contract...
    experience_level: Mapped[str] = mapped_column(String(100), default="", nullable=False)  # Entry, Mid, Senior
    is_remote: Mapped[bool] = mapped_column(default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    applications: Mapped[list["Application"]] = relationship(
        back_populates="job", cascade="all, delete-orphan"
    )

    @property
    def application_count(self) -> int:
        return len(self.applications)

    @property
    def is_deadline_passed(self) -> bool:
        deadline = as_utc(self.application_deadline)
        return deadline is not None and deadline < utcnow()


class Application(Base):
    __tablename__ = "applications"
    # one application per applicant per job
    __table_args__ = (UniqueConstraint("job_id", "user_id", name="uq_applications_job_user"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    job_id: Mapped[int] = mapped_column(ForeignKey("jobs.id", ondelete="CASCADE"), index=True, nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"), index=True, nullable=False)
    applicant_name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(100), index=True, nullable=False)
    phone: Mapped[str] = mapped_column(String(20), default="", nullable=False)
    cover_letter: Mapped[str] = mapped_column(Text, default="", nullable=False)
    resume_file_name: Mapped[str] = mapped_column(String(200), default="", nullable=False)
    status: Mapped[ApplicationStatus] = mapped_column(
        _enum_column(ApplicationStatus), default=ApplicationStatus.SUBMITTED, index=True, nullable=False
    )
    applied_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, index=True, nullable=False
    )
    reviewed_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    interview_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[str] = mapped_column(String(500), default="", nullable=False)
    reviewed_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    priority: Mapped[int] = mapped_column(Integer, default=1, nullable=False)  # 1-5
    source: Mapped[str] = mapped_column(String(200), default="", nullable=False)  # LinkedIn, Indeed...
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    job: Mapped[Job] = relationship(back_populates="applications")
    user: Mapped[User] = relationship(back_populates="applications", foreign_keys=[user_id])
    reviewer: Mapped[User | None] = relationship(foreign_keys=[reviewed_by_id])

    @property
    def days_since_applied(self) -> int:
        return (utcnow() - as_utc(self.applied_date)).days

    @property
    def is_recent_application(self) -> bool:
        return self.days_since_applied <= 7

    @property
    def status_color(self) -> str:
        return STATUS_COLORS.get(self.status, "light")
