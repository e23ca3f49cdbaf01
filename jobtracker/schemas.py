from datetime import datetime
from pydantic import BaseModel, EmailStr, Field

from .models import ApplicationStatus, JobStatus, UserRole

# Users
class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)
    first_name: str = Field("", max_length=100)
    last_name: str = Field("", max_length=100)
    phone: str = Field("", max_length=20)
    role: UserRole = UserRole.JOB_SEEKER

class UserOut(BaseModel):
    id: int
    email: EmailStr
    first_name: str
    last_name: str
    full_name: str
    role: UserRole
    is_active: bool
    created_at: datetime
    last_login_at: datetime | None = None

    model_config = {"from_attributes": True}

class UserStatsOut(BaseModel):
    total_applications: int
    pending_applications: int
    accepted_applications: int
    success_rate: float

class RoleUpdate(BaseModel):
    role: UserRole

class ActiveUpdate(BaseModel):
    is_active: bool

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"

# Jobs
class JobBase(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    company: str = Field(min_length=1, max_length=200)
    description: str = Field("", max_length=500)
    requirements: str = Field("", max_length=500)
    location: str = Field("", max_length=100)
    salary: float | None = Field(None, ge=0)
    application_deadline: datetime | None = None
    job_type: str = Field("", max_length=100)
    experience_level: str = Field("", max_length=100)
    is_remote: bool = False

class JobCreate(JobBase):
    status: JobStatus = JobStatus.OPEN
    date_posted: datetime | None = None

class JobUpdate(BaseModel):
    # every field optional: only what the client sends is applied
    title: str | None = Field(None, min_length=1, max_length=200)
    company: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, max_length=500)
    requirements: str | None = Field(None, max_length=500)
    location: str | None = Field(None, max_length=100)
    salary: float | None = Field(None, ge=0)
    status: JobStatus | None = None
    application_deadline: datetime | None = None
    job_type: str | None = Field(None, max_length=100)
    experience_level: str | None = Field(None, max_length=100)
    is_remote: bool | None = None

class JobStatusUpdate(BaseModel):
    status: JobStatus

class JobOut(JobBase):
    id: int
    status: JobStatus
    date_posted: datetime
    application_count: int
    is_deadline_passed: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

class JobStatisticsOut(BaseModel):
    total_jobs: int
    jobs_by_status: dict[str, int]
    remote_jobs: int
    total_applications: int
    average_salary: float | None = None
    top_companies: dict[str, int]

# Applications
class ApplicationCreate(BaseModel):
    job_id: int
    # defaults to the applicant's profile when omitted
    applicant_name: str | None = Field(None, min_length=1, max_length=200)
    email: EmailStr | None = None
    phone: str = Field("", max_length=20)
    cover_letter: str = Field("", max_length=1000)
    resume_file_name: str = Field("", max_length=200)
    notes: str = Field("", max_length=500)
    priority: int = Field(1, ge=1, le=5)
    source: str = Field("", max_length=200)

class ApplicationUpdate(BaseModel):
    applicant_name: str | None = Field(None, min_length=1, max_length=200)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=20)
    cover_letter: str | None = Field(None, max_length=1000)
    resume_file_name: str | None = Field(None, max_length=200)
    notes: str | None = Field(None, max_length=500)
    priority: int | None = Field(None, ge=1, le=5)
    source: str | None = Field(None, max_length=200)
    # reviewer-only; silently dropped for job seekers
    status: ApplicationStatus | None = None
    reviewed_by_id: int | None = None
    interview_date: datetime | None = None

class ApplicationStatusUpdate(BaseModel):
    status: ApplicationStatus
    notes: str = Field("", max_length=500)

class ApplicationOut(BaseModel):
    id: int
    job_id: int
    user_id: int
    applicant_name: str
    email: str
    phone: str
    cover_letter: str
    resume_file_name: str
    status: ApplicationStatus
    status_color: str
    applied_date: datetime
    reviewed_date: datetime | None = None
    interview_date: datetime | None = None
    notes: str
    reviewed_by_id: int | None = None
    priority: int
    source: str
    days_since_applied: int
    is_recent_application: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

class ApplicationDashboardOut(BaseModel):
    total_applications: int
    pending_applications: int
    interview_applications: int
    accepted_applications: int
    rejected_applications: int
    recent_applications: list[ApplicationOut]
    top_jobs: dict[str, int]

# Notifications
class NotificationCreate(BaseModel):
    message: str = Field(min_length=1, max_length=500)
    level: str = Field("info", pattern="^(info|success|warning|error)$")
