from __future__ import annotations
from datetime import datetime, timedelta

from sqlalchemy import func, select, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from . import models, security
from .errors import DuplicateApplication
from .models import ApplicationStatus, JobStatus, UserRole, utcnow

JOB_SORTS = {
    "date": models.Job.date_posted.desc(),
    "title": models.Job.title.asc(),
    "company": models.Job.company.asc(),
    "salary": func.coalesce(models.Job.salary, 0).desc(),
    "status": models.Job.status.asc(),
}

APPLICATION_SORTS = {
    "date": models.Application.applied_date.desc(),
    "status": models.Application.status.asc(),
    "priority": models.Application.priority.desc(),
    "name": models.Application.applicant_name.asc(),
}

# Users
def get_user(db: Session, user_id: int) -> models.User | None:
    return db.get(models.User, user_id)

def get_user_by_email(db: Session, email: str) -> models.User | None:
    return db.query(models.User).filter(models.User.email == email).first()

def create_user(
    db: Session,
    email: str,
    password: str,
    role: UserRole = UserRole.JOB_SEEKER,
    **profile,
) -> models.User:
    hashed_pw = security.hash_password(password)
    user = models.User(email=email, hashed_password=hashed_pw, role=role, **profile)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user

def record_login(db: Session, user: models.User, password: str) -> None:
    user.last_login_at = utcnow()
    if security.needs_rehash(user.hashed_password):
        user.hashed_password = security.hash_password(password)
    db.commit()

def user_application_counts(db: Session, user_id: int) -> dict[ApplicationStatus, int]:
    rows = db.execute(
        select(models.Application.status, func.count())
        .where(models.Application.user_id == user_id)
        .group_by(models.Application.status)
    ).all()
    return {status: count for status, count in rows}

# Generic write path: commit the single entity or nothing
def save(db: Session, obj):
    try:
        db.add(obj)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(obj)
    return obj

def delete(db: Session, obj) -> None:
    try:
        db.delete(obj)
        db.commit()
    except Exception:
        db.rollback()
        raise

# Jobs
def get_job(db: Session, job_id: int) -> models.Job | None:
    return db.get(models.Job, job_id)

def list_jobs(
    db: Session,
    *,
    search: str | None = None,
    status: JobStatus | None = None,
    company: str | None = None,
    posted_after: datetime | None = None,
    posted_before: datetime | None = None,
    sort_by: str = "date",
) -> list[models.Job]:
    q = select(models.Job).options(selectinload(models.Job.applications))
    if search:
        like = f"%{search}%"
        q = q.where(
            or_(
                models.Job.title.ilike(like),
                models.Job.company.ilike(like),
                models.Job.description.ilike(like),
                models.Job.location.ilike(like),
            )
        )
    if status is not None:
        q = q.where(models.Job.status == status)
    if company:
        q = q.where(models.Job.company.ilike(f"%{company}%"))
    if posted_after is not None:
        q = q.where(models.Job.date_posted >= posted_after)
    if posted_before is not None:
        q = q.where(models.Job.date_posted <= posted_before)
    q = q.order_by(JOB_SORTS.get(sort_by, JOB_SORTS["date"]), models.Job.id.desc())
    return list(db.execute(q).scalars())

def list_recent_jobs(db: Session, days: int) -> list[models.Job]:
    return list_jobs(db, posted_after=utcnow() - timedelta(days=days))

def job_statistics(db: Session) -> dict:
    by_status = dict(
        db.execute(select(models.Job.status, func.count()).group_by(models.Job.status)).all()
    )
    top_companies = db.execute(
        select(models.Job.company, func.count().label("n"))
        .group_by(models.Job.company)
        .order_by(func.count().desc(), models.Job.company.asc())
        .limit(5)
    ).all()
    return {
        "total_jobs": db.scalar(select(func.count()).select_from(models.Job)) or 0,
        "jobs_by_status": {s.value: by_status.get(s, 0) for s in JobStatus},
        "remote_jobs": db.scalar(
            select(func.count()).select_from(models.Job).where(models.Job.is_remote.is_(True))
        ) or 0,
        "total_applications": db.scalar(select(func.count()).select_from(models.Application)) or 0,
        "average_salary": db.scalar(select(func.avg(models.Job.salary))),
        "top_companies": {company: n for company, n in top_companies},
    }

# Applications
def get_application(db: Session, application_id: int) -> models.Application | None:
    return db.get(models.Application, application_id)

def get_application_for(db: Session, job_id: int, user_id: int) -> models.Application | None:
    return db.execute(
        select(models.Application).where(
            models.Application.job_id == job_id, models.Application.user_id == user_id
        )
    ).scalar_one_or_none()

def create_application(db: Session, application: models.Application) -> models.Application:
    """Insert a new application; the unique (job_id, user_id) constraint backs up the pre-check."""
    try:
        db.add(application)
        db.commit()
    except IntegrityError:
        db.rollback()
        if get_application_for(db, application.job_id, application.user_id) is not None:
            raise DuplicateApplication("You have already applied for this job.")
        raise
    db.refresh(application)
    return application

def list_applications(
    db: Session,
    *,
    user_id: int | None = None,
    job_id: int | None = None,
    status: ApplicationStatus | None = None,
    applied_after: datetime | None = None,
    sort_by: str = "date",
    limit: int | None = None,
) -> list[models.Application]:
    q = select(models.Application)
    if user_id is not None:
        q = q.where(models.Application.user_id == user_id)
    if job_id is not None:
        q = q.where(models.Application.job_id == job_id)
    if status is not None:
        q = q.where(models.Application.status == status)
    if applied_after is not None:
        q = q.where(models.Application.applied_date >= applied_after)
    q = q.order_by(APPLICATION_SORTS.get(sort_by, APPLICATION_SORTS["date"]), models.Application.id.desc())
    if limit is not None:
        q = q.limit(limit)
    return list(db.execute(q).scalars())

def count_applications(db: Session, *statuses: ApplicationStatus) -> int:
    q = select(func.count()).select_from(models.Application)
    if statuses:
        q = q.where(models.Application.status.in_(statuses))
    return db.scalar(q) or 0

def top_jobs_by_applications(db: Session, limit: int) -> dict[str, int]:
    rows = db.execute(
        select(models.Job.title, models.Job.company, func.count(models.Application.id))
        .join(models.Application, models.Application.job_id == models.Job.id)
        .group_by(models.Job.id, models.Job.title, models.Job.company)
        .order_by(func.count(models.Application.id).desc(), models.Job.id.asc())
        .limit(limit)
    ).all()
    return {f"{title} - {company}": n for title, company, n in rows}
