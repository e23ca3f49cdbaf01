"""
Domain events: immutable records of committed Job / Application changes.

Events are built from the ORM row right after commit and carry a plain
snapshot of the fields notifications need, so they stay valid after the
request's session is closed.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from . import models
from .models import utcnow


class EventKind(str, enum.Enum):
    JOB_CREATED = "JobCreated"
    JOB_UPDATED = "JobUpdated"
    JOB_DELETED = "JobDeleted"
    APPLICATION_CREATED = "ApplicationCreated"
    APPLICATION_STATUS_CHANGED = "ApplicationStatusChanged"


@dataclass(frozen=True)
class DomainEvent:
    kind: EventKind
    entity_id: int
    job_id: int
    old_status: str | None
    new_status: str | None
    # owner of the application; None for job events
    user_id: int | None = None
    data: dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=utcnow)


def _status(value) -> str | None:
    return value.value if value is not None else None


def _job_data(job: models.Job) -> dict[str, Any]:
    return {
        "title": job.title,
        "company": job.company,
        "location": job.location,
        "salary": job.salary,
        "is_remote": job.is_remote,
        "date_posted": job.date_posted,
        "updated_at": job.updated_at,
    }


def _application_data(application: models.Application) -> dict[str, Any]:
    return {
        "applicant_name": application.applicant_name,
        "job_title": application.job.title if application.job is not None else None,
        "applied_date": application.applied_date,
        "updated_at": application.updated_at,
    }


def job_created(job: models.Job) -> DomainEvent:
    return DomainEvent(
        kind=EventKind.JOB_CREATED,
        entity_id=job.id,
        job_id=job.id,
        old_status=None,
        new_status=_status(job.status),
        data=_job_data(job),
    )


def job_updated(job: models.Job, old_status: models.JobStatus) -> DomainEvent:
    return DomainEvent(
        kind=EventKind.JOB_UPDATED,
        entity_id=job.id,
        job_id=job.id,
        old_status=_status(old_status),
        new_status=_status(job.status),
        data=_job_data(job),
    )


def job_deleted(job_id: int, old_status: models.JobStatus, title: str, company: str) -> DomainEvent:
    return DomainEvent(
        kind=EventKind.JOB_DELETED,
        entity_id=job_id,
        job_id=job_id,
        old_status=_status(old_status),
        new_status=None,
        data={"title": title, "company": company},
    )


def application_created(application: models.Application) -> DomainEvent:
    return DomainEvent(
        kind=EventKind.APPLICATION_CREATED,
        entity_id=application.id,
        job_id=application.job_id,
        user_id=application.user_id,
        old_status=None,
        new_status=_status(application.status),
        data=_application_data(application),
    )


def application_status_changed(
    application: models.Application, old_status: models.ApplicationStatus
) -> DomainEvent:
    return DomainEvent(
        kind=EventKind.APPLICATION_STATUS_CHANGED,
        entity_id=application.id,
        job_id=application.job_id,
        user_id=application.user_id,
        old_status=_status(old_status),
        new_status=_status(application.status),
        data=_application_data(application),
    )
