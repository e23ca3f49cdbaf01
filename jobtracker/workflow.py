"""
Workflow engine for jobs and applications.

Every mutation here takes the acting user, validates the change against the
role and ownership rules, commits exactly one entity and returns the domain
events produced by the commit. Events are only produced when the status
actually changed; sending them is left to the caller so that notification
delivery always happens after (and independently of) the commit.

Permission rules live in :func:`permitted_fields` rather than being spread
across the operations.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, NamedTuple

from sqlalchemy.orm import Session

from . import crud, events, models
from .errors import DuplicateApplication, Forbidden, InvalidTransition, NotFound, ValidationFailed
from .events import DomainEvent
from .models import ApplicationStatus, JobStatus, UserRole, as_utc, utcnow

logger = logging.getLogger(__name__)

# Fields the applicant owns on their own application
APPLICANT_FIELDS = frozenset(
    {"applicant_name", "email", "phone", "cover_letter", "resume_file_name", "notes", "priority", "source"}
)
# Fields only recruiters and admins may change
REVIEW_FIELDS = frozenset({"status", "reviewed_by_id", "interview_date"})

JOB_FIELDS = frozenset(
    {
        "title", "company", "description", "requirements", "location", "salary", "status",
        "date_posted", "application_deadline", "job_type", "experience_level", "is_remote",
    }
)

# Fields where an explicit null means "clear it"
NULLABLE_FIELDS = frozenset({"interview_date", "salary", "application_deadline"})

NON_WITHDRAWABLE = frozenset({ApplicationStatus.ACCEPTED, ApplicationStatus.WITHDRAWN})


@dataclass(frozen=True)
class FieldPermission:
    granted: bool
    allowed: frozenset[str]
    denied: frozenset[str]


class WorkflowResult(NamedTuple):
    entity: Any
    events: list[DomainEvent]


def permitted_fields(
    actor_role: UserRole,
    actor_id: int,
    owner_id: int,
    requested_fields,
) -> FieldPermission:
    """Decide which of ``requested_fields`` the actor may change on an application.

    Job seekers may only touch applicant fields, and only on their own
    application; anything else they send is denied (and ignored by callers).
    Recruiters and admins may additionally change the review fields.
    ``granted`` is False when the actor may not edit the application at all.
    """
    requested = frozenset(requested_fields)
    if actor_role in (UserRole.RECRUITER, UserRole.ADMIN):
        editable = APPLICANT_FIELDS | REVIEW_FIELDS
    elif actor_id == owner_id:
        editable = APPLICANT_FIELDS
    else:
        return FieldPermission(granted=False, allowed=frozenset(), denied=requested)
    return FieldPermission(granted=True, allowed=requested & editable, denied=requested - editable)


def _require_reviewer(actor: models.User) -> None:
    if not actor.is_reviewer:
        raise Forbidden("Only recruiters and admins can do that.")


def _require_admin(actor: models.User) -> None:
    if actor.role != UserRole.ADMIN:
        raise Forbidden("Only admins can delete records.")


def _get_job(db: Session, job_id: int) -> models.Job:
    job = crud.get_job(db, job_id)
    if job is None:
        raise NotFound(f"Job {job_id} not found.")
    return job


def _get_application(db: Session, application_id: int) -> models.Application:
    application = crud.get_application(db, application_id)
    if application is None:
        raise NotFound(f"Application {application_id} not found.")
    return application


def _clean(changes: dict[str, Any], fields) -> dict[str, Any]:
    return {
        k: v for k, v in changes.items()
        if k in fields and (v is not None or k in NULLABLE_FIELDS)
    }


def _check_deadline(date_posted: datetime | None, deadline: datetime | None) -> None:
    if date_posted is None or deadline is None:
        return
    if as_utc(deadline) < as_utc(date_posted):
        raise ValidationFailed("Application deadline cannot be before the posting date.")


def _check_priority(priority: int | None) -> None:
    if priority is not None and not 1 <= priority <= 5:
        raise ValidationFailed("Priority must be between 1 and 5.")


# ---------- Jobs ----------

def create_job(db: Session, actor: models.User, data: dict[str, Any]) -> WorkflowResult:
    _require_reviewer(actor)
    values = _clean(data, JOB_FIELDS)
    values.setdefault("date_posted", utcnow())
    _check_deadline(values["date_posted"], values.get("application_deadline"))

    job = crud.save(db, models.Job(**values))
    logger.info("Job %s created by user %s: %s at %s", job.id, actor.id, job.title, job.company)
    return WorkflowResult(job, [events.job_created(job)])


def update_job(db: Session, actor: models.User, job_id: int, changes: dict[str, Any]) -> WorkflowResult:
    _require_reviewer(actor)
    job = _get_job(db, job_id)
    values = _clean(changes, JOB_FIELDS)
    _check_deadline(
        values.get("date_posted", job.date_posted),
        values.get("application_deadline", job.application_deadline),
    )

    old_status = job.status
    for name, value in values.items():
        setattr(job, name, value)
    crud.save(db, job)
    logger.info("Job %s updated by user %s (%s)", job.id, actor.id, ", ".join(sorted(values)) or "no fields")

    if job.status == old_status:
        return WorkflowResult(job, [])
    return WorkflowResult(job, [events.job_updated(job, old_status)])


def update_job_status(db: Session, actor: models.User, job_id: int, status: JobStatus) -> WorkflowResult:
    return update_job(db, actor, job_id, {"status": status})


def delete_job(db: Session, actor: models.User, job_id: int) -> WorkflowResult:
    _require_admin(actor)
    job = _get_job(db, job_id)
    event = events.job_deleted(job.id, job.status, job.title, job.company)
    crud.delete(db, job)
    logger.info("Job %s deleted by user %s", job_id, actor.id)
    return WorkflowResult(None, [event])


# ---------- Applications ----------

def create_application(db: Session, actor: models.User, job_id: int, data: dict[str, Any]) -> WorkflowResult:
    job = _get_job(db, job_id)
    if job.status != JobStatus.OPEN:
        raise ValidationFailed("This job is not accepting applications.")
    if crud.get_application_for(db, job_id, actor.id) is not None:
        logger.info("Duplicate application by user %s for job %s", actor.id, job_id)
        raise DuplicateApplication("You have already applied for this job.")

    values = _clean(data, APPLICANT_FIELDS)
    _check_priority(values.get("priority"))
    values.setdefault("applicant_name", actor.full_name or actor.email)
    values.setdefault("email", actor.email)
    values.setdefault("phone", actor.phone)

    now = utcnow()
    application = models.Application(
        job_id=job.id,
        user_id=actor.id,
        status=ApplicationStatus.SUBMITTED,
        applied_date=now,
        reviewed_date=None,
        **values,
    )
    application = crud.create_application(db, application)
    logger.info("Application %s submitted by user %s for job %s", application.id, actor.id, job.id)
    return WorkflowResult(application, [events.application_created(application)])


def _apply_status(
    application: models.Application,
    new_status: ApplicationStatus,
    actor: models.User,
    reviewer_set: bool,
) -> ApplicationStatus:
    """Move ``application`` to ``new_status`` on behalf of a reviewer; return the old status."""
    old_status = application.status
    if new_status == old_status:
        return old_status
    application.status = new_status
    # reviewed_date is stamped once, on the first move away from Submitted
    if new_status != ApplicationStatus.SUBMITTED and application.reviewed_date is None:
        application.reviewed_date = utcnow()
    if not reviewer_set:
        application.reviewed_by_id = actor.id
    return old_status


def _status_events(application: models.Application, old_status: ApplicationStatus) -> list[DomainEvent]:
    if application.status == old_status:
        return []
    logger.info(
        "Application %s status %s -> %s", application.id, old_status.value, application.status.value
    )
    return [events.application_status_changed(application, old_status)]


def edit_application(
    db: Session, actor: models.User, application_id: int, changes: dict[str, Any]
) -> WorkflowResult:
    application = _get_application(db, application_id)
    requested = _clean(changes, APPLICANT_FIELDS | REVIEW_FIELDS)
    permission = permitted_fields(actor.role, actor.id, application.user_id, requested)
    if not permission.granted:
        raise Forbidden("You don't have permission to edit this application.")
    if permission.denied:
        logger.info(
            "Ignoring fields %s from user %s on application %s",
            sorted(permission.denied), actor.id, application.id,
        )

    values = {k: v for k, v in requested.items() if k in permission.allowed}
    _check_priority(values.get("priority"))
    if values.get("reviewed_by_id") is not None:
        reviewer = crud.get_user(db, values["reviewed_by_id"])
        if reviewer is None or not reviewer.is_reviewer:
            raise ValidationFailed("Reviewer must be an existing recruiter or admin.")

    new_status = values.pop("status", application.status)
    for name, value in values.items():
        setattr(application, name, value)
    old_status = _apply_status(application, new_status, actor, reviewer_set="reviewed_by_id" in values)

    crud.save(db, application)
    return WorkflowResult(application, _status_events(application, old_status))


def update_application_status(
    db: Session,
    actor: models.User,
    application_id: int,
    status: ApplicationStatus,
    notes: str = "",
) -> WorkflowResult:
    _require_reviewer(actor)
    application = _get_application(db, application_id)
    if notes and notes.strip():
        application.notes = notes
    old_status = _apply_status(application, status, actor, reviewer_set=False)
    crud.save(db, application)
    return WorkflowResult(application, _status_events(application, old_status))


def withdraw_application(db: Session, actor: models.User, application_id: int) -> WorkflowResult:
    application = _get_application(db, application_id)
    if application.user_id != actor.id:
        raise Forbidden("You don't have permission to withdraw this application.")
    if application.status in NON_WITHDRAWABLE:
        raise InvalidTransition(
            f"An application that is {application.status.value} cannot be withdrawn."
        )

    old_status = application.status
    application.status = ApplicationStatus.WITHDRAWN
    crud.save(db, application)
    return WorkflowResult(application, _status_events(application, old_status))


def delete_application(db: Session, actor: models.User, application_id: int) -> WorkflowResult:
    _require_admin(actor)
    application = _get_application(db, application_id)
    crud.delete(db, application)
    logger.info("Application %s deleted by user %s", application_id, actor.id)
    return WorkflowResult(None, [])


# ---------- Reads ----------

def get_application(db: Session, actor: models.User, application_id: int) -> models.Application:
    application = _get_application(db, application_id)
    if not actor.is_reviewer and application.user_id != actor.id:
        raise Forbidden("You don't have permission to view this application.")
    return application


def list_applications(
    db: Session,
    actor: models.User,
    *,
    mine: bool = False,
    status: ApplicationStatus | None = None,
    sort_by: str = "date",
) -> list[models.Application]:
    # job seekers only ever see their own applications
    user_id = actor.id if mine or not actor.is_reviewer else None
    return crud.list_applications(db, user_id=user_id, status=status, sort_by=sort_by)
