from __future__ import annotations
from datetime import datetime

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.orm import Session

from .. import crud, models, workflow
from ..auth import get_current_user, require_reviewer
from ..database import get_db
from ..errors import NotFound
from ..models import JobStatus
from ..notifications import NotificationDispatcher
from ..realtime import get_dispatcher, schedule_notifications
from ..schemas import (
    ApplicationOut,
    JobCreate,
    JobOut,
    JobStatisticsOut,
    JobStatusUpdate,
    JobUpdate,
)

router = APIRouter(prefix="/api/jobs", tags=["jobs"])


@router.get("", response_model=list[JobOut])
def list_jobs(
    search: str | None = Query(None, description="Matches title, company, description or location"),
    status_: JobStatus | None = Query(None, alias="status"),
    company: str | None = None,
    posted_after: datetime | None = None,
    posted_before: datetime | None = None,
    sort_by: str = Query("date", pattern="^(date|title|company|salary|status)$"),
    db: Session = Depends(get_db),
    _: models.User = Depends(get_current_user),
):
    return crud.list_jobs(
        db,
        search=search,
        status=status_,
        company=company,
        posted_after=posted_after,
        posted_before=posted_before,
        sort_by=sort_by,
    )


@router.get("/recent", response_model=list[JobOut])
def recent_jobs(
    days: int = Query(7, ge=1, le=365),
    db: Session = Depends(get_db),
    _: models.User = Depends(get_current_user),
):
    return crud.list_recent_jobs(db, days)


@router.get("/statistics", response_model=JobStatisticsOut)
def job_statistics(db: Session = Depends(get_db), _: models.User = Depends(require_reviewer)):
    return crud.job_statistics(db)


@router.get("/{job_id}", response_model=JobOut)
def get_job(job_id: int, db: Session = Depends(get_db), _: models.User = Depends(get_current_user)):
    job = crud.get_job(db, job_id)
    if job is None:
        raise NotFound(f"Job {job_id} not found.")
    return job


@router.get("/{job_id}/applications", response_model=list[ApplicationOut])
def job_applications(job_id: int, db: Session = Depends(get_db), _: models.User = Depends(require_reviewer)):
    if crud.get_job(db, job_id) is None:
        raise NotFound(f"Job {job_id} not found.")
    return crud.list_applications(db, job_id=job_id)


@router.post("", response_model=JobOut, status_code=status.HTTP_201_CREATED)
def create_job(
    payload: JobCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    result = workflow.create_job(db, current_user, payload.model_dump())
    schedule_notifications(background_tasks, dispatcher, result.events)
    return result.entity


@router.put("/{job_id}", response_model=JobOut)
def update_job(
    job_id: int,
    payload: JobUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    result = workflow.update_job(db, current_user, job_id, payload.model_dump(exclude_unset=True))
    schedule_notifications(background_tasks, dispatcher, result.events)
    return result.entity


@router.post("/{job_id}/status", response_model=JobOut)
def update_job_status(
    job_id: int,
    payload: JobStatusUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    result = workflow.update_job_status(db, current_user, job_id, payload.status)
    schedule_notifications(background_tasks, dispatcher, result.events)
    return result.entity


@router.delete("/{job_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_job(
    job_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    result = workflow.delete_job(db, current_user, job_id)
    schedule_notifications(background_tasks, dispatcher, result.events)
    return None
