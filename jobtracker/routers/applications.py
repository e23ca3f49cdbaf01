from __future__ import annotations
from datetime import timedelta

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.orm import Session

from .. import crud, models, workflow
from ..auth import get_current_user, require_reviewer
from ..config import settings
from ..database import get_db
from ..models import ApplicationStatus, PENDING_STATUSES, utcnow
from ..notifications import NotificationDispatcher
from ..realtime import get_dispatcher, schedule_notifications
from ..schemas import (
    ApplicationCreate,
    ApplicationDashboardOut,
    ApplicationOut,
    ApplicationStatusUpdate,
    ApplicationUpdate,
)

router = APIRouter(prefix="/api/applications", tags=["applications"])


@router.get("", response_model=list[ApplicationOut])
def list_applications(
    status_: ApplicationStatus | None = Query(None, alias="status"),
    mine: bool = False,
    sort_by: str = Query("date", pattern="^(date|status|priority|name)$"),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return workflow.list_applications(db, current_user, mine=mine, status=status_, sort_by=sort_by)


@router.get("/dashboard", response_model=ApplicationDashboardOut)
def dashboard(db: Session = Depends(get_db), _: models.User = Depends(require_reviewer)):
    since = utcnow() - timedelta(days=settings.RECENT_APPLICATION_DAYS)
    return {
        "total_applications": crud.count_applications(db),
        "pending_applications": crud.count_applications(db, *PENDING_STATUSES),
        "interview_applications": crud.count_applications(db, ApplicationStatus.INTERVIEW),
        "accepted_applications": crud.count_applications(db, ApplicationStatus.ACCEPTED),
        "rejected_applications": crud.count_applications(db, ApplicationStatus.REJECTED),
        "recent_applications": crud.list_applications(
            db, applied_after=since, limit=settings.DASHBOARD_RECENT_LIMIT
        ),
        "top_jobs": crud.top_jobs_by_applications(db, settings.DASHBOARD_TOP_JOBS),
    }


@router.get("/{application_id}", response_model=ApplicationOut)
def get_application(
    application_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return workflow.get_application(db, current_user, application_id)


@router.post("", response_model=ApplicationOut, status_code=status.HTTP_201_CREATED)
def create_application(
    payload: ApplicationCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    result = workflow.create_application(db, current_user, payload.job_id, payload.model_dump())
    schedule_notifications(background_tasks, dispatcher, result.events)
    return result.entity


@router.put("/{application_id}", response_model=ApplicationOut)
def update_application(
    application_id: int,
    payload: ApplicationUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    result = workflow.edit_application(
        db, current_user, application_id, payload.model_dump(exclude_unset=True)
    )
    schedule_notifications(background_tasks, dispatcher, result.events)
    return result.entity


@router.post("/{application_id}/status", response_model=ApplicationOut)
def update_application_status(
    application_id: int,
    payload: ApplicationStatusUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    result = workflow.update_application_status(
        db, current_user, application_id, payload.status, payload.notes
    )
    schedule_notifications(background_tasks, dispatcher, result.events)
    return result.entity


@router.post("/{application_id}/withdraw", response_model=ApplicationOut)
def withdraw_application(
    application_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    result = workflow.withdraw_application(db, current_user, application_id)
    schedule_notifications(background_tasks, dispatcher, result.events)
    return result.entity


@router.delete("/{application_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_application(
    application_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    workflow.delete_application(db, current_user, application_id)
    return None
