from datetime import timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from jobtracker import crud, models, workflow
from jobtracker.errors import DuplicateApplication, Forbidden, InvalidTransition, NotFound, ValidationFailed
from jobtracker.events import EventKind
from jobtracker.models import ApplicationStatus, JobStatus, utcnow


def _apply(db, user, job, **data):
    return workflow.create_application(db, user, job.id, data).entity


# ---------- applications ----------

def test_create_application_starts_submitted_and_unreviewed(db_session, seeker, job):
    result = workflow.create_application(db_session, seeker, job.id, {"cover_letter": "Hi"})
    app = result.entity
    assert app.status == ApplicationStatus.SUBMITTED
    assert app.reviewed_date is None
    assert app.applied_date is not None
    assert app.user_id == seeker.id
    # profile defaults
    assert app.applicant_name == seeker.full_name
    assert app.email == seeker.email

    [event] = result.events
    assert event.kind == EventKind.APPLICATION_CREATED
    assert (event.old_status, event.new_status) == (None, "Submitted")
    assert event.job_id == job.id and event.user_id == seeker.id
    assert event.data["job_title"] == "Backend Engineer"


def test_second_application_for_same_job_is_a_duplicate(db_session, seeker, job):
    _apply(db_session, seeker, job)
    with pytest.raises(DuplicateApplication):
        _apply(db_session, seeker, job)


def _row_for(seeker, job):
    return models.Application(
        job_id=job.id, user_id=seeker.id, applicant_name=seeker.full_name, email=seeker.email
    )


def test_unique_constraint_duplicate_is_reported_as_duplicate(db_session, seeker, job):
    # a racing insert gets past the lookup; the constraint still catches it
    crud.create_application(db_session, _row_for(seeker, job))
    with pytest.raises(DuplicateApplication):
        crud.create_application(db_session, _row_for(seeker, job))

    count = db_session.scalar(select(func.count()).select_from(models.Application))
    assert count == 1


def test_failed_commit_leaves_nothing_behind(db_session, seeker, job):
    crud.create_application(db_session, _row_for(seeker, job))

    job.title = "Renamed"
    with pytest.raises(IntegrityError):
        crud.save(db_session, _row_for(seeker, job))

    assert db_session.get(models.Job, job.id).title == "Backend Engineer"
    count = db_session.scalar(select(func.count()).select_from(models.Application))
    assert count == 1
    # the session is usable again
    assert crud.save(db_session, job).title == "Backend Engineer"


def test_same_user_may_apply_to_different_jobs(db_session, seeker, make_job):
    first, second = make_job(title="A"), make_job(title="B")
    _apply(db_session, seeker, first)
    assert _apply(db_session, seeker, second).job_id == second.id


def test_cannot_apply_to_missing_or_closed_job(db_session, seeker, make_job):
    with pytest.raises(NotFound):
        workflow.create_application(db_session, seeker, 404, {})
    closed = make_job(status=JobStatus.CLOSED)
    with pytest.raises(ValidationFailed):
        _apply(db_session, seeker, closed)


def test_invalid_priority_is_rejected(db_session, seeker, job):
    with pytest.raises(ValidationFailed):
        _apply(db_session, seeker, job, priority=9)


def test_seeker_edits_own_application_and_status_change_is_ignored(db_session, seeker, job):
    app = _apply(db_session, seeker, job)
    result = workflow.edit_application(
        db_session, seeker, app.id, {"notes": "updated", "priority": 3, "status": ApplicationStatus.ACCEPTED}
    )
    assert result.entity.notes == "updated"
    assert result.entity.priority == 3
    assert result.entity.status == ApplicationStatus.SUBMITTED
    assert result.entity.reviewed_date is None
    assert result.events == []


def test_seeker_cannot_edit_someone_elses_application(db_session, seeker, other_seeker, job):
    app = _apply(db_session, seeker, job, notes="original")
    with pytest.raises(Forbidden):
        workflow.edit_application(db_session, other_seeker, app.id, {"notes": "hijacked"})
    db_session.refresh(app)
    assert app.notes == "original"


def test_reviewer_status_change_stamps_review_once(db_session, seeker, recruiter, admin, job):
    app = _apply(db_session, seeker, job)

    result = workflow.edit_application(db_session, recruiter, app.id, {"status": ApplicationStatus.UNDER_REVIEW})
    first_review = result.entity.reviewed_date
    assert first_review is not None
    assert result.entity.reviewed_by_id == recruiter.id
    [event] = result.events
    assert event.kind == EventKind.APPLICATION_STATUS_CHANGED
    assert (event.old_status, event.new_status) == ("Submitted", "UnderReview")

    result = workflow.edit_application(db_session, admin, app.id, {"status": ApplicationStatus.INTERVIEW})
    assert result.entity.reviewed_date == first_review
    assert result.entity.reviewed_by_id == admin.id


def test_reviewed_date_not_set_when_status_stays_submitted(db_session, seeker, recruiter, job):
    app = _apply(db_session, seeker, job)
    result = workflow.edit_application(
        db_session, recruiter, app.id, {"status": ApplicationStatus.SUBMITTED, "notes": "looked at it"}
    )
    assert result.entity.reviewed_date is None
    assert result.entity.notes == "looked at it"
    assert result.events == []


def test_reviewer_may_name_another_reviewer(db_session, seeker, recruiter, admin, job):
    app = _apply(db_session, seeker, job)
    interview = utcnow() + timedelta(days=3)
    result = workflow.edit_application(
        db_session,
        recruiter,
        app.id,
        {"status": ApplicationStatus.INTERVIEW, "reviewed_by_id": admin.id, "interview_date": interview},
    )
    assert result.entity.reviewed_by_id == admin.id
    assert result.entity.interview_date is not None


def test_reviewer_must_be_a_recruiter_or_admin(db_session, seeker, other_seeker, recruiter, job):
    app = _apply(db_session, seeker, job)
    with pytest.raises(ValidationFailed):
        workflow.edit_application(db_session, recruiter, app.id, {"reviewed_by_id": other_seeker.id})


def test_quick_status_update_requires_reviewer_and_keeps_notes(db_session, seeker, recruiter, job):
    app = _apply(db_session, seeker, job, notes="mine")
    with pytest.raises(Forbidden):
        workflow.update_application_status(db_session, seeker, app.id, ApplicationStatus.ACCEPTED)

    result = workflow.update_application_status(db_session, recruiter, app.id, ApplicationStatus.REJECTED)
    assert result.entity.notes == "mine"
    assert result.entity.reviewed_date is not None
    assert len(result.events) == 1

    result = workflow.update_application_status(
        db_session, recruiter, app.id, ApplicationStatus.REJECTED, notes="final"
    )
    assert result.entity.notes == "final"
    assert result.events == []


@pytest.mark.parametrize(
    "start", [ApplicationStatus.SUBMITTED, ApplicationStatus.UNDER_REVIEW, ApplicationStatus.INTERVIEW, ApplicationStatus.REJECTED]
)
def test_withdraw_succeeds_from_open_statuses(db_session, seeker, recruiter, job, start):
    app = _apply(db_session, seeker, job)
    if start != ApplicationStatus.SUBMITTED:
        workflow.update_application_status(db_session, recruiter, app.id, start)

    result = workflow.withdraw_application(db_session, seeker, app.id)
    assert result.entity.status == ApplicationStatus.WITHDRAWN
    [event] = result.events
    assert (event.old_status, event.new_status) == (start.value, "Withdrawn")


@pytest.mark.parametrize("end", [ApplicationStatus.ACCEPTED, ApplicationStatus.WITHDRAWN])
def test_withdraw_fails_from_final_statuses(db_session, seeker, recruiter, job, end):
    app = _apply(db_session, seeker, job)
    workflow.update_application_status(db_session, recruiter, app.id, end)
    with pytest.raises(InvalidTransition):
        workflow.withdraw_application(db_session, seeker, app.id)


def test_only_the_owner_can_withdraw(db_session, seeker, other_seeker, admin, job):
    app = _apply(db_session, seeker, job)
    for actor in (other_seeker, admin):
        with pytest.raises(Forbidden):
            workflow.withdraw_application(db_session, actor, app.id)
    db_session.refresh(app)
    assert app.status == ApplicationStatus.SUBMITTED


def test_visibility_of_applications(db_session, seeker, other_seeker, recruiter, job):
    mine = _apply(db_session, seeker, job)
    _apply(db_session, other_seeker, job)

    assert [a.id for a in workflow.list_applications(db_session, seeker)] == [mine.id]
    assert len(workflow.list_applications(db_session, recruiter)) == 2
    assert workflow.get_application(db_session, recruiter, mine.id).id == mine.id
    with pytest.raises(Forbidden):
        workflow.get_application(db_session, other_seeker, mine.id)


def test_delete_application_is_admin_only(db_session, seeker, recruiter, admin, job):
    app = _apply(db_session, seeker, job)
    for actor in (seeker, recruiter):
        with pytest.raises(Forbidden):
            workflow.delete_application(db_session, actor, app.id)
    workflow.delete_application(db_session, admin, app.id)
    with pytest.raises(NotFound):
        workflow.get_application(db_session, admin, app.id)


# ---------- jobs ----------

def test_create_job_requires_reviewer(db_session, seeker, recruiter):
    with pytest.raises(Forbidden):
        workflow.create_job(db_session, seeker, {"title": "X", "company": "Y"})

    result = workflow.create_job(db_session, recruiter, {"title": "X", "company": "Y", "salary": 100.0})
    assert result.entity.status == JobStatus.OPEN
    [event] = result.events
    assert event.kind == EventKind.JOB_CREATED
    assert event.data["title"] == "X"


def test_deadline_before_posting_date_is_invalid(db_session, recruiter):
    now = utcnow()
    with pytest.raises(ValidationFailed) as exc:
        workflow.create_job(
            db_session,
            recruiter,
            {"title": "X", "company": "Y", "date_posted": now, "application_deadline": now - timedelta(days=1)},
        )
    assert exc.value.status_code == 422


def test_job_status_update_emits_only_on_change(db_session, recruiter, seeker, job):
    with pytest.raises(Forbidden):
        workflow.update_job_status(db_session, seeker, job.id, JobStatus.CLOSED)

    result = workflow.update_job_status(db_session, recruiter, job.id, JobStatus.ON_HOLD)
    [event] = result.events
    assert event.kind == EventKind.JOB_UPDATED
    assert (event.old_status, event.new_status) == ("Open", "OnHold")

    assert workflow.update_job_status(db_session, recruiter, job.id, JobStatus.ON_HOLD).events == []


def test_job_edit_without_status_change_is_silent(db_session, recruiter, job):
    result = workflow.update_job(db_session, recruiter, job.id, {"title": "Staff Engineer"})
    assert result.entity.title == "Staff Engineer"
    assert result.events == []


def test_delete_job_is_admin_only_and_cascades(db_session, seeker, recruiter, admin, job):
    app = _apply(db_session, seeker, job)
    with pytest.raises(Forbidden):
        workflow.delete_job(db_session, recruiter, job.id)

    job_id, app_id = job.id, app.id
    result = workflow.delete_job(db_session, admin, job_id)
    [event] = result.events
    assert event.kind == EventKind.JOB_DELETED
    assert (event.old_status, event.new_status) == ("Open", None)

    with pytest.raises(NotFound):
        workflow.get_application(db_session, admin, app_id)
    with pytest.raises(NotFound):
        workflow.update_job(db_session, admin, job_id, {"title": "gone"})
