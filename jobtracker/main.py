# jobtracker/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy import text
from sqlalchemy.orm import Session

from . import crud, models
from .auth import authenticate_user, get_current_user, require_admin
from .config import settings
from .database import Base, engine, get_db
from .errors import Forbidden, NotFound, register_exception_handlers
from .logging_config import configure_logging
from .models import ApplicationStatus, PENDING_STATUSES, UserRole
from .notifications import NotificationDispatcher
from .presence import PresenceRegistry
from .realtime import WebSocketHub
from .routers import applications, jobs, realtime
from .schemas import ActiveUpdate, RoleUpdate, Token, UserCreate, UserOut, UserStatsOut
from .token import create_access_token

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create tables if they don't exist (alembic handles real migrations)
    Base.metadata.create_all(bind=engine)

    registry = PresenceRegistry()
    hub = WebSocketHub(registry, send_timeout=settings.NOTIFY_SEND_TIMEOUT_SECONDS)
    app.state.registry = registry
    app.state.hub = hub
    app.state.dispatcher = NotificationDispatcher(hub)
    logger.info("Job tracker started")

    yield

    await hub.close_all()
    logger.info("Job tracker stopped")


app = FastAPI(title="Job Tracker", lifespan=lifespan)
register_exception_handlers(app)
app.include_router(jobs.router)
app.include_router(applications.router)
app.include_router(realtime.router)


@app.get("/health", tags=["monitoring"])
def health_check(db: Session = Depends(get_db)):
    """
    Checks if the application is healthy, including the database connection.
    """
    try:
        db.execute(text("SELECT 1"))
        return {"status": "ok", "database": "ok"}
    except Exception:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Database connection error"
        )

@app.post("/api/register", response_model=UserOut, status_code=status.HTTP_201_CREATED, tags=["auth"])
def register_api(payload: UserCreate, db: Session = Depends(get_db)):
    if payload.role == UserRole.ADMIN:
        raise Forbidden("Admin accounts cannot be self-registered.")
    if crud.get_user_by_email(db, payload.email):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")
    user = crud.create_user(
        db,
        payload.email,
        payload.password,
        role=payload.role,
        first_name=payload.first_name,
        last_name=payload.last_name,
        phone=payload.phone,
    )
    return user

@app.post("/api/login", response_model=Token, tags=["auth"])
def login_api(form: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    user = authenticate_user(db, form.username, form.password)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    crud.record_login(db, user, form.password)
    token = create_access_token(subject=user.email)
    return {"access_token": token, "token_type": "bearer"}

@app.get("/api/me", response_model=UserOut, tags=["auth"])
def me(current_user: models.User = Depends(get_current_user)):
    return current_user

@app.get("/api/me/stats", response_model=UserStatsOut, tags=["auth"])
def my_stats(db: Session = Depends(get_db), current_user: models.User = Depends(get_current_user)):
    counts = crud.user_application_counts(db, current_user.id)
    total = sum(counts.values())
    accepted = counts.get(ApplicationStatus.ACCEPTED, 0)
    return UserStatsOut(
        total_applications=total,
        pending_applications=sum(counts.get(s, 0) for s in PENDING_STATUSES),
        accepted_applications=accepted,
        success_rate=(accepted / total * 100) if total else 0.0,
    )

@app.patch("/api/users/{user_id}/role", response_model=UserOut, tags=["users"])
def set_user_role(
    user_id: int,
    payload: RoleUpdate,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    user = crud.get_user(db, user_id)
    if user is None:
        raise NotFound(f"User {user_id} not found.")
    user.role = payload.role
    logger.info("User %s role set to %s by admin %s", user.id, payload.role.value, admin.id)
    return crud.save(db, user)

@app.patch("/api/users/{user_id}/active", response_model=UserOut, tags=["users"])
def set_user_active(
    user_id: int,
    payload: ActiveUpdate,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    user = crud.get_user(db, user_id)
    if user is None:
        raise NotFound(f"User {user_id} not found.")
    if user.id == admin.id and not payload.is_active:
        raise Forbidden("Admins cannot deactivate themselves.")
    user.is_active = payload.is_active
    logger.info("User %s active=%s set by admin %s", user.id, payload.is_active, admin.id)
    return crud.save(db, user)
