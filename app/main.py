import logging
from datetime import timedelta

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.clock import SystemClock
from app.core.config import settings
from app.core.db import SessionLocal
from app.core.errors import WorkoutAppError
from app.core.logging import configure_logging
from app.routers.auth import router as auth_router
from app.routers.exercises import router as exercises_router
from app.routers.workouts import router as workouts_router
from app.services.lifecycle import SessionLifecycleManager
from app.services.notifications import LoggingNotificationSink
from app.services.store import SessionStore
from app.services.templates import ExerciseTemplateProvider

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


app = FastAPI(title="Workout Session API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# One manager for the whole process; routers get it through app.state.
app.state.lifecycle = SessionLifecycleManager(
    SessionStore(SessionLocal),
    clock=SystemClock(),
    notifier=LoggingNotificationSink(),
    orphan_grace=timedelta(seconds=settings.ORPHAN_GRACE_SECONDS),
)
app.state.templates = ExerciseTemplateProvider(SessionLocal)


@app.exception_handler(WorkoutAppError)
async def workout_error_handler(request: Request, exc: WorkoutAppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": type(exc).__name__},
    )


app.include_router(auth_router)
app.include_router(exercises_router)
app.include_router(workouts_router)


@app.get("/health")
def health():
    return {"ok": True}
