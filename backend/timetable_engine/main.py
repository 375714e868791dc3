import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from timetable_engine.api.routes import (
    assignment_history,
    class_teachers,
    health,
    teacher_assignments,
    teachers,
    timetable,
)
from timetable_engine.core.config import get_settings
from timetable_engine.core.exceptions import AppError
from timetable_engine.core.logging import setup_logging
from timetable_engine.db.bootstrap import ensure_schema

settings = get_settings()
setup_logging(environment=settings.environment, level_name=settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.auto_create_schema:
        ensure_schema()
    yield


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message, **exc.details},
    )


app = FastAPI(title=settings.project_name, lifespan=lifespan)
app.add_exception_handler(AppError, app_error_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, prefix=settings.api_prefix, tags=["health"])
app.include_router(timetable.router, prefix=f"{settings.api_prefix}/timetable", tags=["timetable"])
app.include_router(class_teachers.router, prefix=f"{settings.api_prefix}/class-teachers", tags=["class-teachers"])
app.include_router(
    teacher_assignments.router,
    prefix=f"{settings.api_prefix}/teacher-assignments",
    tags=["teacher-assignments"],
)
app.include_router(teachers.router, prefix=f"{settings.api_prefix}/teachers", tags=["teachers"])
app.include_router(
    assignment_history.router,
    prefix=f"{settings.api_prefix}/assignment-history",
    tags=["assignment-history"],
)
