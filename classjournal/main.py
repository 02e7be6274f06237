import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from classjournal.api.v1.academic_years.router import router as academic_years_router
from classjournal.api.v1.assignments.router import router as assignments_router
from classjournal.api.v1.auth.router import router as auth_router
from classjournal.api.v1.classes.router import router as classes_router
from classjournal.api.v1.grades.router import router as grades_router
from classjournal.api.v1.groups.router import router as groups_router
from classjournal.api.v1.journals.router import router as journals_router
from classjournal.api.v1.lessons.router import router as lessons_router
from classjournal.api.v1.logs.router import router as logs_router
from classjournal.api.v1.marks.router import router as marks_router
from classjournal.api.v1.students.router import router as students_router
from classjournal.api.v1.subjects.router import router as subjects_router
from classjournal.api.v1.users.router import router as users_router
from classjournal.core.config import settings
from classjournal.core.exceptions import ServiceError

logger = logging.getLogger(__name__)


def _field_name(loc) -> str:
    # ("body", "email") -> "email"; ("query", "from") -> "from"
    parts = [str(p) for p in loc if p not in ("body", "query", "path", "header")]
    return ".".join(parts) or "body"


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = {}
    for err in exc.errors():
        errors.setdefault(_field_name(err.get("loc", ())), err.get("msg", "invalid value"))
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": errors})


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("%s %s failed", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "internal server error"},
    )


def create_app() -> FastAPI:
    app = FastAPI(title="Class Journal")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.web.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )

    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # Routers
    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(classes_router)
    app.include_router(subjects_router)
    app.include_router(grades_router)
    app.include_router(academic_years_router)
    app.include_router(journals_router)
    app.include_router(lessons_router)
    app.include_router(assignments_router)
    app.include_router(marks_router)
    app.include_router(students_router)
    app.include_router(groups_router)
    app.include_router(logs_router)

    return app


app = create_app()
