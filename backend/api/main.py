"""
FastAPI main application.
"""
import logging
import time

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from core.config import API_PREFIX, API_VERSION, CORS_ORIGINS, IS_DEVELOPMENT, LOG_LEVEL
from core.config_validator import config_validator
from core.errors import AppError
from api.models.responses import ErrorResponse
from api.routes import courses, enrollments, users

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="LMS API",
    description="Course catalog, enrollment and progress tracking API",
    version=API_VERSION,
)


@app.on_event("startup")
def validate_configuration():
    """Validate configuration on application startup."""

    logger.info("Validating configuration...")

    validation_result = config_validator.validate_all()

    for warning in validation_result["warnings"]:
        logger.warning(warning)

    # Log errors and fail if invalid
    if not validation_result["valid"]:
        for error in validation_result["errors"]:
            logger.error(error)
        logger.critical("Application startup aborted due to configuration errors.")
        raise SystemExit(1)

    logger.info("Configuration validated successfully")


def _error(status_code: int, message: str, exc: Exception = None) -> JSONResponse:
    body = ErrorResponse(message=message)
    if exc is not None and IS_DEVELOPMENT:
        body.detail = str(exc)
        body.type = type(exc).__name__
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def _validation_message(errors) -> str:
    parts = []
    for error in errors:
        location = ".".join(str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path", "form"))
        parts.append(f"{location}: {error.get('msg')}" if location else error.get("msg", "Invalid value"))
    return "; ".join(parts) or "Invalid request"


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return _error(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return _error(400, _validation_message(exc.errors()))


@app.exception_handler(PydanticValidationError)
async def model_validation_handler(request: Request, exc: PydanticValidationError):
    return _error(400, _validation_message(exc.errors()))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
    return _error(500, "Internal Server Error", exc)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info(f"{request.method} {request.url.path} {response.status_code} {elapsed_ms:.1f}ms")
    return response


# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(courses.router, prefix=f"{API_PREFIX}/courses", tags=["courses"])
app.include_router(enrollments.router, prefix=f"{API_PREFIX}/enrollments", tags=["enrollments"])
app.include_router(users.router, prefix=f"{API_PREFIX}/users", tags=["users"])


@app.get("/")
def root():
    """Root endpoint."""
    return {"message": "LMS API", "version": API_VERSION}


@app.get(f"{API_PREFIX}/health")
def health():
    """Health check endpoint."""
    return {"status": "success", "message": "Server is running"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
