"""
FastAPI dependencies: service providers and the authenticated principal.
"""
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core.asset_store import UploadedFile
from core.errors import AppError, ForbiddenError, UnauthorizedError
from models.user_models import User
from services.catalog.course_service import CourseService, course_service
from services.identity.dashboard_service import DashboardService, dashboard_service
from services.identity.identity_service import IdentityService, identity_service
from services.learning.enrollment_service import EnrollmentService, enrollment_service

bearer_scheme = HTTPBearer(auto_error=False)


def get_course_service() -> CourseService:
    return course_service


def get_enrollment_service() -> EnrollmentService:
    return enrollment_service


def get_identity_service() -> IdentityService:
    return identity_service


def get_dashboard_service() -> DashboardService:
    return dashboard_service


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    identity: IdentityService = Depends(get_identity_service),
) -> User:
    """The principal for routes that require a bearer token."""
    if credentials is None:
        raise UnauthorizedError("Access token required")
    return identity.authenticate(credentials.credentials)


def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    identity: IdentityService = Depends(get_identity_service),
) -> Optional[User]:
    """The principal if a valid token was sent; anonymous otherwise."""
    if credentials is None:
        return None
    try:
        return identity.authenticate(credentials.credentials)
    except AppError:
        return None


def require_educator(user: User = Depends(get_current_user)) -> User:
    if user.role != "educator":
        raise ForbiddenError("Educator access required")
    return user


def read_upload(upload) -> Optional[UploadedFile]:
    """Read a FastAPI UploadFile fully; an empty part counts as no file."""
    if upload is None or not upload.filename:
        return None
    content = upload.file.read()
    if not content:
        return None
    return UploadedFile(filename=upload.filename, content=content, content_type=upload.content_type)
