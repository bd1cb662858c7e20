"""
Account, authentication and profile API routes.
"""
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile

from api.dependencies import (
    get_current_user,
    get_dashboard_service,
    get_identity_service,
    read_upload,
)
from api.models.requests import (
    ForgotPasswordRequest,
    LoginRequest,
    PreferencesRequest,
    RegisterRequest,
    ResetPasswordRequest,
    SwitchRoleRequest,
    UpdatePasswordRequest,
    UpdateProfileRequest,
)
from api.models.responses import ApiResponse, success
from core.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from models.user_models import User
from services.identity.dashboard_service import DashboardService
from services.identity.identity_service import IdentityService

router = APIRouter()


def _auth_payload(user: User, token: str) -> dict:
    return {"token": token, "user": user.to_public()}


# ----------------------------------------------------------------------
# Authentication
# ----------------------------------------------------------------------

@router.post("/register", status_code=201, response_model=ApiResponse)
def register(request: RegisterRequest, identity: IdentityService = Depends(get_identity_service)):
    user, token = identity.register(
        request.first_name, request.last_name, request.email, request.password, request.role
    )
    return success(_auth_payload(user, token), message="Registration successful")


@router.post("/login", response_model=ApiResponse)
def login(request: LoginRequest, identity: IdentityService = Depends(get_identity_service)):
    user, token = identity.login(request.email, request.password)
    return success(_auth_payload(user, token), message="Login successful")


@router.post("/logout", response_model=ApiResponse)
def logout():
    """Tokens are stateless; the client discards its copy."""
    return success(message="Logged out successfully")


@router.post("/forgot-password", response_model=ApiResponse)
def forgot_password(request: ForgotPasswordRequest, identity: IdentityService = Depends(get_identity_service)):
    reset_token = identity.request_password_reset(request.email)
    return success({"reset_token": reset_token}, message="Password reset token issued")


@router.post("/reset-password", response_model=ApiResponse)
def reset_password(request: ResetPasswordRequest, identity: IdentityService = Depends(get_identity_service)):
    user, token = identity.reset_password(request.token, request.password)
    return success(_auth_payload(user, token), message="Password reset successful")


@router.get("/me", response_model=ApiResponse)
def me(user: User = Depends(get_current_user)):
    return success({"user": user.to_public()})


@router.put("/update-password", response_model=ApiResponse)
def update_password(
    request: UpdatePasswordRequest,
    user: User = Depends(get_current_user),
    identity: IdentityService = Depends(get_identity_service),
):
    token = identity.change_password(user, request.current_password, request.new_password)
    return success({"token": token}, message="Password updated successfully")


@router.post("/switch-role", response_model=ApiResponse)
def switch_role(
    request: SwitchRoleRequest,
    user: User = Depends(get_current_user),
    identity: IdentityService = Depends(get_identity_service),
):
    account, token = identity.switch_role(user, request.role)
    return success(_auth_payload(account, token), message=f"Role switched to {account.role} successfully")


# ----------------------------------------------------------------------
# Profile
# ----------------------------------------------------------------------

@router.get("/profile", response_model=ApiResponse)
def get_profile(
    user: User = Depends(get_current_user),
    identity: IdentityService = Depends(get_identity_service),
):
    return success({"user": identity.get_profile(user)})


@router.put("/profile", response_model=ApiResponse)
def update_profile(
    request: UpdateProfileRequest,
    user: User = Depends(get_current_user),
    identity: IdentityService = Depends(get_identity_service),
):
    updated = identity.update_profile(user, request.model_dump(exclude_none=True))
    return success({"user": updated}, message="Profile updated successfully")


@router.post("/profile-image", response_model=ApiResponse)
def upload_profile_image(
    image: Optional[UploadFile] = File(None),
    user: User = Depends(get_current_user),
    identity: IdentityService = Depends(get_identity_service),
):
    profile_image = identity.upload_profile_image(user, read_upload(image))
    return success({"profile_image": profile_image}, message="Profile image updated successfully")


@router.put("/preferences", response_model=ApiResponse)
def update_preferences(
    request: PreferencesRequest,
    user: User = Depends(get_current_user),
    identity: IdentityService = Depends(get_identity_service),
):
    preferences = identity.update_preferences(user, request.model_dump(exclude_none=True))
    return success({"preferences": preferences}, message="Preferences updated successfully")


# ----------------------------------------------------------------------
# Activity
# ----------------------------------------------------------------------

@router.get("/stats", response_model=ApiResponse)
def user_stats(
    user: User = Depends(get_current_user),
    dashboard: DashboardService = Depends(get_dashboard_service),
):
    return success({"stats": dashboard.get_user_stats(user)})


@router.get("/dashboard", response_model=ApiResponse)
def user_dashboard(
    user: User = Depends(get_current_user),
    dashboard: DashboardService = Depends(get_dashboard_service),
):
    return success({"dashboard": dashboard.get_dashboard(user)})


@router.get("/enrollments", response_model=ApiResponse)
def user_enrollments(
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    user: User = Depends(get_current_user),
    dashboard: DashboardService = Depends(get_dashboard_service),
):
    return success(dashboard.get_user_enrollments(user, status=status, page=page, limit=limit))


@router.get("/watch-history", response_model=ApiResponse)
def user_watch_history(
    course_id: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    user: User = Depends(get_current_user),
    dashboard: DashboardService = Depends(get_dashboard_service),
):
    return success(dashboard.get_user_watch_history(user, course_id=course_id, page=page, limit=limit))
