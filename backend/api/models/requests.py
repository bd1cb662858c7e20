"""
Pydantic request models for API endpoints.
"""
from pydantic import BaseModel, Field, field_validator
from typing import List, Optional, Literal

from core.config import COURSE_CATEGORIES, COURSE_LEVELS
from models.course_models import Resource
from models.enrollment_models import EnrollmentType
from models.user_models import NotificationPreferences, SocialLinks
from models.watch_history_models import DeviceInfo, InteractionType


# ----------------------------------------------------------------------
# Identity
# ----------------------------------------------------------------------

class RegisterRequest(BaseModel):
    """Request model for account registration."""
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: str = Field(..., description="Login email, case-insensitive")
    password: str = Field(..., min_length=6)
    role: Literal["student", "educator"] = "student"


class LoginRequest(BaseModel):
    email: str
    password: str


class ForgotPasswordRequest(BaseModel):
    email: str


class ResetPasswordRequest(BaseModel):
    token: str
    password: str = Field(..., min_length=6)


class UpdatePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=6)


class UpdateProfileRequest(BaseModel):
    """
    Editable profile fields. Unknown keys (email, role, password and so on)
    are accepted and dropped.
    """
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    bio: Optional[str] = Field(default=None, max_length=500)
    website: Optional[str] = None
    social_links: Optional[SocialLinks] = None


class PreferencesRequest(BaseModel):
    notifications: Optional[NotificationPreferences] = None
    language: Optional[str] = None
    timezone: Optional[str] = None


class SwitchRoleRequest(BaseModel):
    role: str


# ----------------------------------------------------------------------
# Catalog
# ----------------------------------------------------------------------

class LectureInput(BaseModel):
    """A lecture inside a submitted content tree."""
    lecture_id: Optional[str] = None
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    video_url: Optional[str] = None
    video_public_id: Optional[str] = None
    duration: int = Field(default=0, ge=0)
    is_preview: bool = False
    order: Optional[int] = None
    resources: List[Resource] = []


class ChapterInput(BaseModel):
    """A chapter inside a submitted content tree."""
    chapter_id: Optional[str] = None
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    order: Optional[int] = None
    lectures: List[LectureInput] = []


class PriceInput(BaseModel):
    amount: Optional[float] = Field(default=None, ge=0)
    currency: Optional[str] = None
    discount_price: Optional[float] = Field(default=None, ge=0)
    is_free: Optional[bool] = None


class CourseUpdateRequest(BaseModel):
    """Fields shared by course creation and update; all optional here."""
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    subtitle: Optional[str] = Field(default=None, max_length=300)
    description: Optional[str] = Field(default=None, min_length=1, max_length=2000)
    category: Optional[str] = None
    level: Optional[str] = None
    language: Optional[str] = None
    price: Optional[PriceInput] = None
    outcomes: Optional[List[str]] = None
    requirements: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    course_content: Optional[List[ChapterInput]] = None
    featured: Optional[bool] = None

    @field_validator("category")
    @classmethod
    def check_category(cls, value):
        if value is not None and value not in COURSE_CATEGORIES:
            raise ValueError(f"category must be one of: {', '.join(COURSE_CATEGORIES)}")
        return value

    @field_validator("level")
    @classmethod
    def check_level(cls, value):
        if value is not None and value not in COURSE_LEVELS:
            raise ValueError(f"level must be one of: {', '.join(COURSE_LEVELS)}")
        return value


class CourseCreateRequest(CourseUpdateRequest):
    """Request model for course creation."""
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=2000)
    category: str
    level: str


class ChapterCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    order: Optional[int] = Field(default=None, ge=0)


class RatingRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    review: Optional[str] = Field(default=None, max_length=1000)


# ----------------------------------------------------------------------
# Learning
# ----------------------------------------------------------------------

class LectureRef(BaseModel):
    """Addresses one lecture of one course."""
    course_id: str
    chapter_id: str
    lecture_id: str


class EnrollRequest(BaseModel):
    course_id: str
    enrollment_type: EnrollmentType = "free"


class WatchProgressRequest(LectureRef):
    timestamp: float = Field(..., ge=0, description="Resume position in seconds")


class CompleteLectureRequest(LectureRef):
    watch_time: int = Field(default=0, ge=0, description="Seconds watched")


class WatchHistoryRequest(LectureRef):
    start_position: Optional[float] = Field(default=None, ge=0)
    end_position: Optional[float] = Field(default=None, ge=0)
    lecture_duration: Optional[float] = Field(default=None, ge=0)
    device_info: Optional[DeviceInfo] = None


class StartSessionRequest(LectureRef):
    start_position: float = Field(default=0, ge=0)
    device_info: Optional[DeviceInfo] = None


class EndSessionRequest(LectureRef):
    end_position: float = Field(..., ge=0)
    lecture_duration: float = Field(..., ge=0)


class InteractionRequest(LectureRef):
    type: InteractionType
    timestamp: Optional[float] = Field(default=None, ge=0)
    value: str = ""


class NoteRequest(LectureRef):
    content: str = Field(..., min_length=1, max_length=2000)
    timestamp: Optional[float] = Field(default=None, ge=0)


class BookmarkRequest(LectureRef):
    title: Optional[str] = Field(default=None, max_length=200)
    timestamp: float = Field(default=0, ge=0)
