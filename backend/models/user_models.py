"""
User document: account, role, enrolled and authored course references.
Collection name: "users"
"""
from datetime import datetime
from typing import List, Optional, Literal, Dict, Any

from pydantic import BaseModel, Field

from models.common import Document, new_id, utcnow

Role = Literal["student", "educator", "admin"]

# Never part of a response body
SENSITIVE_FIELDS = {"password_hash", "reset_password_token", "reset_password_expires"}


class ProfileImage(BaseModel):
    url: Optional[str] = None
    public_id: Optional[str] = None


class SocialLinks(BaseModel):
    twitter: Optional[str] = None
    linkedin: Optional[str] = None
    github: Optional[str] = None


class NotificationPreferences(BaseModel):
    email: bool = True
    push: bool = True
    marketing: bool = False


class Preferences(BaseModel):
    notifications: NotificationPreferences = Field(default_factory=NotificationPreferences)
    language: str = "en"
    timezone: Optional[str] = None


class EnrolledCourse(BaseModel):
    """Back-reference to an Enrollment; progress is looked up, never copied here."""
    course_id: str
    enrolled_at: datetime = Field(default_factory=utcnow)


class User(Document):
    """Users collection schema."""
    email: str
    password_hash: str
    first_name: str = Field(..., max_length=50)
    last_name: str = Field(..., max_length=50)
    role: Role = "student"
    is_verified: bool = False
    reset_password_token: Optional[str] = None
    reset_password_expires: Optional[datetime] = None
    profile_image: ProfileImage = Field(default_factory=ProfileImage)
    bio: Optional[str] = Field(None, max_length=500)
    website: Optional[str] = None
    social_links: SocialLinks = Field(default_factory=SocialLinks)
    preferences: Preferences = Field(default_factory=Preferences)
    enrolled_courses: List[EnrolledCourse] = Field(default_factory=list)
    created_courses: List[str] = Field(default_factory=list)
    is_active: bool = True
    last_login: Optional[datetime] = None

    @classmethod
    def create(cls, first_name: str, last_name: str, email: str, password_hash: str, role: Role = "student") -> "User":
        return cls(
            id=new_id("user"),
            first_name=first_name,
            last_name=last_name,
            email=email.strip().lower(),
            password_hash=password_hash,
            role=role,
        )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def is_educator(self) -> bool:
        return self.role == "educator"

    def enroll_in_course(self, course_id: str) -> bool:
        if any(e.course_id == course_id for e in self.enrolled_courses):
            return False
        self.enrolled_courses.append(EnrolledCourse(course_id=course_id))
        return True

    def add_created_course(self, course_id: str) -> None:
        if course_id not in self.created_courses:
            self.created_courses.append(course_id)

    def to_public(self) -> Dict[str, Any]:
        data = self.model_dump(mode="json", exclude=SENSITIVE_FIELDS)
        data["full_name"] = self.full_name
        return data
