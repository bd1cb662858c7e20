"""
Course document: content tree, pricing, roster, ratings and derived stats.
Collection name: "courses"
"""
import re
from datetime import datetime
from typing import List, Optional, Literal

from pydantic import BaseModel, Field

from models.common import Document, new_id, round_half_up, utcnow
from core.errors import ValidationError

CourseStatus = Literal["draft", "published", "archived", "review"]


class Resource(BaseModel):
    title: Optional[str] = None
    url: Optional[str] = None
    type: Optional[Literal["pdf", "doc", "link", "image", "code"]] = None


class Lecture(BaseModel):
    """A single playable unit inside a chapter."""
    lecture_id: str = Field(default_factory=lambda: new_id("lecture", sep="-"))
    title: str
    description: Optional[str] = Field(None, max_length=1000)
    video_url: Optional[str] = None
    video_public_id: Optional[str] = None
    duration: int = Field(0, ge=0, description="Length in seconds")
    preview_url: Optional[str] = None
    resources: List[Resource] = Field(default_factory=list)
    is_preview: bool = False
    order: int = 0


class Chapter(BaseModel):
    chapter_id: str = Field(default_factory=lambda: new_id("chapter", sep="-"))
    title: str
    description: Optional[str] = None
    lectures: List[Lecture] = Field(default_factory=list)
    order: int = 0


class Price(BaseModel):
    amount: float = Field(0, ge=0)
    currency: str = "USD"
    discount_price: Optional[float] = Field(None, ge=0)
    is_free: bool = True


class Thumbnail(BaseModel):
    url: str
    public_id: Optional[str] = None


class EnrolledStudent(BaseModel):
    """Roster entry. Progress lives on the Enrollment document only."""
    user_id: str
    enrolled_at: datetime = Field(default_factory=utcnow)


class Rating(BaseModel):
    user_id: str
    rating: int = Field(..., ge=1, le=5)
    review: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


class CourseStats(BaseModel):
    total_students: int = 0
    average_rating: float = 0
    total_reviews: int = 0
    total_duration: int = Field(0, description="Minutes")
    total_lectures: int = 0


def slugify(title: str) -> str:
    """Lowercase, strip non-alphanumerics, spaces to hyphens."""
    slug = title.lower()
    slug = re.sub(r"[^a-z0-9 -]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


class Course(Document):
    """
    Courses collection schema.

    ``stats`` is derived from ``course_content``, ``ratings`` and
    ``enrolled_students``; call ``calculate_stats`` before every save.
    """
    title: str = Field(..., max_length=200)
    subtitle: Optional[str] = Field(None, max_length=300)
    description: str = Field(..., max_length=2000)
    thumbnail: Thumbnail
    category: str
    level: str
    language: str = "English"
    price: Price = Field(default_factory=Price)
    educator_id: str
    course_content: List[Chapter] = Field(default_factory=list)
    outcomes: List[str] = Field(default_factory=list)
    requirements: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    enrolled_students: List[EnrolledStudent] = Field(default_factory=list)
    ratings: List[Rating] = Field(default_factory=list)
    stats: CourseStats = Field(default_factory=CourseStats)
    status: CourseStatus = "draft"
    published_at: Optional[datetime] = None
    featured: bool = False
    slug: Optional[str] = None

    @property
    def total_lectures(self) -> int:
        return sum(len(chapter.lectures) for chapter in self.course_content)

    @property
    def formatted_duration(self) -> str:
        hours, minutes = divmod(self.stats.total_duration, 60)
        return f"{hours}h {minutes}m" if hours > 0 else f"{minutes}m"

    def calculate_stats(self) -> CourseStats:
        total_seconds = sum(
            lecture.duration or 0
            for chapter in self.course_content
            for lecture in chapter.lectures
        )
        self.stats.total_lectures = self.total_lectures
        self.stats.total_duration = -(-total_seconds // 60)  # ceil to minutes

        if self.ratings:
            mean = sum(r.rating for r in self.ratings) / len(self.ratings)
            self.stats.average_rating = round_half_up(mean, 1)
        else:
            self.stats.average_rating = 0
        self.stats.total_reviews = len(self.ratings)
        self.stats.total_students = len(self.enrolled_students)
        return self.stats

    def ensure_slug(self) -> None:
        """Set the slug once, from the title, if it is absent."""
        if not self.slug:
            self.slug = slugify(self.title) or None

    def is_owner(self, user_id: Optional[str]) -> bool:
        return user_id is not None and self.educator_id == user_id

    def has_student(self, user_id: Optional[str]) -> bool:
        return user_id is not None and any(s.user_id == user_id for s in self.enrolled_students)

    def enroll_student(self, user_id: str) -> bool:
        """Add the user to the roster; returns False if already present."""
        if self.has_student(user_id):
            return False
        self.enrolled_students.append(EnrolledStudent(user_id=user_id))
        return True

    def add_rating(self, user_id: str, rating: int, review: Optional[str] = None) -> Rating:
        """At most one rating per user: the previous one is replaced."""
        self.ratings = [r for r in self.ratings if r.user_id != user_id]
        new_rating = Rating(user_id=user_id, rating=rating, review=review)
        self.ratings.append(new_rating)
        self.calculate_stats()
        return new_rating

    def find_chapter(self, chapter_id: str) -> Optional[Chapter]:
        return next((c for c in self.course_content if c.chapter_id == chapter_id), None)

    def find_lecture(self, chapter_id: str, lecture_id: str) -> Optional[Lecture]:
        chapter = self.find_chapter(chapter_id)
        if chapter is None:
            return None
        return next((l for l in chapter.lectures if l.lecture_id == lecture_id), None)

    def publish(self) -> None:
        if not self.course_content:
            raise ValidationError("Course must have at least one chapter to be published")
        if self.total_lectures == 0:
            raise ValidationError("Course must have at least one lecture to be published")
        self.status = "published"
        self.published_at = utcnow()

    def to_public(self, strip_media: bool = False) -> dict:
        """
        JSON projection. With ``strip_media`` the playable URL fields are
        removed from every non-preview lecture.
        """
        data = self.model_dump(mode="json")
        if strip_media:
            for chapter in data["course_content"]:
                for lecture in chapter["lectures"]:
                    if not lecture["is_preview"]:
                        lecture.pop("video_url", None)
                        lecture.pop("video_public_id", None)
        data["formatted_duration"] = self.formatted_duration
        return data

    def to_summary(self) -> dict:
        """Compact projection used when a course is embedded in another response."""
        return {
            "id": self.id,
            "title": self.title,
            "slug": self.slug,
            "thumbnail": self.thumbnail.model_dump(mode="json"),
            "category": self.category,
            "level": self.level,
            "educator_id": self.educator_id,
            "stats": self.stats.model_dump(mode="json"),
        }
