"""
Enrollment document: one per (user, course) pair.
Collection name: "enrollments"
"""
from datetime import datetime
from typing import List, Optional, Literal, Tuple

from pydantic import BaseModel, Field

from models.common import Document, new_id, percentage, utcnow

EnrollmentType = Literal["free", "paid", "preview"]
PaymentStatus = Literal["pending", "completed", "failed", "refunded"]
EnrollmentStatus = Literal["active", "completed", "dropped", "suspended"]


class PaymentDetails(BaseModel):
    amount: float = 0
    currency: str = "USD"
    transaction_id: Optional[str] = None
    payment_method: Optional[str] = None
    paid_at: Optional[datetime] = None


class CompletedLecture(BaseModel):
    chapter_id: str
    lecture_id: str
    completed_at: datetime = Field(default_factory=utcnow)
    watch_time: int = Field(0, ge=0, description="Seconds")


class LastWatched(BaseModel):
    chapter_id: str
    lecture_id: str
    timestamp: float = Field(0, description="Resume position in seconds")
    last_accessed_at: datetime = Field(default_factory=utcnow)


class Progress(BaseModel):
    percentage: int = Field(0, ge=0, le=100)
    completed_lectures: List[CompletedLecture] = Field(default_factory=list)
    total_watch_time: int = Field(0, description="Minutes")
    last_watched: Optional[LastWatched] = None


class Note(BaseModel):
    id: str = Field(default_factory=lambda: new_id("note"))
    chapter_id: str
    lecture_id: str
    content: str
    timestamp: Optional[float] = Field(None, description="Video position in seconds")
    created_at: datetime = Field(default_factory=utcnow)


class Bookmark(BaseModel):
    id: str = Field(default_factory=lambda: new_id("bookmark"))
    chapter_id: str
    lecture_id: str
    title: Optional[str] = None
    timestamp: float = 0
    created_at: datetime = Field(default_factory=utcnow)


class Certificate(BaseModel):
    issued: bool = False
    issued_at: Optional[datetime] = None
    certificate_url: Optional[str] = None
    certificate_id: Optional[str] = None


class Enrollment(Document):
    """
    Enrollments collection schema.

    The authoritative record of how far a user is through a course.
    """
    user_id: str
    course_id: str
    enrollment_type: EnrollmentType
    payment_status: PaymentStatus = "completed"
    payment_details: Optional[PaymentDetails] = None
    progress: Progress = Field(default_factory=Progress)
    certificate: Certificate = Field(default_factory=Certificate)
    status: EnrollmentStatus = "active"
    enrolled_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    notes: List[Note] = Field(default_factory=list)
    bookmarks: List[Bookmark] = Field(default_factory=list)

    @classmethod
    def create(cls, user_id: str, course_id: str, enrollment_type: EnrollmentType) -> "Enrollment":
        """Free enrollments are paid immediately with a zero-amount record."""
        if enrollment_type == "free":
            return cls(
                id=new_id("enrollment"),
                user_id=user_id,
                course_id=course_id,
                enrollment_type=enrollment_type,
                payment_status="completed",
                payment_details=PaymentDetails(amount=0, currency="USD", paid_at=utcnow()),
            )
        return cls(
            id=new_id("enrollment"),
            user_id=user_id,
            course_id=course_id,
            enrollment_type=enrollment_type,
            payment_status="pending",
        )

    def has_completed(self, chapter_id: str, lecture_id: str) -> bool:
        return any(
            c.chapter_id == chapter_id and c.lecture_id == lecture_id
            for c in self.progress.completed_lectures
        )

    def update_progress(self, total_lectures: int) -> int:
        """
        Recompute the percentage; the first time it reaches 100 an active
        enrollment becomes completed. That transition is never undone here.
        """
        self.progress.percentage = percentage(len(self.progress.completed_lectures), total_lectures)
        if self.progress.percentage == 100 and self.status == "active":
            self.status = "completed"
            self.completed_at = utcnow()
        return self.progress.percentage

    def mark_lecture_complete(
        self,
        chapter_id: str,
        lecture_id: str,
        watch_time: int,
        total_lectures: int,
    ) -> bool:
        """Record a completion once per lecture. Returns False for a repeat."""
        if self.has_completed(chapter_id, lecture_id):
            return False

        self.progress.completed_lectures.append(
            CompletedLecture(chapter_id=chapter_id, lecture_id=lecture_id, watch_time=watch_time)
        )
        self.progress.total_watch_time += -(-watch_time // 60)
        self.update_progress(total_lectures)
        return True

    def update_last_watched(self, chapter_id: str, lecture_id: str, timestamp: float) -> LastWatched:
        self.progress.last_watched = LastWatched(
            chapter_id=chapter_id,
            lecture_id=lecture_id,
            timestamp=timestamp,
        )
        return self.progress.last_watched

    def add_note(
        self,
        chapter_id: str,
        lecture_id: str,
        content: str,
        timestamp: Optional[float] = None,
    ) -> Note:
        note = Note(chapter_id=chapter_id, lecture_id=lecture_id, content=content, timestamp=timestamp)
        self.notes.append(note)
        return note

    def remove_note(self, note_id: str) -> bool:
        remaining = [n for n in self.notes if n.id != note_id]
        removed = len(remaining) != len(self.notes)
        self.notes = remaining
        return removed

    def add_bookmark(
        self,
        chapter_id: str,
        lecture_id: str,
        title: Optional[str],
        timestamp: float,
    ) -> Tuple[Bookmark, bool]:
        """
        Bookmarks are unique by (chapter, lecture, timestamp).
        Returns the stored bookmark and whether it was newly added.
        """
        for bookmark in self.bookmarks:
            if (
                bookmark.chapter_id == chapter_id
                and bookmark.lecture_id == lecture_id
                and bookmark.timestamp == timestamp
            ):
                return bookmark, False

        bookmark = Bookmark(chapter_id=chapter_id, lecture_id=lecture_id, title=title, timestamp=timestamp)
        self.bookmarks.append(bookmark)
        return bookmark, True

    def remove_bookmark(self, bookmark_id: str) -> bool:
        remaining = [b for b in self.bookmarks if b.id != bookmark_id]
        removed = len(remaining) != len(self.bookmarks)
        self.bookmarks = remaining
        return removed
