"""
Enrollment service: enroll, progress, notes, bookmarks and watch sessions.

The Enrollment document is the only place progress is stored. Writes that
touch more than one document run inside a single transaction.
"""
import logging
from typing import Any, Dict, Optional

from core.config import DEFAULT_PAGE_SIZE
from core.database import Database, db
from core.errors import ConflictError, NotFoundError, ValidationError
from core.transaction import TransactionManager
from models.common import percentage
from models.enrollment_models import Enrollment, EnrollmentType
from models.user_models import User
from models.watch_history_models import DeviceInfo, InteractionType, WatchHistory
from services.common.documents import (
    find_enrollment,
    find_watch_history,
    load_course,
    load_enrollment,
    load_user,
    save_course,
    save_enrollment,
    save_user,
    save_watch_history,
)
from services.common.pagination import normalize_page, paginate_list, pagination_meta

logger = logging.getLogger(__name__)


class EnrollmentService:
    """State transitions on Enrollment and WatchHistory documents."""

    def __init__(self, database: Optional[Database] = None):
        self.db = database or db
        self.transactions = TransactionManager(self.db)

    # ------------------------------------------------------------------
    # Enrollment
    # ------------------------------------------------------------------

    def enroll(self, user: User, course_id: str, enrollment_type: EnrollmentType = "free") -> Dict[str, Any]:
        """
        Enroll ``user`` in a published course.

        Writes the Enrollment, the course roster and the user's course list
        together; a second enrollment for the same pair is a ConflictError.
        """
        with self.transactions.transaction() as tx:
            course = load_course(self.db, course_id, conn=tx.conn)
            if course.status != "published":
                raise ValidationError("Course is not available for enrollment")
            if find_enrollment(self.db, user.id, course_id, conn=tx.conn) is not None:
                raise ConflictError("Already enrolled in this course")

            enrollment = Enrollment.create(user.id, course_id, enrollment_type)
            save_enrollment(self.db, enrollment, conn=tx.conn)

            course.enroll_student(user.id)
            save_course(self.db, course, conn=tx.conn)

            student = load_user(self.db, user.id, conn=tx.conn)
            student.enroll_in_course(course_id)
            save_user(self.db, student, conn=tx.conn)

        logger.info(f"User {user.id} enrolled in course {course_id} ({enrollment_type})")
        data = enrollment.model_dump(mode="json")
        data["course"] = course.to_summary()
        return data

    def get_enrollment_status(self, user: User, course_id: str) -> Dict[str, Any]:
        enrollment = load_enrollment(self.db, user.id, course_id)
        data = enrollment.model_dump(mode="json")
        try:
            data["course"] = load_course(self.db, course_id).to_summary()
        except NotFoundError:
            data["course"] = None
        return {"is_enrolled": True, "enrollment": data}

    def get_enrollment_progress(self, user: User, course_id: str) -> Dict[str, Any]:
        """Overall progress plus a per-chapter breakdown."""
        enrollment = load_enrollment(self.db, user.id, course_id)
        course = load_course(self.db, course_id)
        completed = enrollment.progress.completed_lectures

        chapters = []
        for chapter in course.course_content:
            done = sum(1 for c in completed if c.chapter_id == chapter.chapter_id)
            chapters.append({
                "chapter_id": chapter.chapter_id,
                "title": chapter.title,
                "total_lectures": len(chapter.lectures),
                "completed_lectures": done,
                "percentage": percentage(done, len(chapter.lectures)),
            })

        last_watched = enrollment.progress.last_watched
        return {
            "overall": {
                "percentage": enrollment.progress.percentage,
                "completed_lectures": len(completed),
                "total_lectures": course.total_lectures,
                "total_watch_time": enrollment.progress.total_watch_time,
                "status": enrollment.status,
            },
            "chapters": chapters,
            "last_watched": last_watched.model_dump(mode="json") if last_watched else None,
        }

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------

    def update_watch_progress(
        self,
        user: User,
        course_id: str,
        chapter_id: str,
        lecture_id: str,
        timestamp: float,
    ) -> Dict[str, Any]:
        """
        Record the resume point. The enrollment's last-watched entry and the
        lecture's watch position are written in the same transaction.
        """
        with self.transactions.transaction() as tx:
            enrollment = load_enrollment(self.db, user.id, course_id, conn=tx.conn)
            last_watched = enrollment.update_last_watched(chapter_id, lecture_id, timestamp)
            save_enrollment(self.db, enrollment, conn=tx.conn)

            history = find_watch_history(self.db, user.id, course_id, chapter_id, lecture_id, conn=tx.conn)
            if history is None:
                history = WatchHistory.create(user.id, course_id, chapter_id, lecture_id)
            history.update_position(timestamp)
            save_watch_history(self.db, history, conn=tx.conn)

        return {
            "last_watched": last_watched.model_dump(mode="json"),
            "watch_position": history.last_watch_position,
        }

    def mark_lecture_complete(
        self,
        user: User,
        course_id: str,
        chapter_id: str,
        lecture_id: str,
        watch_time: int = 0,
    ) -> Dict[str, Any]:
        """Idempotent per lecture: a repeat call changes nothing."""
        with self.transactions.transaction() as tx:
            enrollment = load_enrollment(self.db, user.id, course_id, conn=tx.conn)
            course = load_course(self.db, course_id, conn=tx.conn)
            if course.find_lecture(chapter_id, lecture_id) is None:
                raise NotFoundError("Lecture not found in this course")

            previous_status = enrollment.status
            recorded = enrollment.mark_lecture_complete(
                chapter_id, lecture_id, max(0, int(watch_time or 0)), course.total_lectures
            )
            if recorded:
                save_enrollment(self.db, enrollment, conn=tx.conn)

                history = find_watch_history(self.db, user.id, course_id, chapter_id, lecture_id, conn=tx.conn)
                if history is not None and not history.is_completed:
                    history.mark_completed()
                    save_watch_history(self.db, history, conn=tx.conn)

        if recorded:
            logger.info(f"User {user.id} completed lecture {lecture_id} of course {course_id}")
        if previous_status != enrollment.status:
            logger.info(f"Enrollment {enrollment.id} is now {enrollment.status}")

        return {
            "progress": enrollment.progress.percentage,
            "completed_lectures": len(enrollment.progress.completed_lectures),
            "status": enrollment.status,
            "newly_completed": recorded,
        }

    # ------------------------------------------------------------------
    # Notes and bookmarks
    # ------------------------------------------------------------------

    def add_note(
        self,
        user: User,
        course_id: str,
        chapter_id: str,
        lecture_id: str,
        content: str,
        timestamp: Optional[float] = None,
    ) -> Dict[str, Any]:
        if not content or not content.strip():
            raise ValidationError("Note content is required")

        with self.transactions.transaction() as tx:
            enrollment = load_enrollment(self.db, user.id, course_id, conn=tx.conn)
            note = enrollment.add_note(chapter_id, lecture_id, content.strip(), timestamp)
            save_enrollment(self.db, enrollment, conn=tx.conn)
        return note.model_dump(mode="json")

    def get_notes(
        self,
        user: User,
        course_id: str,
        chapter_id: Optional[str] = None,
        lecture_id: Optional[str] = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> Dict[str, Any]:
        """Newest first, optionally narrowed to one chapter and/or lecture."""
        enrollment = load_enrollment(self.db, user.id, course_id)
        # Notes are stored in insertion order; ties on created_at stay newest first
        notes = [
            n for n in reversed(enrollment.notes)
            if (chapter_id is None or n.chapter_id == chapter_id)
            and (lecture_id is None or n.lecture_id == lecture_id)
        ]
        notes.sort(key=lambda n: n.created_at, reverse=True)
        window, pagination = paginate_list(notes, page, limit)
        return {"notes": [n.model_dump(mode="json") for n in window], "pagination": pagination}

    def delete_note(self, user: User, course_id: str, note_id: str) -> None:
        with self.transactions.transaction() as tx:
            enrollment = load_enrollment(self.db, user.id, course_id, conn=tx.conn)
            if not enrollment.remove_note(note_id):
                raise NotFoundError("Note not found")
            save_enrollment(self.db, enrollment, conn=tx.conn)

    def add_bookmark(
        self,
        user: User,
        course_id: str,
        chapter_id: str,
        lecture_id: str,
        title: Optional[str] = None,
        timestamp: float = 0,
    ) -> Dict[str, Any]:
        """A bookmark at an existing (chapter, lecture, timestamp) is returned as is."""
        with self.transactions.transaction() as tx:
            enrollment = load_enrollment(self.db, user.id, course_id, conn=tx.conn)
            bookmark, created = enrollment.add_bookmark(chapter_id, lecture_id, title, timestamp)
            if created:
                save_enrollment(self.db, enrollment, conn=tx.conn)
        return {"bookmark": bookmark.model_dump(mode="json"), "created": created}

    def get_bookmarks(
        self,
        user: User,
        course_id: str,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> Dict[str, Any]:
        enrollment = load_enrollment(self.db, user.id, course_id)
        bookmarks = sorted(reversed(enrollment.bookmarks), key=lambda b: b.created_at, reverse=True)
        window, pagination = paginate_list(bookmarks, page, limit)
        return {"bookmarks": [b.model_dump(mode="json") for b in window], "pagination": pagination}

    def delete_bookmark(self, user: User, course_id: str, bookmark_id: str) -> None:
        with self.transactions.transaction() as tx:
            enrollment = load_enrollment(self.db, user.id, course_id, conn=tx.conn)
            if not enrollment.remove_bookmark(bookmark_id):
                raise NotFoundError("Bookmark not found")
            save_enrollment(self.db, enrollment, conn=tx.conn)

    # ------------------------------------------------------------------
    # Watch sessions
    # ------------------------------------------------------------------

    def _history_for_update(self, user: User, course_id: str, chapter_id: str, lecture_id: str, conn) -> WatchHistory:
        load_enrollment(self.db, user.id, course_id, conn=conn)
        history = find_watch_history(self.db, user.id, course_id, chapter_id, lecture_id, conn=conn)
        if history is None:
            history = WatchHistory.create(user.id, course_id, chapter_id, lecture_id)
        return history

    def start_watch_session(
        self,
        user: User,
        course_id: str,
        chapter_id: str,
        lecture_id: str,
        start_position: float = 0,
        device_info: Optional[DeviceInfo] = None,
    ) -> Dict[str, Any]:
        """Open a playback session; one left open earlier is closed as abandoned."""
        with self.transactions.transaction() as tx:
            history = self._history_for_update(user, course_id, chapter_id, lecture_id, tx.conn)
            history.start_session(start_position, device_info)
            save_watch_history(self.db, history, conn=tx.conn)
        return history.model_dump(mode="json")

    def end_watch_session(
        self,
        user: User,
        course_id: str,
        chapter_id: str,
        lecture_id: str,
        end_position: float,
        lecture_duration: float,
    ) -> Dict[str, Any]:
        """Close the open session. Without one this changes nothing."""
        with self.transactions.transaction() as tx:
            load_enrollment(self.db, user.id, course_id, conn=tx.conn)
            history = find_watch_history(self.db, user.id, course_id, chapter_id, lecture_id, conn=tx.conn)
            if history is None:
                raise NotFoundError("No watch history for this lecture")

            was_completed = history.is_completed
            session = history.end_session(end_position, lecture_duration)
            if session is not None:
                save_watch_history(self.db, history, conn=tx.conn)

        if session is not None and history.is_completed and not was_completed:
            logger.info(f"User {user.id} watched lecture {lecture_id} past the completion threshold")
        return history.model_dump(mode="json")

    def record_watch_history(
        self,
        user: User,
        course_id: str,
        chapter_id: str,
        lecture_id: str,
        start_position: Optional[float] = None,
        end_position: Optional[float] = None,
        lecture_duration: Optional[float] = None,
        device_info: Optional[DeviceInfo] = None,
    ) -> Dict[str, Any]:
        """Start and/or end a session in one call."""
        with self.transactions.transaction() as tx:
            history = self._history_for_update(user, course_id, chapter_id, lecture_id, tx.conn)
            if start_position is not None:
                history.start_session(start_position, device_info)
            if end_position is not None and lecture_duration:
                history.end_session(end_position, lecture_duration)
            save_watch_history(self.db, history, conn=tx.conn)
        return history.model_dump(mode="json")

    def add_interaction(
        self,
        user: User,
        course_id: str,
        chapter_id: str,
        lecture_id: str,
        type: InteractionType,
        timestamp: Optional[float] = None,
        value: str = "",
    ) -> Dict[str, Any]:
        with self.transactions.transaction() as tx:
            history = self._history_for_update(user, course_id, chapter_id, lecture_id, tx.conn)
            interaction = history.add_interaction(type, timestamp, value)
            save_watch_history(self.db, history, conn=tx.conn)
        return {
            "interaction": interaction.model_dump(mode="json"),
            "total_interactions": len(history.interactions),
        }

    def get_watch_history(
        self,
        user: User,
        course_id: str,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> Dict[str, Any]:
        page, limit, skip = normalize_page(page, limit)
        where, params = "user_id = ? AND course_id = ?", (user.id, course_id)
        documents = self.db.find_documents(
            "watch_history",
            where,
            params,
            order_by="json_extract(data, '$.last_watched_at') DESC, id DESC",
            limit=limit,
            offset=skip,
        )
        total = self.db.count_documents("watch_history", where, params)
        return {
            "watch_history": documents,
            "pagination": pagination_meta(page, limit, total, len(documents)),
        }


# Global enrollment service instance
enrollment_service = EnrollmentService()
