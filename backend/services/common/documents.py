"""
Loading and saving typed documents through the document store.
"""
import sqlite3
from typing import Optional, Type, TypeVar

from core.database import Database
from core.errors import ConflictError, NotFoundError
from models.common import Document
from models.course_models import Course
from models.enrollment_models import Enrollment
from models.user_models import User
from models.watch_history_models import WatchHistory

T = TypeVar("T", bound=Document)


def load_document(
    database: Database,
    table: str,
    model: Type[T],
    doc_id: str,
    not_found: str,
    conn: Optional[sqlite3.Connection] = None,
) -> T:
    data = database.get_document(table, doc_id, conn=conn)
    if data is None:
        raise NotFoundError(not_found)
    return model.model_validate(data)


def save_document(
    database: Database,
    table: str,
    document: Document,
    conn: Optional[sqlite3.Connection] = None,
    conflict: str = "Duplicate record",
) -> None:
    """Persist a document; unique-index rejections surface as ConflictError."""
    document.touch()
    try:
        database.save_document(table, document.id, document.to_document(), conn=conn)
    except sqlite3.IntegrityError:
        raise ConflictError(conflict)


def load_course(database: Database, course_id: str, conn=None) -> Course:
    return load_document(database, "courses", Course, course_id, "Course not found", conn=conn)


def save_course(database: Database, course: Course, conn=None) -> None:
    """Every course write recomputes stats first, so they are never stale."""
    course.calculate_stats()
    save_document(database, "courses", course, conn=conn, conflict="A course with this slug already exists")


def load_user(database: Database, user_id: str, conn=None) -> User:
    return load_document(database, "users", User, user_id, "User not found", conn=conn)


def save_user(database: Database, user: User, conn=None) -> None:
    save_document(database, "users", user, conn=conn, conflict="User with this email already exists")


def find_enrollment(database: Database, user_id: str, course_id: str, conn=None) -> Optional[Enrollment]:
    data = database.find_one("enrollments", "user_id = ? AND course_id = ?", (user_id, course_id), conn=conn)
    return Enrollment.model_validate(data) if data else None


def load_enrollment(database: Database, user_id: str, course_id: str, conn=None) -> Enrollment:
    enrollment = find_enrollment(database, user_id, course_id, conn=conn)
    if enrollment is None:
        raise NotFoundError("Not enrolled in this course")
    return enrollment


def save_enrollment(database: Database, enrollment: Enrollment, conn=None) -> None:
    save_document(database, "enrollments", enrollment, conn=conn, conflict="Already enrolled in this course")


def find_watch_history(
    database: Database,
    user_id: str,
    course_id: str,
    chapter_id: str,
    lecture_id: str,
    conn=None,
) -> Optional[WatchHistory]:
    data = database.find_one(
        "watch_history",
        "user_id = ? AND course_id = ? AND chapter_id = ? AND lecture_id = ?",
        (user_id, course_id, chapter_id, lecture_id),
        conn=conn,
    )
    return WatchHistory.model_validate(data) if data else None


def save_watch_history(database: Database, history: WatchHistory, conn=None) -> None:
    save_document(database, "watch_history", history, conn=conn, conflict="Watch history already exists")
