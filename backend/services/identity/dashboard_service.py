"""
Read-only views over a user's learning and teaching activity.
"""
from typing import Any, Dict, List, Optional

from core.config import DEFAULT_PAGE_SIZE
from core.database import Database, db
from models.common import round_half_up, utcnow
from models.course_models import Course
from models.enrollment_models import Enrollment
from models.user_models import User
from services.catalog.course_queries import build_order_by
from services.common.pagination import normalize_page, pagination_meta
from services.learning.watch_stats import user_watch_stats

RECENT_ENROLLMENTS_LIMIT = 5
CONTINUE_WATCHING_LIMIT = 5
RECOMMENDED_COURSES_LIMIT = 6


class DashboardService:
    """Statistics, enrollment listings and the learner dashboard."""

    def __init__(self, database: Optional[Database] = None):
        self.db = database or db

    def _courses_by_id(self, course_ids: List[str]) -> Dict[str, Course]:
        if not course_ids:
            return {}
        placeholders = ", ".join("?" for _ in course_ids)
        documents = self.db.find_documents("courses", f"id IN ({placeholders})", tuple(course_ids))
        return {d["id"]: Course.model_validate(d) for d in documents}

    def _with_courses(self, enrollments: List[Enrollment]) -> List[Dict[str, Any]]:
        courses = self._courses_by_id([e.course_id for e in enrollments])
        result = []
        for enrollment in enrollments:
            data = enrollment.model_dump(mode="json", exclude={"notes", "bookmarks"})
            course = courses.get(enrollment.course_id)
            data["course"] = course.to_summary() if course else None
            result.append(data)
        return result

    def _enrollments(
        self,
        user_id: str,
        where: str = "",
        params: tuple = (),
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Enrollment]:
        """A user's enrollments, newest first; ``where`` extends the user filter."""
        documents = self.db.find_documents(
            "enrollments",
            "user_id = ?" + where,
            (user_id,) + params,
            order_by="json_extract(data, '$.enrolled_at') DESC, id DESC",
            limit=limit,
            offset=offset,
        )
        return [Enrollment.model_validate(d) for d in documents]

    def get_user_stats(self, user: User) -> Dict[str, Any]:
        enrollments = self._enrollments(user.id)
        completed = sum(1 for e in enrollments if e.status == "completed")
        watch = user_watch_stats(self.db, user.id)

        stats: Dict[str, Any] = {
            "learning": {
                "total_enrollments": len(enrollments),
                "completed_courses": completed,
                "completion_rate": round_half_up(100 * completed / len(enrollments), 2) if enrollments else 0,
                "total_watch_time_hours": watch["total_watch_time_hours"],
                "completed_lectures": watch["completed_lectures"],
            },
            "teaching": None,
        }

        if user.is_educator:
            courses = [Course.model_validate(d) for d in self.db.find_documents("courses", "educator_id = ?", (user.id,))]
            stats["teaching"] = {
                "total_courses": len(courses),
                "published_courses": sum(1 for c in courses if c.status == "published"),
                "total_students": sum(c.stats.total_students for c in courses),
                "average_rating": (
                    round_half_up(sum(c.stats.average_rating for c in courses) / len(courses), 1)
                    if courses else 0
                ),
            }
        return stats

    def get_user_enrollments(
        self,
        user: User,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> Dict[str, Any]:
        page, limit, skip = normalize_page(page, limit)
        where, params = ("", ())
        if status:
            where, params = " AND status = ?", (status,)

        enrollments = self._enrollments(user.id, where, params, limit=limit, offset=skip)
        total = self.db.count_documents("enrollments", "user_id = ?" + where, (user.id,) + params)
        return {
            "enrollments": self._with_courses(enrollments),
            "pagination": pagination_meta(page, limit, total, len(enrollments)),
        }

    def get_user_watch_history(
        self,
        user: User,
        course_id: Optional[str] = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> Dict[str, Any]:
        page, limit, skip = normalize_page(page, limit)
        where, params = "user_id = ?", (user.id,)
        if course_id:
            where, params = where + " AND course_id = ?", params + (course_id,)

        documents = self.db.find_documents(
            "watch_history",
            where,
            params,
            order_by="json_extract(data, '$.last_watched_at') DESC, id DESC",
            limit=limit,
            offset=skip,
        )
        total = self.db.count_documents("watch_history", where, params)
        courses = self._courses_by_id(sorted({d["course_id"] for d in documents}))
        for document in documents:
            course = courses.get(document["course_id"])
            document["course"] = None
            if course:
                document["course"] = {
                    "id": course.id,
                    "title": course.title,
                    "thumbnail": course.thumbnail.model_dump(mode="json"),
                }
        return {
            "watch_history": documents,
            "pagination": pagination_meta(page, limit, total, len(documents)),
        }

    def get_dashboard(self, user: User) -> Dict[str, Any]:
        enrollments = self._enrollments(user.id)
        recent = enrollments[:RECENT_ENROLLMENTS_LIMIT]

        in_progress = [
            e for e in enrollments
            if e.status == "active" and 0 < e.progress.percentage < 100
        ]
        in_progress.sort(
            key=lambda e: e.progress.last_watched.last_accessed_at if e.progress.last_watched else e.enrolled_at,
            reverse=True,
        )

        enrolled_ids = [e.course_id for e in enrollments]
        enrolled_courses = self._courses_by_id(enrolled_ids)
        categories = sorted({c.category for c in enrolled_courses.values()})
        recommended: List[Dict[str, Any]] = []
        if categories:
            where = f"status = 'published' AND json_extract(data, '$.category') IN ({', '.join('?' for _ in categories)})"
            params = tuple(categories)
            if enrolled_ids:
                where += f" AND id NOT IN ({', '.join('?' for _ in enrolled_ids)})"
                params += tuple(enrolled_ids)
            documents = self.db.find_documents(
                "courses",
                where,
                params,
                order_by=build_order_by("average_rating", "desc"),
                limit=RECOMMENDED_COURSES_LIMIT,
            )
            recommended = [Course.model_validate(d).to_public(strip_media=True) for d in documents]

        completed = sum(1 for e in enrollments if e.status == "completed")
        achievements = []
        if completed > 0:
            achievements.append({
                "type": "course_completion",
                "title": "Course Completed",
                "description": f"Completed {completed} course{'s' if completed > 1 else ''}",
                "earned_at": utcnow().isoformat(),
            })

        return {
            "user": {
                "first_name": user.first_name,
                "last_name": user.last_name,
                "profile_image": user.profile_image.model_dump(mode="json"),
                "role": user.role,
            },
            "recent_enrollments": self._with_courses(recent),
            "continue_watching": self._with_courses(in_progress[:CONTINUE_WATCHING_LIMIT]),
            "recommended_courses": recommended,
            "achievements": achievements,
            "stats": {
                "total_enrollments": len(enrollments),
                "completed_courses": completed,
                "total_watch_time": sum(e.progress.total_watch_time for e in enrollments),
            },
        }


# Global dashboard service instance
dashboard_service = DashboardService()
