"""
Aggregations over watch history, pushed down to SQLite.
"""
from typing import Any, Dict

from core.database import Database
from models.common import round_half_up


def course_watch_stats(database: Database, course_id: str) -> Dict[str, Any]:
    """Viewer and watch-time totals for one course."""
    row = database.execute_one(
        """
        SELECT
            COUNT(DISTINCT user_id) AS total_viewers,
            COALESCE(SUM(json_extract(data, '$.total_watch_time')), 0) AS total_seconds,
            COALESCE(AVG(json_extract(data, '$.total_watch_time')), 0) AS average_seconds,
            COALESCE(AVG(CASE WHEN json_extract(data, '$.is_completed') THEN 100.0 ELSE 0 END), 0)
                AS completion_rate
        FROM watch_history
        WHERE course_id = ?
        """,
        (course_id,),
    )
    return {
        "total_viewers": row["total_viewers"],
        "total_watch_time_hours": round_half_up(row["total_seconds"] / 3600, 2),
        "average_watch_time_minutes": round_half_up(row["average_seconds"] / 60, 2),
        "completion_rate": round_half_up(row["completion_rate"], 2),
    }


def user_watch_stats(database: Database, user_id: str) -> Dict[str, Any]:
    """Learning totals for one user across every lecture they opened."""
    row = database.execute_one(
        """
        SELECT
            COALESCE(SUM(json_extract(data, '$.total_watch_time')), 0) AS total_seconds,
            COUNT(*) AS total_lectures,
            COALESCE(SUM(CASE WHEN json_extract(data, '$.is_completed') THEN 1 ELSE 0 END), 0)
                AS completed_lectures,
            COUNT(DISTINCT course_id) AS unique_courses
        FROM watch_history
        WHERE user_id = ?
        """,
        (user_id,),
    )
    total_lectures = row["total_lectures"]
    completed = row["completed_lectures"]
    return {
        "total_watch_time_hours": round_half_up(row["total_seconds"] / 3600, 2),
        "total_lectures": total_lectures,
        "completed_lectures": completed,
        "completion_rate": round_half_up(100 * completed / total_lectures, 2) if total_lectures else 0,
        "unique_courses": row["unique_courses"],
    }
