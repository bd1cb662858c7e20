"""
Translate catalog filters and sort keys into SQL over the course documents.
"""
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from core.errors import ValidationError


@dataclass
class CourseFilters:
    """Optional listing filters; every one that is set is ANDed."""
    category: Optional[str] = None
    level: Optional[str] = None
    is_free: Optional[bool] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    tags: List[str] = field(default_factory=list)
    search: Optional[str] = None

    @staticmethod
    def parse_tags(raw: Optional[str]) -> List[str]:
        """Split a comma separated tag list from a query string."""
        if not raw:
            return []
        return [tag.strip().lower() for tag in raw.split(",") if tag.strip()]


# Canonical sort keys and the SQL expression each one orders by
SORT_FIELDS = {
    "created_at": "created_at",
    "updated_at": "updated_at",
    "published_at": "json_extract(data, '$.published_at')",
    "title": "json_extract(data, '$.title')",
    "price": "json_extract(data, '$.price.amount')",
    "average_rating": "json_extract(data, '$.stats.average_rating')",
    "total_students": "json_extract(data, '$.stats.total_students')",
    "total_duration": "json_extract(data, '$.stats.total_duration')",
}

# Accepted spellings from clients (camelCase and dotted paths included)
SORT_ALIASES = {
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "publishedAt": "published_at",
    "price.amount": "price",
    "rating": "average_rating",
    "stats.averageRating": "average_rating",
    "stats.average_rating": "average_rating",
    "students": "total_students",
    "stats.totalStudents": "total_students",
    "stats.total_students": "total_students",
    "duration": "total_duration",
    "stats.totalDuration": "total_duration",
}


def _like_pattern(text: str) -> str:
    escaped = text.casefold().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def search_clause(text: str) -> Tuple[str, list]:
    """Case-insensitive substring match on title, description or any tag."""
    pattern = _like_pattern(text)
    clause = (
        "(casefold(json_extract(data, '$.title')) LIKE ? ESCAPE '\\'"
        " OR casefold(json_extract(data, '$.description')) LIKE ? ESCAPE '\\'"
        " OR EXISTS (SELECT 1 FROM json_each(courses.data, '$.tags') AS tag"
        " WHERE casefold(tag.value) LIKE ? ESCAPE '\\'))"
    )
    return clause, [pattern, pattern, pattern]


def build_course_filter(filters: CourseFilters, status: Optional[str] = "published") -> Tuple[str, tuple]:
    """Build a WHERE fragment and its parameters."""
    clauses: List[str] = []
    params: list = []

    if status:
        clauses.append("status = ?")
        params.append(status)
    if filters.category:
        clauses.append("json_extract(data, '$.category') = ?")
        params.append(filters.category)
    if filters.level:
        clauses.append("json_extract(data, '$.level') = ?")
        params.append(filters.level)
    if filters.is_free is not None:
        clauses.append("json_extract(data, '$.price.is_free') = ?")
        params.append(1 if filters.is_free else 0)
    if filters.min_price is not None:
        clauses.append("json_extract(data, '$.price.amount') >= ?")
        params.append(filters.min_price)
    if filters.max_price is not None:
        clauses.append("json_extract(data, '$.price.amount') <= ?")
        params.append(filters.max_price)
    if filters.tags:
        placeholders = ", ".join("?" for _ in filters.tags)
        clauses.append(
            "EXISTS (SELECT 1 FROM json_each(courses.data, '$.tags') AS tag"
            f" WHERE casefold(tag.value) IN ({placeholders}))"
        )
        params.extend(tag.casefold() for tag in filters.tags)
    if filters.search:
        clause, search_params = search_clause(filters.search)
        clauses.append(clause)
        params.extend(search_params)

    return (" AND ".join(clauses) or "1 = 1"), tuple(params)


def _sort_expression(sort: str) -> str:
    key = SORT_ALIASES.get(sort, sort)
    if key not in SORT_FIELDS:
        raise ValidationError(f"Unsupported sort field: {sort}")
    return SORT_FIELDS[key]


def build_order_by(
    sort: Optional[str] = "created_at",
    order: Optional[str] = "desc",
    then: Tuple[str, ...] = (),
) -> str:
    """ORDER BY fragment; ``then`` adds tie-breaking keys in the same direction."""
    direction = "ASC" if (order or "desc").lower() == "asc" else "DESC"
    keys = (sort or "created_at",) + tuple(then)
    parts = [f"{_sort_expression(key)} {direction}" for key in keys]
    parts.append(f"id {direction}")
    return ", ".join(parts)
