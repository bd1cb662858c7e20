"""
Course-related API routes.
"""
import json
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from api.dependencies import (
    get_course_service,
    get_current_user,
    get_optional_user,
    read_upload,
    require_educator,
)
from api.models.requests import ChapterCreateRequest, CourseCreateRequest, CourseUpdateRequest, RatingRequest
from api.models.responses import ApiResponse, success
from core.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from core.errors import ValidationError
from models.course_models import Resource
from models.user_models import User
from services.catalog.course_queries import CourseFilters
from services.catalog.course_service import CourseService

router = APIRouter()


def _parse_json_field(raw: Optional[str], message: str) -> Any:
    if raw is None or raw == "":
        return None
    try:
        return json.loads(raw)
    except ValueError:
        raise ValidationError(message)


def _course_form(
    title: Optional[str],
    subtitle: Optional[str],
    description: Optional[str],
    category: Optional[str],
    level: Optional[str],
    language: Optional[str],
    price: Optional[float],
    is_free: Optional[bool],
    tags: Optional[str],
    requirements: List[str],
    outcomes: List[str],
    course_content: Optional[str],
) -> Dict[str, Any]:
    """Collect multipart course fields into a plain dict; unset fields are left out."""
    data: Dict[str, Any] = {
        "title": title,
        "subtitle": subtitle,
        "description": description,
        "category": category,
        "level": level,
        "language": language,
        "course_content": _parse_json_field(course_content, "Invalid course content format"),
    }
    if price is not None or is_free is not None:
        data["price"] = {"amount": price, "is_free": is_free}
    if tags is not None:
        data["tags"] = CourseFilters.parse_tags(tags)
    if requirements:
        data["requirements"] = requirements
    if outcomes:
        data["outcomes"] = outcomes
    return {key: value for key, value in data.items() if value is not None}


# ----------------------------------------------------------------------
# Catalog reads
# ----------------------------------------------------------------------

@router.get("", response_model=ApiResponse)
def list_courses(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    category: Optional[str] = None,
    level: Optional[str] = None,
    is_free: Optional[bool] = Query(None, alias="isFree"),
    min_price: Optional[float] = Query(None, alias="minPrice", ge=0),
    max_price: Optional[float] = Query(None, alias="maxPrice", ge=0),
    tags: Optional[str] = None,
    search: Optional[str] = None,
    sort: str = "created_at",
    order: str = Query("desc", pattern="^(asc|desc)$"),
    courses: CourseService = Depends(get_course_service),
):
    """List published courses with filtering, sorting and pagination."""
    filters = CourseFilters(
        category=category,
        level=level,
        is_free=is_free,
        min_price=min_price,
        max_price=max_price,
        tags=CourseFilters.parse_tags(tags),
        search=search.strip() if search and search.strip() else None,
    )
    return success(courses.list_courses(filters, sort=sort, order=order, page=page, limit=limit))


@router.get("/search", response_model=ApiResponse)
def search_courses(
    q: Optional[str] = None,
    category: Optional[str] = None,
    level: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    courses: CourseService = Depends(get_course_service),
):
    return success(courses.search_courses(q, category=category, level=level, page=page, limit=limit))


@router.get("/featured", response_model=ApiResponse)
def featured_courses(courses: CourseService = Depends(get_course_service)):
    return success({"courses": courses.get_featured_courses()})


@router.get("/educator", response_model=ApiResponse)
def my_courses(
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    educator: User = Depends(require_educator),
    courses: CourseService = Depends(get_course_service),
):
    """The authenticated educator's own courses, drafts included."""
    return success(courses.get_courses_by_educator(
        educator.id, status=status, page=page, limit=limit, include_media=True
    ))


@router.get("/educator/{educator_id}", response_model=ApiResponse)
def educator_courses(
    educator_id: str,
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    courses: CourseService = Depends(get_course_service),
):
    return success(courses.get_courses_by_educator(educator_id, status=status, page=page, limit=limit))


@router.get("/slug/{slug}", response_model=ApiResponse)
def get_course_by_slug(
    slug: str,
    viewer: Optional[User] = Depends(get_optional_user),
    courses: CourseService = Depends(get_course_service),
):
    return success(courses.get_course_by_slug(slug, viewer))


@router.get("/{course_id}", response_model=ApiResponse)
def get_course(
    course_id: str,
    viewer: Optional[User] = Depends(get_optional_user),
    courses: CourseService = Depends(get_course_service),
):
    """Full course; non-preview video URLs only for enrolled students and the owner."""
    return success(courses.get_course_by_id(course_id, viewer))


@router.get("/{course_id}/ratings", response_model=ApiResponse)
def course_ratings(
    course_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    courses: CourseService = Depends(get_course_service),
):
    return success(courses.get_course_ratings(course_id, page=page, limit=limit))


@router.get("/{course_id}/stats", response_model=ApiResponse)
def course_stats(
    course_id: str,
    educator: User = Depends(require_educator),
    courses: CourseService = Depends(get_course_service),
):
    return success(courses.get_course_stats(course_id, educator))


# ----------------------------------------------------------------------
# Authoring
# ----------------------------------------------------------------------

@router.post("", status_code=201, response_model=ApiResponse)
def create_course(
    title: str = Form(...),
    description: str = Form(...),
    category: str = Form(...),
    level: str = Form(...),
    subtitle: Optional[str] = Form(None),
    language: Optional[str] = Form(None),
    price: Optional[float] = Form(None),
    is_free: Optional[bool] = Form(None),
    tags: Optional[str] = Form(None),
    requirements: List[str] = Form([]),
    outcomes: List[str] = Form([]),
    course_content: Optional[str] = Form(None),
    thumbnail: Optional[UploadFile] = File(None),
    educator: User = Depends(require_educator),
    courses: CourseService = Depends(get_course_service),
):
    """Create a draft course from multipart form data; ``course_content`` is a JSON string."""
    form = _course_form(
        title, subtitle, description, category, level, language,
        price, is_free, tags, requirements, outcomes, course_content,
    )
    payload = CourseCreateRequest.model_validate(form).model_dump(exclude_none=True)
    course = courses.create_course(educator, payload, read_upload(thumbnail))
    return success({"course": course}, message="Course created successfully")


@router.put("/{course_id}", response_model=ApiResponse)
def update_course(
    course_id: str,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    level: Optional[str] = Form(None),
    subtitle: Optional[str] = Form(None),
    language: Optional[str] = Form(None),
    price: Optional[float] = Form(None),
    is_free: Optional[bool] = Form(None),
    tags: Optional[str] = Form(None),
    requirements: List[str] = Form([]),
    outcomes: List[str] = Form([]),
    featured: Optional[bool] = Form(None),
    course_content: Optional[str] = Form(None),
    thumbnail: Optional[UploadFile] = File(None),
    educator: User = Depends(require_educator),
    courses: CourseService = Depends(get_course_service),
):
    form = _course_form(
        title, subtitle, description, category, level, language,
        price, is_free, tags, requirements, outcomes, course_content,
    )
    if featured is not None:
        form["featured"] = featured
    payload = CourseUpdateRequest.model_validate(form).model_dump(exclude_none=True)
    course = courses.update_course(course_id, educator, payload, read_upload(thumbnail))
    return success({"course": course}, message="Course updated successfully")


@router.post("/{course_id}/chapters", status_code=201, response_model=ApiResponse)
def add_chapter(
    course_id: str,
    request: ChapterCreateRequest,
    educator: User = Depends(require_educator),
    courses: CourseService = Depends(get_course_service),
):
    chapter = courses.add_chapter(course_id, educator, request.title, request.description, request.order)
    return success({"chapter": chapter}, message="Chapter added successfully")


@router.post(
    "/{course_id}/chapters/{chapter_id}/lectures",
    status_code=201,
    response_model=ApiResponse,
)
def add_lecture(
    course_id: str,
    chapter_id: str,
    title: str = Form(..., min_length=1, max_length=200),
    description: Optional[str] = Form(None),
    duration: int = Form(0, ge=0),
    is_preview: bool = Form(False),
    order: Optional[int] = Form(None, ge=0),
    resources: Optional[str] = Form(None),
    video: Optional[UploadFile] = File(None),
    educator: User = Depends(require_educator),
    courses: CourseService = Depends(get_course_service),
):
    """Add a lecture; ``resources`` is an optional JSON list."""
    raw_resources = _parse_json_field(resources, "Invalid resources format") or []
    if not isinstance(raw_resources, list):
        raise ValidationError("Invalid resources format")
    lecture = courses.add_lecture(
        course_id,
        chapter_id,
        educator,
        title=title,
        description=description,
        duration=duration,
        is_preview=is_preview,
        order=order,
        resources=[Resource.model_validate(r).model_dump() for r in raw_resources],
        video=read_upload(video),
    )
    return success({"lecture": lecture}, message="Lecture added successfully")


@router.post("/{course_id}/publish", response_model=ApiResponse)
def publish_course(
    course_id: str,
    educator: User = Depends(require_educator),
    courses: CourseService = Depends(get_course_service),
):
    course = courses.publish_course(course_id, educator)
    return success({"course": course}, message="Course published successfully")


@router.post("/{course_id}/rating", response_model=ApiResponse)
def rate_course(
    course_id: str,
    request: RatingRequest,
    user: User = Depends(get_current_user),
    courses: CourseService = Depends(get_course_service),
):
    result = courses.add_rating(course_id, user, request.rating, request.review)
    return success(result, message="Rating added successfully")
