"""
Enrollment, progress and watch-history API routes.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from api.dependencies import get_current_user, get_enrollment_service
from api.models.requests import (
    BookmarkRequest,
    CompleteLectureRequest,
    EndSessionRequest,
    EnrollRequest,
    InteractionRequest,
    NoteRequest,
    StartSessionRequest,
    WatchHistoryRequest,
    WatchProgressRequest,
)
from api.models.responses import ApiResponse, success
from core.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from models.user_models import User
from models.watch_history_models import DeviceInfo
from services.learning.enrollment_service import EnrollmentService

router = APIRouter()


def _device_info(http_request: Request, supplied: Optional[DeviceInfo]) -> DeviceInfo:
    """Client-supplied device info, falling back to what the request shows."""
    if supplied is not None:
        return supplied
    return DeviceInfo(
        user_agent=http_request.headers.get("user-agent"),
        ip=http_request.client.host if http_request.client else None,
    )


@router.post("/enroll", status_code=201, response_model=ApiResponse)
def enroll(
    request: EnrollRequest,
    user: User = Depends(get_current_user),
    enrollments: EnrollmentService = Depends(get_enrollment_service),
):
    enrollment = enrollments.enroll(user, request.course_id, request.enrollment_type)
    return success({"enrollment": enrollment}, message="Successfully enrolled in course")


@router.get("/status/{course_id}", response_model=ApiResponse)
def enrollment_status(
    course_id: str,
    user: User = Depends(get_current_user),
    enrollments: EnrollmentService = Depends(get_enrollment_service),
):
    return success(enrollments.get_enrollment_status(user, course_id))


@router.get("/progress/{course_id}", response_model=ApiResponse)
def enrollment_progress(
    course_id: str,
    user: User = Depends(get_current_user),
    enrollments: EnrollmentService = Depends(get_enrollment_service),
):
    return success({"progress": enrollments.get_enrollment_progress(user, course_id)})


@router.post("/progress", response_model=ApiResponse)
def update_progress(
    request: WatchProgressRequest,
    user: User = Depends(get_current_user),
    enrollments: EnrollmentService = Depends(get_enrollment_service),
):
    result = enrollments.update_watch_progress(
        user, request.course_id, request.chapter_id, request.lecture_id, request.timestamp
    )
    return success(result, message="Watch progress updated")


@router.post("/complete-lecture", response_model=ApiResponse)
def complete_lecture(
    request: CompleteLectureRequest,
    user: User = Depends(get_current_user),
    enrollments: EnrollmentService = Depends(get_enrollment_service),
):
    result = enrollments.mark_lecture_complete(
        user, request.course_id, request.chapter_id, request.lecture_id, request.watch_time
    )
    return success(result, message="Lecture marked as complete")


# ----------------------------------------------------------------------
# Watch history
# ----------------------------------------------------------------------

@router.get("/watch-history/{course_id}", response_model=ApiResponse)
def watch_history(
    course_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    user: User = Depends(get_current_user),
    enrollments: EnrollmentService = Depends(get_enrollment_service),
):
    return success(enrollments.get_watch_history(user, course_id, page=page, limit=limit))


@router.post("/watch-history", response_model=ApiResponse)
def record_watch_history(
    request: WatchHistoryRequest,
    http_request: Request,
    user: User = Depends(get_current_user),
    enrollments: EnrollmentService = Depends(get_enrollment_service),
):
    """Start and/or end a session in one call."""
    history = enrollments.record_watch_history(
        user,
        request.course_id,
        request.chapter_id,
        request.lecture_id,
        start_position=request.start_position,
        end_position=request.end_position,
        lecture_duration=request.lecture_duration,
        device_info=_device_info(http_request, request.device_info),
    )
    return success({"watch_history": history}, message="Watch history updated")


@router.post("/watch-history/start", response_model=ApiResponse)
def start_session(
    request: StartSessionRequest,
    http_request: Request,
    user: User = Depends(get_current_user),
    enrollments: EnrollmentService = Depends(get_enrollment_service),
):
    history = enrollments.start_watch_session(
        user,
        request.course_id,
        request.chapter_id,
        request.lecture_id,
        start_position=request.start_position,
        device_info=_device_info(http_request, request.device_info),
    )
    return success({"watch_history": history}, message="Watch session started")


@router.post("/watch-history/end", response_model=ApiResponse)
def end_session(
    request: EndSessionRequest,
    user: User = Depends(get_current_user),
    enrollments: EnrollmentService = Depends(get_enrollment_service),
):
    history = enrollments.end_watch_session(
        user,
        request.course_id,
        request.chapter_id,
        request.lecture_id,
        end_position=request.end_position,
        lecture_duration=request.lecture_duration,
    )
    return success({"watch_history": history}, message="Watch session ended")


@router.post("/watch-history/interactions", response_model=ApiResponse)
def add_interaction(
    request: InteractionRequest,
    user: User = Depends(get_current_user),
    enrollments: EnrollmentService = Depends(get_enrollment_service),
):
    result = enrollments.add_interaction(
        user,
        request.course_id,
        request.chapter_id,
        request.lecture_id,
        request.type,
        timestamp=request.timestamp,
        value=request.value,
    )
    return success(result, message="Interaction recorded")


# ----------------------------------------------------------------------
# Notes and bookmarks
# ----------------------------------------------------------------------

@router.post("/notes", status_code=201, response_model=ApiResponse)
def add_note(
    request: NoteRequest,
    user: User = Depends(get_current_user),
    enrollments: EnrollmentService = Depends(get_enrollment_service),
):
    note = enrollments.add_note(
        user, request.course_id, request.chapter_id, request.lecture_id, request.content, request.timestamp
    )
    return success({"note": note}, message="Note added successfully")


@router.get("/notes", response_model=ApiResponse)
def get_notes(
    course_id: str = Query(...),
    chapter_id: Optional[str] = None,
    lecture_id: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    user: User = Depends(get_current_user),
    enrollments: EnrollmentService = Depends(get_enrollment_service),
):
    return success(enrollments.get_notes(user, course_id, chapter_id, lecture_id, page=page, limit=limit))


@router.delete("/notes/{course_id}/{note_id}", response_model=ApiResponse)
def delete_note(
    course_id: str,
    note_id: str,
    user: User = Depends(get_current_user),
    enrollments: EnrollmentService = Depends(get_enrollment_service),
):
    enrollments.delete_note(user, course_id, note_id)
    return success(message="Note deleted successfully")


@router.post("/bookmarks", status_code=201, response_model=ApiResponse)
def add_bookmark(
    request: BookmarkRequest,
    user: User = Depends(get_current_user),
    enrollments: EnrollmentService = Depends(get_enrollment_service),
):
    result = enrollments.add_bookmark(
        user, request.course_id, request.chapter_id, request.lecture_id, request.title, request.timestamp
    )
    message = "Bookmark added successfully" if result["created"] else "Bookmark already exists"
    return success(result, message=message)


@router.get("/bookmarks/{course_id}", response_model=ApiResponse)
def get_bookmarks(
    course_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    user: User = Depends(get_current_user),
    enrollments: EnrollmentService = Depends(get_enrollment_service),
):
    return success(enrollments.get_bookmarks(user, course_id, page=page, limit=limit))


@router.delete("/bookmarks/{course_id}/{bookmark_id}", response_model=ApiResponse)
def delete_bookmark(
    course_id: str,
    bookmark_id: str,
    user: User = Depends(get_current_user),
    enrollments: EnrollmentService = Depends(get_enrollment_service),
):
    enrollments.delete_bookmark(user, course_id, bookmark_id)
    return success(message="Bookmark deleted successfully")
