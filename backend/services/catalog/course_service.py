"""
Course catalog service: listing, authoring and ratings.
"""
import logging
import uuid
from typing import Any, Dict, List, Optional

from core.asset_store import AssetStoreClient, StoredAsset, UploadedFile, asset_store
from core.config import (
    DEFAULT_PAGE_SIZE,
    DEFAULT_THUMBNAIL_URL,
    FEATURED_COURSES_LIMIT,
    LECTURE_VIDEO_FOLDER,
    THUMBNAIL_FOLDER,
    THUMBNAIL_TRANSFORMATION,
)
from core.database import Database, db
from core.errors import ForbiddenError, NotFoundError, UpstreamError, ValidationError
from core.transaction import Transaction, TransactionManager
from models.common import new_id
from models.course_models import Chapter, Course, Lecture, Thumbnail
from models.user_models import User
from services.catalog.course_queries import (
    CourseFilters,
    build_course_filter,
    build_order_by,
)
from services.common.documents import (
    find_enrollment,
    load_course,
    load_user,
    save_course,
    save_user,
)
from services.common.pagination import normalize_page, paginate_list, pagination_meta
from services.learning.watch_stats import course_watch_stats

logger = logging.getLogger(__name__)

# Course fields an owner may change through update_course
UPDATABLE_FIELDS = {
    "title",
    "subtitle",
    "description",
    "category",
    "level",
    "language",
    "price",
    "outcomes",
    "requirements",
    "tags",
    "featured",
}


def _clean_list(values: Optional[List[str]]) -> List[str]:
    return [value.strip() for value in (values or []) if value and value.strip()]


def _clean_tags(values: Optional[List[str]]) -> List[str]:
    tags: List[str] = []
    for value in _clean_list(values):
        tag = value.lower()
        if tag not in tags:
            tags.append(tag)
    return tags


class CourseService:
    """Catalog reads and educator-side course authoring."""

    def __init__(self, database: Optional[Database] = None, assets: Optional[AssetStoreClient] = None):
        self.db = database or db
        self.assets = assets or asset_store
        self.transactions = TransactionManager(self.db)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _require_owner(course: Course, user: User, action: str = "modify") -> None:
        if not course.is_owner(user.id):
            raise ForbiddenError(f"Not authorized to {action} this course")

    def _discard_asset(self, public_id: Optional[str], resource_type: str = "image") -> None:
        """Best-effort delete; a failure is logged and never surfaced."""
        if not public_id:
            return
        try:
            self.assets.delete(public_id, resource_type=resource_type)
        except UpstreamError as e:
            logger.warning(f"Failed to delete asset {public_id}: {e}")

    def _upload_thumbnail(self, upload: UploadedFile) -> StoredAsset:
        return self.assets.upload(
            upload.content,
            upload.filename,
            THUMBNAIL_FOLDER,
            resource_type="image",
            transformation=THUMBNAIL_TRANSFORMATION,
        )

    def _build_content(self, chapters: Optional[List[Dict[str, Any]]], existing: Optional[Course] = None) -> List[Chapter]:
        """
        Build the content tree with server-side identifiers.

        A caller-supplied chapter or lecture id is kept only when it already
        exists in ``existing`` and has not been used earlier in this tree.
        """
        known_chapters = {c.chapter_id: c for c in existing.course_content} if existing else {}
        used = set()
        content: List[Chapter] = []

        for index, raw_chapter in enumerate(chapters or []):
            raw_chapter = dict(raw_chapter)
            chapter_id = raw_chapter.pop("chapter_id", None)
            if chapter_id not in known_chapters or chapter_id in used:
                chapter_id = new_id("chapter", sep="-")
            used.add(chapter_id)

            known_lectures = set()
            if chapter_id in known_chapters:
                known_lectures = {l.lecture_id for l in known_chapters[chapter_id].lectures}

            lectures = []
            for lecture_index, raw_lecture in enumerate(raw_chapter.pop("lectures", None) or []):
                raw_lecture = dict(raw_lecture)
                lecture_id = raw_lecture.pop("lecture_id", None)
                if lecture_id not in known_lectures or lecture_id in used:
                    lecture_id = new_id("lecture", sep="-")
                used.add(lecture_id)
                if raw_lecture.get("order") is None:
                    raw_lecture["order"] = lecture_index
                lectures.append(Lecture(lecture_id=lecture_id, **raw_lecture))

            if raw_chapter.get("order") is None:
                raw_chapter["order"] = index
            content.append(Chapter(chapter_id=chapter_id, lectures=lectures, **raw_chapter))
        return content

    @staticmethod
    def _build_price(raw: Optional[Dict[str, Any]], current: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        price = dict(current or {})
        price.update({key: value for key, value in (raw or {}).items() if value is not None})
        price["amount"] = float(price.get("amount") or 0)
        if (raw or {}).get("is_free") is None:
            price["is_free"] = price["amount"] == 0
        return price

    def _assign_slug(self, course: Course, tx: Transaction) -> None:
        course.ensure_slug()
        if course.slug and self.db.find_one("courses", "slug = ? AND id != ?", (course.slug, course.id), conn=tx.conn):
            course.slug = f"{course.slug}-{uuid.uuid4().hex[:6]}"

    def _educator_summary(self, educator_id: str) -> Optional[Dict[str, Any]]:
        data = self.db.get_document("users", educator_id)
        if data is None:
            return None
        educator = User.model_validate(data)
        return {
            "id": educator.id,
            "first_name": educator.first_name,
            "last_name": educator.last_name,
            "profile_image": educator.profile_image.model_dump(mode="json"),
            "bio": educator.bio,
        }

    def _list(self, where: str, params: tuple, order_by: str, page: int, limit: int, strip_media: bool = True) -> Dict[str, Any]:
        page, limit, skip = normalize_page(page, limit)
        documents = self.db.find_documents("courses", where, params, order_by=order_by, limit=limit, offset=skip)
        total = self.db.count_documents("courses", where, params)
        courses = [Course.model_validate(d).to_public(strip_media=strip_media) for d in documents]
        return {
            "courses": courses,
            "pagination": pagination_meta(page, limit, total, len(courses)),
        }

    # ------------------------------------------------------------------
    # Catalog reads
    # ------------------------------------------------------------------

    def list_courses(
        self,
        filters: Optional[CourseFilters] = None,
        sort: str = "created_at",
        order: str = "desc",
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> Dict[str, Any]:
        """Published courses matching every filter that is set."""
        where, params = build_course_filter(filters or CourseFilters())
        return self._list(where, params, build_order_by(sort, order), page, limit)

    def search_courses(
        self,
        query: Optional[str],
        category: Optional[str] = None,
        level: Optional[str] = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> Dict[str, Any]:
        if not query or not query.strip():
            raise ValidationError("Search query is required")

        filters = CourseFilters(category=category, level=level, search=query.strip())
        where, params = build_course_filter(filters)
        order_by = build_order_by("average_rating", "desc", then=("total_students",))
        result = self._list(where, params, order_by, page, limit)
        result["query"] = query.strip()
        return result

    def get_featured_courses(self) -> List[Dict[str, Any]]:
        documents = self.db.find_documents(
            "courses",
            "status = 'published' AND json_extract(data, '$.featured') = 1",
            order_by=build_order_by("average_rating", "desc"),
            limit=FEATURED_COURSES_LIMIT,
        )
        return [Course.model_validate(d).to_public(strip_media=True) for d in documents]

    def get_courses_by_educator(
        self,
        educator_id: str,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        include_media: bool = False,
    ) -> Dict[str, Any]:
        """Newest first; the owner's own listing keeps the lecture media."""
        where = "educator_id = ?"
        params: tuple = (educator_id,)
        if status:
            where += " AND status = ?"
            params += (status,)
        return self._list(where, params, build_order_by("created_at", "desc"), page, limit, strip_media=not include_media)

    def _view(self, course: Course, viewer: Optional[User]) -> Dict[str, Any]:
        viewer_id = viewer.id if viewer else None
        is_owner = course.is_owner(viewer_id)
        is_enrolled = viewer_id is not None and find_enrollment(self.db, viewer_id, course.id) is not None

        # Playable URLs of paid lectures go only to students and the owner
        data = course.to_public(strip_media=not (is_enrolled or is_owner))
        data["educator"] = self._educator_summary(course.educator_id)
        return {"course": data, "is_enrolled": is_enrolled, "is_owner": is_owner}

    def get_course_by_id(self, course_id: str, viewer: Optional[User] = None) -> Dict[str, Any]:
        return self._view(load_course(self.db, course_id), viewer)

    def get_course_by_slug(self, slug: str, viewer: Optional[User] = None) -> Dict[str, Any]:
        data = self.db.find_one("courses", "slug = ?", (slug,))
        if data is None:
            raise NotFoundError("Course not found")
        return self._view(Course.model_validate(data), viewer)

    def get_course_ratings(self, course_id: str, page: int = 1, limit: int = DEFAULT_PAGE_SIZE) -> Dict[str, Any]:
        course = load_course(self.db, course_id)
        ratings = sorted(course.ratings, key=lambda r: r.created_at, reverse=True)
        window, pagination = paginate_list(ratings, page, limit)
        return {
            "ratings": [r.model_dump(mode="json") for r in window],
            "average_rating": course.stats.average_rating,
            "total_reviews": course.stats.total_reviews,
            "pagination": pagination,
        }

    def get_course_stats(self, course_id: str, educator: User) -> Dict[str, Any]:
        course = load_course(self.db, course_id)
        self._require_owner(course, educator, action="view statistics for")
        return {
            "course_id": course.id,
            "stats": course.stats.model_dump(mode="json"),
            "watch_stats": course_watch_stats(self.db, course.id),
        }

    # ------------------------------------------------------------------
    # Authoring
    # ------------------------------------------------------------------

    def create_course(self, educator: User, data: Dict[str, Any], thumbnail: Optional[UploadedFile] = None) -> Dict[str, Any]:
        """
        Create a draft course owned by ``educator``.

        The thumbnail is uploaded first; if the database writes then fail
        the uploaded asset is deleted again.
        """
        if not educator.is_educator:
            raise ForbiddenError("Educator access required")

        stored = self._upload_thumbnail(thumbnail) if thumbnail else None
        fields = {key: value for key, value in data.items() if key in UPDATABLE_FIELDS and value is not None}
        fields["price"] = self._build_price(data.get("price"))
        fields["outcomes"] = _clean_list(data.get("outcomes"))
        fields["requirements"] = _clean_list(data.get("requirements"))
        fields["tags"] = _clean_tags(data.get("tags"))

        with self.transactions.transaction() as tx:
            if stored is not None:
                tx.register_compensation(lambda: self._discard_asset(stored.public_id))

            course = Course(
                id=new_id("course"),
                educator_id=educator.id,
                thumbnail=(
                    Thumbnail(url=stored.url, public_id=stored.public_id)
                    if stored is not None
                    else Thumbnail(url=DEFAULT_THUMBNAIL_URL)
                ),
                course_content=self._build_content(data.get("course_content")),
                **fields,
            )
            self._assign_slug(course, tx)
            save_course(self.db, course, conn=tx.conn)

            owner = load_user(self.db, educator.id, conn=tx.conn)
            owner.add_created_course(course.id)
            save_user(self.db, owner, conn=tx.conn)

        logger.info(f"Course {course.id} created by educator {educator.id}")
        return course.to_public()

    def _apply_update(self, course: Course, data: Dict[str, Any]) -> Course:
        """Return a validated copy of ``course`` with the permitted changes applied."""
        merged = course.model_dump()
        for key, value in data.items():
            if key in UPDATABLE_FIELDS and value is not None:
                merged[key] = value
        if data.get("price") is not None:
            merged["price"] = self._build_price(data["price"], course.price.model_dump())
        if data.get("tags") is not None:
            merged["tags"] = _clean_tags(data["tags"])
        for key in ("outcomes", "requirements"):
            if data.get(key) is not None:
                merged[key] = _clean_list(data[key])
        if data.get("course_content") is not None:
            merged["course_content"] = [c.model_dump() for c in self._build_content(data["course_content"], course)]
        return Course.model_validate(merged)

    def update_course(
        self,
        course_id: str,
        educator: User,
        data: Dict[str, Any],
        thumbnail: Optional[UploadedFile] = None,
    ) -> Dict[str, Any]:
        """
        Owner-only update. A replaced thumbnail's old asset is deleted after
        the new one is saved; failing to delete it does not fail the update.
        """
        course = load_course(self.db, course_id)
        self._require_owner(course, educator, action="update")
        stored = self._upload_thumbnail(thumbnail) if thumbnail else None

        with self.transactions.transaction() as tx:
            if stored is not None:
                tx.register_compensation(lambda: self._discard_asset(stored.public_id))

            course = load_course(self.db, course_id, conn=tx.conn)
            updated = self._apply_update(course, data)
            if stored is not None:
                updated.thumbnail = Thumbnail(url=stored.url, public_id=stored.public_id)
            save_course(self.db, updated, conn=tx.conn)

        if stored is not None:
            self._discard_asset(course.thumbnail.public_id)

        logger.info(f"Course {course_id} updated")
        return updated.to_public()

    def add_chapter(
        self,
        course_id: str,
        educator: User,
        title: str,
        description: Optional[str] = None,
        order: Optional[int] = None,
    ) -> Dict[str, Any]:
        with self.transactions.transaction() as tx:
            course = load_course(self.db, course_id, conn=tx.conn)
            self._require_owner(course, educator)

            chapter = Chapter(
                title=title,
                description=description,
                order=order if order is not None else len(course.course_content),
            )
            course.course_content.append(chapter)
            save_course(self.db, course, conn=tx.conn)

        return chapter.model_dump(mode="json")

    def add_lecture(
        self,
        course_id: str,
        chapter_id: str,
        educator: User,
        title: str,
        description: Optional[str] = None,
        duration: int = 0,
        is_preview: bool = False,
        order: Optional[int] = None,
        resources: Optional[List[Dict[str, Any]]] = None,
        video: Optional[UploadedFile] = None,
    ) -> Dict[str, Any]:
        """Append a lecture; an uploaded video is stored before the lecture is saved."""
        course = load_course(self.db, course_id)
        self._require_owner(course, educator)
        if course.find_chapter(chapter_id) is None:
            raise NotFoundError("Chapter not found")

        stored = None
        if video is not None:
            stored = self.assets.upload(video.content, video.filename, LECTURE_VIDEO_FOLDER, resource_type="video")
            if not duration and stored.duration:
                duration = int(round(stored.duration))

        with self.transactions.transaction() as tx:
            if stored is not None:
                tx.register_compensation(lambda: self._discard_asset(stored.public_id, resource_type="video"))

            # Reload under the write lock so concurrent additions are kept
            course = load_course(self.db, course_id, conn=tx.conn)
            chapter = course.find_chapter(chapter_id)
            if chapter is None:
                raise NotFoundError("Chapter not found")

            lecture = Lecture(
                title=title,
                description=description,
                video_url=stored.url if stored else None,
                video_public_id=stored.public_id if stored else None,
                duration=duration,
                is_preview=is_preview,
                order=order if order is not None else len(chapter.lectures),
                resources=resources or [],
            )
            chapter.lectures.append(lecture)
            save_course(self.db, course, conn=tx.conn)

        return lecture.model_dump(mode="json")

    def publish_course(self, course_id: str, educator: User) -> Dict[str, Any]:
        with self.transactions.transaction() as tx:
            course = load_course(self.db, course_id, conn=tx.conn)
            self._require_owner(course, educator, action="publish")
            course.publish()
            save_course(self.db, course, conn=tx.conn)

        logger.info(f"Course {course_id} published")
        return course.to_public()

    def add_rating(self, course_id: str, user: User, rating: int, review: Optional[str] = None) -> Dict[str, Any]:
        """One rating per user; a repeat replaces the earlier one."""
        if not isinstance(rating, int) or not 1 <= rating <= 5:
            raise ValidationError("Rating must be between 1 and 5")

        with self.transactions.transaction() as tx:
            course = load_course(self.db, course_id, conn=tx.conn)
            if find_enrollment(self.db, user.id, course_id, conn=tx.conn) is None:
                raise ForbiddenError("You must be enrolled in the course to rate it")

            course.add_rating(user.id, rating, review)
            save_course(self.db, course, conn=tx.conn)

        return {
            "average_rating": course.stats.average_rating,
            "total_reviews": course.stats.total_reviews,
        }


# Global course service instance
course_service = CourseService()
