"""
Tests for catalog listing, authoring and ratings.
"""
import pytest

from core.errors import ForbiddenError, NotFoundError, UpstreamError, ValidationError
from core.asset_store import UploadedFile
from services.catalog.course_queries import CourseFilters
from services.common.documents import load_course, load_user


class TestCreateCourse:
    """Test draft creation."""

    def test_create_draft(self, catalog, database, educator, make_course):
        course = make_course(educator, publish=False)

        assert course["status"] == "draft"
        assert course["slug"] == "python-basics"
        assert course["tags"] == ["python", "beginner"]
        assert course["price"]["is_free"] is True
        assert course["stats"]["total_lectures"] == 3
        assert course["stats"]["total_duration"] == 4
        assert course["id"] in load_user(database, educator.id).created_courses

    def test_server_generates_content_ids(self, catalog, educator):
        payload = {
            "title": "Ids",
            "description": "d",
            "category": "Programming",
            "level": "Beginner",
            "course_content": [
                {"chapter_id": "mine", "title": "A", "lectures": [{"lecture_id": "mine", "title": "1"}]},
                {"chapter_id": "mine", "title": "B"},
            ],
        }
        course = catalog.create_course(educator, payload)
        chapter_ids = [c["chapter_id"] for c in course["course_content"]]
        lecture_id = course["course_content"][0]["lectures"][0]["lecture_id"]

        assert "mine" not in chapter_ids
        assert len(set(chapter_ids)) == 2
        assert lecture_id != "mine"

    def test_students_cannot_create(self, catalog, student):
        with pytest.raises(ForbiddenError):
            catalog.create_course(student, {"title": "x", "description": "y", "category": "Programming", "level": "Beginner"})

    def test_slug_collision_gets_suffix(self, educator, make_course):
        first = make_course(educator, publish=False)
        second = make_course(educator, publish=False)
        assert first["slug"] == "python-basics"
        assert second["slug"].startswith("python-basics-")
        assert len(second["slug"]) == len("python-basics-") + 6

    def test_uploaded_thumbnail_is_used(self, catalog, educator, image):
        course = catalog.create_course(
            educator,
            {"title": "Thumb", "description": "d", "category": "Design", "level": "Beginner"},
            thumbnail=image,
        )
        assert course["thumbnail"]["url"].startswith("https://assets.test/course-thumbnails/")

    def test_failed_save_removes_uploaded_thumbnail(self, catalog, assets, database, educator, image):
        with pytest.raises(Exception):
            # A negative price makes the course model reject the document
            catalog.create_course(
                educator,
                {"title": "Bad", "description": "d", "category": "Design", "level": "Beginner", "price": {"amount": -5}},
                thumbnail=image,
            )

        assets.delete.assert_called_once()
        assert database.count_documents("courses") == 0
        assert load_user(database, educator.id).created_courses == []

    def test_upload_failure_surfaces(self, catalog, assets, educator, image):
        assets.upload.side_effect = UpstreamError("Asset store error: timeout")
        with pytest.raises(UpstreamError):
            catalog.create_course(
                educator,
                {"title": "T", "description": "d", "category": "Design", "level": "Beginner"},
                thumbnail=image,
            )


class TestAuthoring:
    """Test owner-only changes to a course."""

    def test_update_by_non_owner(self, catalog, educator, make_user, make_course):
        course = make_course(educator)
        other, _ = make_user(role="educator")
        with pytest.raises(ForbiddenError, match="Not authorized to update this course"):
            catalog.update_course(course["id"], other, {"title": "Mine now"})

    def test_update_keeps_slug_and_recomputes_stats(self, catalog, educator, make_course):
        course = make_course(educator, publish=False)
        chapters = course["course_content"]
        chapters[0]["lectures"].append({"title": "Extra", "duration": 600})

        updated = catalog.update_course(
            course["id"], educator, {"title": "Python Basics 2", "course_content": chapters}
        )

        assert updated["slug"] == "python-basics"
        assert updated["stats"]["total_lectures"] == 4
        # Existing ids survive an update
        assert updated["course_content"][0]["chapter_id"] == chapters[0]["chapter_id"]
        assert updated["course_content"][0]["lectures"][0]["lecture_id"] == chapters[0]["lectures"][0]["lecture_id"]

    def test_thumbnail_replacement_deletes_old_asset(self, catalog, assets, educator, image):
        course = catalog.create_course(
            educator,
            {"title": "Thumb", "description": "d", "category": "Design", "level": "Beginner"},
            thumbnail=image,
        )
        old_public_id = course["thumbnail"]["public_id"]
        assets.delete.side_effect = UpstreamError("down")

        updated = catalog.update_course(course["id"], educator, {}, thumbnail=image)

        assert updated["thumbnail"]["public_id"] != old_public_id
        assets.delete.assert_called_once_with(old_public_id, resource_type="image")

    def test_add_chapter_and_lecture(self, catalog, database, educator, make_course):
        course = make_course(educator, publish=False)
        chapter = catalog.add_chapter(course["id"], educator, "Advanced")
        video = UploadedFile(filename="lesson.mp4", content=b"video", content_type="video/mp4")

        lecture = catalog.add_lecture(course["id"], chapter["chapter_id"], educator, "Decorators", video=video)

        assert chapter["order"] == 2
        assert lecture["duration"] == 125
        assert lecture["video_url"].startswith("https://assets.test/lecture-videos/")
        stored = load_course(database, course["id"])
        assert stored.stats.total_lectures == 4

    def test_add_lecture_unknown_chapter(self, catalog, educator, make_course):
        course = make_course(educator, publish=False)
        with pytest.raises(NotFoundError, match="Chapter not found"):
            catalog.add_lecture(course["id"], "chapter-missing", educator, "Nope")

    def test_publish_empty_course(self, catalog, educator, make_course):
        course = make_course(educator, publish=False, course_content=[])
        with pytest.raises(ValidationError):
            catalog.publish_course(course["id"], educator)

    def test_publish_by_non_owner(self, catalog, educator, make_user, make_course):
        course = make_course(educator, publish=False)
        other, _ = make_user(role="educator")
        with pytest.raises(ForbiddenError):
            catalog.publish_course(course["id"], other)


class TestListing:
    """Test filtering, search and visibility."""

    def test_only_published_courses_listed(self, catalog, educator, make_course):
        make_course(educator, publish=False, title="Draft Course")
        published = make_course(educator, title="Live Course")

        result = catalog.list_courses()

        assert [c["id"] for c in result["courses"]] == [published["id"]]
        assert result["pagination"] == {"current_page": 1, "total_pages": 1, "total": 1, "has_more": False}

    def test_free_programming_filter(self, catalog, educator, make_course):
        free = make_course(educator, title="Free Python")
        make_course(educator, title="Paid Python", price={"amount": 49.99})
        make_course(educator, title="Free Design", category="Design")

        filters = CourseFilters(category="Programming", min_price=0, max_price=0)
        result = catalog.list_courses(filters)

        assert [c["id"] for c in result["courses"]] == [free["id"]]

    def test_listing_strips_paid_media(self, catalog, educator, make_course):
        make_course(educator)
        lectures = catalog.list_courses()["courses"][0]["course_content"][0]["lectures"]
        assert lectures[0]["video_url"] == "https://v/intro"
        assert "video_url" not in lectures[1]

    def test_sort_by_price(self, catalog, educator, make_course):
        make_course(educator, title="Cheap", price={"amount": 10})
        make_course(educator, title="Pricey", price={"amount": 90})

        titles = [c["title"] for c in catalog.list_courses(sort="price", order="asc")["courses"]]
        assert titles == ["Cheap", "Pricey"]

    def test_unknown_sort_field(self, catalog):
        with pytest.raises(ValidationError):
            catalog.list_courses(sort="password_hash")

    def test_tag_filter(self, catalog, educator, make_course):
        tagged = make_course(educator, title="Tagged", tags=["ml"])
        make_course(educator, title="Other", tags=["web"])

        result = catalog.list_courses(CourseFilters(tags=["ML"]))
        assert [c["id"] for c in result["courses"]] == [tagged["id"]]

    def test_pagination(self, catalog, educator, make_course):
        for n in range(3):
            make_course(educator, title=f"Course {n}")

        result = catalog.list_courses(page=2, limit=2)

        assert len(result["courses"]) == 1
        assert result["pagination"]["total_pages"] == 2
        assert result["pagination"]["has_more"] is False

    def test_search(self, catalog, educator, make_course):
        make_course(educator, title="Machine Learning 101", description="Models and data")
        make_course(educator, title="Watercolors", description="Painting", category="Design")

        result = catalog.search_courses("machine")

        assert result["query"] == "machine"
        assert [c["title"] for c in result["courses"]] == ["Machine Learning 101"]

    def test_search_folds_accented_capitals(self, catalog, educator, make_course):
        course = make_course(educator, title="Économie pour débutants")
        make_course(educator, title="Watercolors", category="Design")

        for query in ("Économie", "économie", "DÉBUTANTS"):
            assert [c["id"] for c in catalog.search_courses(query)["courses"]] == [course["id"]]

    def test_search_matches_wildcards_literally(self, catalog, educator, make_course):
        make_course(educator, title="Plain title")
        assert catalog.search_courses("%")["courses"] == []

    def test_empty_search(self, catalog):
        with pytest.raises(ValidationError, match="Search query is required"):
            catalog.search_courses("  ")

    def test_featured(self, catalog, educator, make_course):
        course = make_course(educator)
        catalog.update_course(course["id"], educator, {"featured": True})
        make_course(educator, title="Not featured")

        assert [c["id"] for c in catalog.get_featured_courses()] == [course["id"]]

    def test_educator_listing_includes_drafts(self, catalog, educator, make_course):
        make_course(educator, publish=False, title="Draft")
        make_course(educator, title="Live")

        assert catalog.get_courses_by_educator(educator.id)["pagination"]["total"] == 2
        drafts = catalog.get_courses_by_educator(educator.id, status="draft")["courses"]
        assert [c["title"] for c in drafts] == ["Draft"]


class TestCourseDetail:
    """Test detail views and media visibility."""

    def test_anonymous_viewer_gets_stripped_media(self, catalog, educator, make_course):
        course = make_course(educator)
        view = catalog.get_course_by_id(course["id"])

        assert view["is_enrolled"] is False
        assert view["is_owner"] is False
        assert view["course"]["educator"]["id"] == educator.id
        assert "video_url" not in view["course"]["course_content"][0]["lectures"][1]

    def test_enrolled_viewer_gets_media(self, catalog, enrollments, educator, student, make_course):
        course = make_course(educator)
        enrollments.enroll(student, course["id"])

        view = catalog.get_course_by_id(course["id"], student)

        assert view["is_enrolled"] is True
        assert view["course"]["course_content"][0]["lectures"][1]["video_url"] == "https://v/setup"

    def test_owner_gets_media(self, catalog, educator, make_course):
        course = make_course(educator)
        view = catalog.get_course_by_slug(course["slug"], educator)
        assert view["is_owner"] is True
        assert "video_url" in view["course"]["course_content"][0]["lectures"][1]

    def test_missing_course(self, catalog):
        with pytest.raises(NotFoundError, match="Course not found"):
            catalog.get_course_by_id("course_missing")


class TestRatings:
    """Test course ratings."""

    def test_rating_requires_enrollment(self, catalog, educator, student, make_course):
        course = make_course(educator)
        with pytest.raises(ForbiddenError, match="must be enrolled"):
            catalog.add_rating(course["id"], student, 5)

    def test_rating_out_of_range(self, catalog, educator, student, make_course):
        course = make_course(educator)
        with pytest.raises(ValidationError):
            catalog.add_rating(course["id"], student, 6)

    def test_rating_replaced(self, catalog, enrollments, educator, student, make_course):
        course = make_course(educator)
        enrollments.enroll(student, course["id"])

        catalog.add_rating(course["id"], student, 5, "Great")
        result = catalog.add_rating(course["id"], student, 3)

        assert result == {"average_rating": 3.0, "total_reviews": 1}
        ratings = catalog.get_course_ratings(course["id"])
        assert ratings["ratings"][0]["rating"] == 3
        assert ratings["pagination"]["total"] == 1

    def test_stats_owner_only(self, catalog, educator, make_user, make_course):
        course = make_course(educator)
        other, _ = make_user(role="educator")

        stats = catalog.get_course_stats(course["id"], educator)
        assert stats["watch_stats"]["total_viewers"] == 0
        with pytest.raises(ForbiddenError):
            catalog.get_course_stats(course["id"], other)
