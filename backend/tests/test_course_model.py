"""
Unit tests for the course document model.
"""
import pytest

from core.errors import ValidationError
from models.common import percentage, round_half_up
from models.course_models import Chapter, Course, Lecture, Thumbnail, slugify


def build_course(chapters=None, **overrides):
    data = dict(
        id="course_1",
        title="Intro to Data Science!",
        description="Numbers and more",
        thumbnail=Thumbnail(url="https://img/default"),
        category="Data Science",
        level="Beginner",
        educator_id="user_edu",
        course_content=chapters or [],
    )
    data.update(overrides)
    return Course(**data)


class TestRounding:
    """Test the shared rounding helpers."""

    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(4.25, 1) == 4.3
        assert round_half_up(4.24, 1) == 4.2

    def test_percentage_zero_total(self):
        assert percentage(3, 0) == 0

    def test_percentage_rounds_and_clamps(self):
        assert percentage(1, 3) == 33
        assert percentage(2, 3) == 67
        assert percentage(1, 8) == 13
        assert percentage(5, 4) == 100


class TestStats:
    """Test derived statistics."""

    def test_duration_rounds_up_to_minutes(self):
        course = build_course([
            Chapter(title="A", lectures=[Lecture(title="1", duration=90), Lecture(title="2", duration=31)]),
            Chapter(title="B", lectures=[Lecture(title="3", duration=0)]),
        ])
        stats = course.calculate_stats()

        assert stats.total_lectures == 3
        assert stats.total_duration == 3
        assert course.formatted_duration == "3m"

    def test_formatted_duration_with_hours(self):
        course = build_course([Chapter(title="A", lectures=[Lecture(title="1", duration=3720)])])
        course.calculate_stats()
        assert course.formatted_duration == "1h 2m"

    def test_empty_course(self):
        stats = build_course().calculate_stats()
        assert stats.total_lectures == 0
        assert stats.total_duration == 0
        assert stats.average_rating == 0


class TestRatings:
    """Test one-rating-per-user semantics."""

    def test_rating_replaces_previous(self):
        course = build_course()
        course.add_rating("u1", 5)
        course.add_rating("u2", 4)
        course.add_rating("u1", 2, "changed my mind")

        assert course.stats.total_reviews == 2
        assert course.stats.average_rating == 3.0
        assert [r.rating for r in course.ratings if r.user_id == "u1"] == [2]

    def test_average_rounded_to_one_decimal(self):
        course = build_course()
        for user_id, rating in (("a", 5), ("b", 4), ("c", 4)):
            course.add_rating(user_id, rating)
        assert course.stats.average_rating == 4.3


class TestPublish:
    """Test the publish guards."""

    def test_publish_requires_chapter(self):
        course = build_course()
        with pytest.raises(ValidationError, match="at least one chapter"):
            course.publish()
        assert course.status == "draft"

    def test_publish_requires_lecture(self):
        course = build_course([Chapter(title="Empty")])
        with pytest.raises(ValidationError, match="at least one lecture"):
            course.publish()

    def test_publish_sets_timestamp(self):
        course = build_course([Chapter(title="A", lectures=[Lecture(title="1")])])
        course.publish()
        assert course.status == "published"
        assert course.published_at is not None


class TestProjection:
    """Test slugs and the public projection."""

    def test_slugify(self):
        assert slugify("Intro to Data Science!") == "intro-to-data-science"
        assert slugify("  C++  &  Rust -- Basics ") == "c-rust-basics"

    def test_ensure_slug_is_set_once(self):
        course = build_course()
        course.ensure_slug()
        course.title = "Renamed"
        course.ensure_slug()
        assert course.slug == "intro-to-data-science"

    def test_strip_media_keeps_preview_lectures(self):
        course = build_course([
            Chapter(title="A", lectures=[
                Lecture(title="Preview", is_preview=True, video_url="https://v/1", video_public_id="v1"),
                Lecture(title="Paid", video_url="https://v/2", video_public_id="v2"),
            ]),
        ])
        lectures = course.to_public(strip_media=True)["course_content"][0]["lectures"]

        assert lectures[0]["video_url"] == "https://v/1"
        assert "video_url" not in lectures[1]
        assert "video_public_id" not in lectures[1]

    def test_full_projection_keeps_media(self):
        course = build_course([Chapter(title="A", lectures=[Lecture(title="Paid", video_url="https://v/2")])])
        data = course.to_public()
        assert data["course_content"][0]["lectures"][0]["video_url"] == "https://v/2"
        assert "formatted_duration" in data
