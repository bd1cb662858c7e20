"""
Unit tests for enrollment progress and watch-history sessions.
"""
from models.enrollment_models import Enrollment
from models.watch_history_models import DeviceInfo, WatchHistory


class TestEnrollmentProgress:
    """Test completion bookkeeping on the enrollment."""

    def test_free_enrollment_is_paid(self):
        enrollment = Enrollment.create("u1", "c1", "free")
        assert enrollment.payment_status == "completed"
        assert enrollment.payment_details.amount == 0

    def test_paid_enrollment_is_pending(self):
        enrollment = Enrollment.create("u1", "c1", "paid")
        assert enrollment.payment_status == "pending"
        assert enrollment.payment_details is None

    def test_completion_is_idempotent(self):
        enrollment = Enrollment.create("u1", "c1", "free")

        assert enrollment.mark_lecture_complete("ch1", "l1", 61, total_lectures=3) is True
        assert enrollment.mark_lecture_complete("ch1", "l1", 61, total_lectures=3) is False

        assert len(enrollment.progress.completed_lectures) == 1
        assert enrollment.progress.percentage == 33
        assert enrollment.progress.total_watch_time == 2

    def test_completed_status_is_one_way(self):
        enrollment = Enrollment.create("u1", "c1", "free")
        enrollment.mark_lecture_complete("ch1", "l1", 0, total_lectures=1)

        assert enrollment.status == "completed"
        assert enrollment.completed_at is not None

        # A lecture added later lowers the percentage but not the status
        enrollment.update_progress(total_lectures=2)
        assert enrollment.progress.percentage == 50
        assert enrollment.status == "completed"

    def test_zero_total_lectures(self):
        enrollment = Enrollment.create("u1", "c1", "free")
        assert enrollment.update_progress(0) == 0
        assert enrollment.status == "active"

    def test_bookmark_dedup(self):
        enrollment = Enrollment.create("u1", "c1", "free")
        first, created = enrollment.add_bookmark("ch1", "l1", "Key idea", 42)
        again, created_again = enrollment.add_bookmark("ch1", "l1", "Other title", 42)

        assert created is True
        assert created_again is False
        assert again.id == first.id
        assert len(enrollment.bookmarks) == 1

    def test_remove_missing_note(self):
        enrollment = Enrollment.create("u1", "c1", "free")
        note = enrollment.add_note("ch1", "l1", "remember this")

        assert enrollment.remove_note("note_missing") is False
        assert enrollment.remove_note(note.id) is True
        assert enrollment.notes == []


class TestWatchSessions:
    """Test session lifecycle on a watch history record."""

    def test_end_without_open_session_changes_nothing(self):
        history = WatchHistory.create("u1", "c1", "ch1", "l1")
        assert history.end_session(120, 300) is None
        assert history.total_watch_time == 0
        assert history.watch_sessions == []

    def test_session_accumulates_watch_time(self):
        history = WatchHistory.create("u1", "c1", "ch1", "l1")
        history.start_session(30, DeviceInfo(platform="web"))
        session = history.end_session(90, 600)

        assert session.duration == 60
        assert history.total_watch_time == 60
        assert history.last_watch_position == 90
        assert history.completion_percentage == 15
        assert history.is_completed is False

    def test_threshold_marks_completed(self):
        history = WatchHistory.create("u1", "c1", "ch1", "l1")
        history.start_session(0)
        session = history.end_session(240, 300)

        assert history.completion_percentage == 80
        assert history.is_completed is True
        assert session.completed is True

    def test_backwards_end_position_counts_zero(self):
        history = WatchHistory.create("u1", "c1", "ch1", "l1")
        history.start_session(200)
        history.end_session(100, 300)
        assert history.total_watch_time == 0

    def test_start_abandons_open_session(self):
        history = WatchHistory.create("u1", "c1", "ch1", "l1")
        history.start_session(10)
        history.start_session(50)

        abandoned, current = history.watch_sessions
        assert abandoned.end_time is not None
        assert abandoned.duration == 0
        assert current.is_open
        assert history.open_session is current
        assert history.total_watch_time == 0

    def test_interactions_are_capped(self):
        history = WatchHistory.create("u1", "c1", "ch1", "l1")
        for position in range(60):
            history.add_interaction("seek", timestamp=position)

        assert len(history.interactions) == 50
        assert history.interactions[0].timestamp == 10
        assert history.interactions[-1].timestamp == 59
