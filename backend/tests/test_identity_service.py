"""
Tests for accounts, credentials and profiles.
"""
import threading
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from core.config import PROFILE_IMAGE_FOLDER
from core.errors import ConflictError, NotFoundError, UnauthorizedError, UpstreamError, ValidationError
from core.security import decode_access_token
from services.common.documents import load_user, save_user


class TestRegistration:
    """Test account creation."""

    def test_register_returns_token(self, identity):
        user, token = identity.register("Ada", "Lovelace", "Ada@Example.com", "secret123", "educator")

        assert user.email == "ada@example.com"
        assert user.role == "educator"
        assert user.password_hash != "secret123"
        assert decode_access_token(token)["id"] == user.id

    def test_duplicate_email_conflicts(self, identity):
        identity.register("Ada", "Lovelace", "ada@example.com", "secret123")
        with pytest.raises(ConflictError, match="already exists"):
            identity.register("Ada", "Again", "ADA@example.com", "secret123")

    def test_admin_role_not_self_assignable(self, identity):
        with pytest.raises(ValidationError, match="Invalid role"):
            identity.register("Eve", "Admin", "eve@example.com", "secret123", "admin")

    def test_invalid_email(self, identity):
        with pytest.raises(ValidationError, match="valid email"):
            identity.register("No", "Email", "not-an-email", "secret123")

    def test_short_password(self, identity):
        with pytest.raises(ValidationError, match="at least 6"):
            identity.register("Short", "Pw", "short@example.com", "123")

    def test_public_projection_hides_secrets(self, make_user):
        user, _ = make_user()
        data = user.to_public()
        assert "password_hash" not in data
        assert "reset_password_token" not in data
        assert data["full_name"] == user.full_name


class TestLogin:
    """Test credential checks."""

    def test_login_success(self, identity, make_user):
        user, _ = make_user(email="login@example.com")
        logged_in, token = identity.login("LOGIN@example.com", "secret123")
        assert logged_in.id == user.id
        assert logged_in.last_login is not None
        assert token

    def test_same_error_for_unknown_email_and_wrong_password(self, identity, make_user):
        make_user(email="known@example.com")

        with pytest.raises(UnauthorizedError) as unknown:
            identity.login("nobody@example.com", "secret123")
        with pytest.raises(UnauthorizedError) as wrong:
            identity.login("known@example.com", "wrong-password")

        assert unknown.value.message == wrong.value.message == "Invalid email or password"

    def test_authenticate(self, identity, make_user):
        user, token = make_user()
        assert identity.authenticate(token).id == user.id

    def test_authenticate_rejects_garbage(self, identity):
        with pytest.raises(UnauthorizedError):
            identity.authenticate("not.a.token")

    def test_authenticate_deleted_user(self, identity, database, make_user):
        user, token = make_user()
        with database.get_connection() as conn:
            conn.execute("DELETE FROM users WHERE id = ?", (user.id,))
        with pytest.raises(UnauthorizedError, match="User not found"):
            identity.authenticate(token)


class TestPasswords:
    """Test password change and reset."""

    def test_change_password(self, identity, make_user):
        user, _ = make_user(email="change@example.com")
        identity.change_password(user, "secret123", "newsecret")

        identity.login("change@example.com", "newsecret")
        with pytest.raises(UnauthorizedError):
            identity.login("change@example.com", "secret123")

    def test_change_password_wrong_current(self, identity, make_user):
        user, _ = make_user()
        with pytest.raises(ValidationError, match="Current password is incorrect"):
            identity.change_password(user, "nope", "newsecret")

    def test_reset_flow(self, identity, database, make_user):
        user, _ = make_user(email="reset@example.com")
        raw_token = identity.request_password_reset("reset@example.com")

        stored = load_user(database, user.id)
        assert stored.reset_password_token != raw_token

        reset_user, token = identity.reset_password(raw_token, "brandnew")
        assert reset_user.id == user.id
        assert load_user(database, user.id).reset_password_token is None
        identity.login("reset@example.com", "brandnew")

        # Single use
        with pytest.raises(ValidationError, match="Invalid or expired"):
            identity.reset_password(raw_token, "another1")

    def test_reset_unknown_email(self, identity):
        with pytest.raises(NotFoundError):
            identity.request_password_reset("ghost@example.com")

    def test_expired_reset_token(self, identity, database, make_user):
        user, _ = make_user(email="late@example.com")
        raw_token = identity.request_password_reset("late@example.com")

        stored = load_user(database, user.id)
        stored.reset_password_expires = datetime.now(timezone.utc) - timedelta(minutes=1)
        save_user(database, stored)

        with pytest.raises(ValidationError, match="Invalid or expired"):
            identity.reset_password(raw_token, "brandnew")


class TestProfile:
    """Test role switching and profile edits."""

    def test_switch_role(self, identity, make_user):
        user, _ = make_user()
        account, token = identity.switch_role(user, "educator")
        assert account.role == "educator"
        assert decode_access_token(token)["role"] == "educator"

    def test_switch_to_admin_rejected(self, identity, make_user):
        user, _ = make_user()
        with pytest.raises(ValidationError):
            identity.switch_role(user, "admin")

    def test_update_profile_ignores_protected_fields(self, identity, make_user):
        user, _ = make_user()
        data = identity.update_profile(user, {"bio": "Hello", "email": "hijack@example.com", "role": "admin"})

        assert data["bio"] == "Hello"
        assert data["email"] == user.email
        assert data["role"] == "student"

    def test_update_preferences_merges(self, identity, make_user):
        user, _ = make_user()
        prefs = identity.update_preferences(user, {"language": "fr"})
        assert prefs["language"] == "fr"
        assert prefs["notifications"]["email"] is True

    def test_profile_image_replaces_old_asset(self, identity, assets, make_user, image):
        user, _ = make_user()
        first = identity.upload_profile_image(user, image)
        assets.delete.side_effect = UpstreamError("down")

        second = identity.upload_profile_image(user, image)

        assert second["public_id"] != first["public_id"]
        assets.delete.assert_called_once_with(first["public_id"])

    def test_profile_image_required(self, identity, make_user):
        user, _ = make_user()
        with pytest.raises(ValidationError, match="No image file provided"):
            identity.upload_profile_image(user, None)

    def test_profile_image_removed_when_save_fails(self, identity, assets, make_user, image):
        user, _ = make_user()
        with patch("services.identity.identity_service.save_user", side_effect=ConflictError("Duplicate record")):
            with pytest.raises(ConflictError):
                identity.upload_profile_image(user, image)

        assets.delete.assert_called_once_with(f"{PROFILE_IMAGE_FOLDER}/1")


class TestConcurrentAccountWrites:
    """Account writes must not drop enrollments committed alongside them."""

    def test_authenticate_keeps_enrollment_committed_mid_request(
        self, identity, enrollments, database, educator, make_user, make_course
    ):
        user, token = make_user()
        course = make_course(educator)
        real_get = database.get_document
        fired = []

        def get_then_enroll(table, doc_id, conn=None):
            data = real_get(table, doc_id, conn=conn)
            if not fired:
                fired.append(doc_id)
                enrollments.enroll(user, course["id"])
            return data

        with patch.object(database, "get_document", side_effect=get_then_enroll):
            identity.authenticate(token)

        account = load_user(database, user.id)
        assert [e.course_id for e in account.enrolled_courses] == [course["id"]]
        assert account.last_login is not None

    def test_update_profile_serializes_with_enrollment(
        self, identity, enrollments, database, educator, make_user, make_course
    ):
        user, _ = make_user()
        course = make_course(educator)
        errors = []

        def enroll():
            try:
                enrollments.enroll(user, course["id"])
            except Exception as e:
                errors.append(e)

        worker = threading.Thread(target=enroll)
        real_load = load_user

        def load_then_race(db, user_id, conn=None):
            account = real_load(db, user_id, conn=conn)
            # The enrollment tries to commit while the profile edit is in flight
            worker.start()
            worker.join(timeout=0.5)
            return account

        with patch("services.identity.identity_service.load_user", side_effect=load_then_race):
            identity.update_profile(user, {"bio": "Hello"})
        worker.join()

        account = load_user(database, user.id)
        assert errors == []
        assert account.bio == "Hello"
        assert [e.course_id for e in account.enrolled_courses] == [course["id"]]
