"""
Identity service: registration, authentication, passwords and profile.
"""
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from core.asset_store import AssetStoreClient, UploadedFile, asset_store
from core.config import MIN_PASSWORD_LENGTH, PROFILE_IMAGE_FOLDER, PROFILE_IMAGE_TRANSFORMATION
from core.database import Database, db
from core.errors import (
    ConflictError,
    NotFoundError,
    UnauthorizedError,
    UpstreamError,
    ValidationError,
)
from core.security import (
    create_access_token,
    decode_access_token,
    generate_reset_token,
    hash_password,
    hash_reset_token,
    verify_password,
)
from core.transaction import TransactionManager
from models.course_models import Course
from models.enrollment_models import Enrollment
from models.user_models import ProfileImage, User
from services.common.documents import load_user, save_user

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
SELF_ASSIGNABLE_ROLES = ("student", "educator")

# Profile fields a user may edit directly
PROFILE_FIELDS = {"first_name", "last_name", "bio", "website", "social_links", "preferences"}


def _validate_password(password: str) -> None:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")


def issue_token(user: User) -> str:
    return create_access_token(user.id, user.email, user.role)


class IdentityService:
    """Accounts and credentials."""

    def __init__(self, database: Optional[Database] = None, assets: Optional[AssetStoreClient] = None):
        self.db = database or db
        self.assets = assets or asset_store
        self.transactions = TransactionManager(self.db)

    def _find_by_email(self, email: str, conn=None) -> Optional[User]:
        data = self.db.find_one("users", "email = ?", (email.strip().lower(),), conn=conn)
        return User.model_validate(data) if data else None

    def _stamp_login(self, user: User) -> None:
        """Write last_login alone so a concurrent write to the account is kept."""
        user.last_login = datetime.now(timezone.utc)
        stamped = user.model_dump(mode="json", include={"last_login"})["last_login"]
        self.db.set_document_field("users", user.id, "$.last_login", stamped)

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    def register(
        self,
        first_name: str,
        last_name: str,
        email: str,
        password: str,
        role: str = "student",
    ) -> Tuple[User, str]:
        """Create an account and return it with a fresh access token."""
        if not email or not EMAIL_PATTERN.match(email.strip()):
            raise ValidationError("Please provide a valid email")
        if role not in SELF_ASSIGNABLE_ROLES:
            raise ValidationError('Invalid role. Must be either "student" or "educator"')
        _validate_password(password)

        if self._find_by_email(email) is not None:
            raise ConflictError("User with this email already exists")

        user = User.create(
            first_name=first_name.strip(),
            last_name=last_name.strip(),
            email=email,
            password_hash=hash_password(password),
            role=role,
        )
        # The unique email index catches a concurrent registration
        save_user(self.db, user)

        logger.info(f"Registered user {user.id} as {role}")
        return user, issue_token(user)

    def login(self, email: str, password: str) -> Tuple[User, str]:
        """Same error for an unknown email and a wrong password."""
        user = self._find_by_email(email or "")
        if user is None or not verify_password(user.password_hash, password or ""):
            raise UnauthorizedError("Invalid email or password")
        if not user.is_active:
            raise UnauthorizedError("Account is deactivated")

        self._stamp_login(user)
        logger.info(f"User {user.id} logged in")
        return user, issue_token(user)

    def authenticate(self, token: str) -> User:
        """Resolve a bearer token to its user and stamp last_login."""
        if not token:
            raise UnauthorizedError("Access token required")
        payload = decode_access_token(token)

        data = self.db.get_document("users", payload["id"])
        if data is None:
            raise UnauthorizedError("User not found")
        user = User.model_validate(data)
        if not user.is_active:
            raise UnauthorizedError("Account is deactivated")

        self._stamp_login(user)
        return user

    # ------------------------------------------------------------------
    # Passwords
    # ------------------------------------------------------------------

    def change_password(self, user: User, current_password: str, new_password: str) -> str:
        with self.transactions.transaction() as tx:
            account = load_user(self.db, user.id, conn=tx.conn)
            if not verify_password(account.password_hash, current_password or ""):
                raise ValidationError("Current password is incorrect")
            _validate_password(new_password)

            account.password_hash = hash_password(new_password)
            save_user(self.db, account, conn=tx.conn)

        logger.info(f"Password changed for user {account.id}")
        return issue_token(account)

    def request_password_reset(self, email: str) -> str:
        """
        Issue a reset token valid for a short window.

        Only the token's hash is stored. The raw token is returned to the
        caller because there is no mail transport to deliver it.
        """
        raw_token, token_hash, expires_at = generate_reset_token()

        with self.transactions.transaction() as tx:
            user = self._find_by_email(email or "", conn=tx.conn)
            if user is None:
                raise NotFoundError("No user found with this email address")

            user.reset_password_token = token_hash
            user.reset_password_expires = expires_at
            save_user(self.db, user, conn=tx.conn)

        logger.info(f"Password reset requested for user {user.id}")
        return raw_token

    def reset_password(self, token: str, new_password: str) -> Tuple[User, str]:
        if not token:
            raise ValidationError("Invalid or expired reset token")

        with self.transactions.transaction() as tx:
            data = self.db.find_one(
                "users",
                "json_extract(data, '$.reset_password_token') = ?",
                (hash_reset_token(token),),
                conn=tx.conn,
            )
            user = User.model_validate(data) if data else None
            if (
                user is None
                or user.reset_password_expires is None
                or user.reset_password_expires <= datetime.now(timezone.utc)
            ):
                raise ValidationError("Invalid or expired reset token")
            _validate_password(new_password)

            user.password_hash = hash_password(new_password)
            user.reset_password_token = None
            user.reset_password_expires = None
            save_user(self.db, user, conn=tx.conn)

        logger.info(f"Password reset completed for user {user.id}")
        return user, issue_token(user)

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    def switch_role(self, user: User, role: str) -> Tuple[User, str]:
        if role not in SELF_ASSIGNABLE_ROLES:
            raise ValidationError('Invalid role. Must be either "student" or "educator"')

        with self.transactions.transaction() as tx:
            account = load_user(self.db, user.id, conn=tx.conn)
            account.role = role
            save_user(self.db, account, conn=tx.conn)

        logger.info(f"User {account.id} switched role to {role}")
        return account, issue_token(account)

    def get_profile(self, user: User) -> Dict[str, Any]:
        """
        Public projection of the account. Enrolled-course progress is read
        from the enrollment records, never from the user document.
        """
        account = load_user(self.db, user.id)
        data = account.to_public()

        enrollments = {
            e["course_id"]: Enrollment.model_validate(e)
            for e in self.db.find_documents("enrollments", "user_id = ?", (account.id,))
        }
        enrolled = []
        for entry in account.enrolled_courses:
            course_data = self.db.get_document("courses", entry.course_id)
            enrollment = enrollments.get(entry.course_id)
            enrolled.append({
                "course_id": entry.course_id,
                "enrolled_at": entry.enrolled_at.isoformat(),
                "course": Course.model_validate(course_data).to_summary() if course_data else None,
                "progress": enrollment.progress.percentage if enrollment else 0,
                "status": enrollment.status if enrollment else None,
            })
        data["enrolled_courses"] = enrolled

        created = []
        for course_id in account.created_courses:
            course_data = self.db.get_document("courses", course_id)
            if course_data:
                created.append(Course.model_validate(course_data).to_summary())
        data["created_courses"] = created
        return data

    def update_profile(self, user: User, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Apply editable profile fields; anything else in ``fields`` is ignored."""
        with self.transactions.transaction() as tx:
            account = load_user(self.db, user.id, conn=tx.conn)
            merged = account.model_dump()
            for key, value in fields.items():
                if key in PROFILE_FIELDS and value is not None:
                    merged[key] = value

            updated = User.model_validate(merged)
            save_user(self.db, updated, conn=tx.conn)
        return updated.to_public()

    def update_preferences(self, user: User, preferences: Dict[str, Any]) -> Dict[str, Any]:
        with self.transactions.transaction() as tx:
            account = load_user(self.db, user.id, conn=tx.conn)
            merged = account.preferences.model_dump()
            merged.update({key: value for key, value in preferences.items() if value is not None})
            account.preferences = account.preferences.model_validate(merged)
            save_user(self.db, account, conn=tx.conn)
        return account.preferences.model_dump(mode="json")

    def upload_profile_image(self, user: User, image: Optional[UploadedFile]) -> Dict[str, Any]:
        if image is None or not image.content:
            raise ValidationError("No image file provided")

        load_user(self.db, user.id)
        stored = self.assets.upload(
            image.content,
            image.filename,
            PROFILE_IMAGE_FOLDER,
            resource_type="image",
            transformation=PROFILE_IMAGE_TRANSFORMATION,
        )

        with self.transactions.transaction() as tx:
            tx.register_compensation(lambda: self.assets.delete(stored.public_id))

            account = load_user(self.db, user.id, conn=tx.conn)
            old_public_id = account.profile_image.public_id
            account.profile_image = ProfileImage(url=stored.url, public_id=stored.public_id)
            save_user(self.db, account, conn=tx.conn)

        if old_public_id:
            try:
                self.assets.delete(old_public_id)
            except UpstreamError as e:
                logger.warning(f"Failed to delete old profile image {old_public_id}: {e}")

        return account.profile_image.model_dump(mode="json")


# Global identity service instance
identity_service = IdentityService()
