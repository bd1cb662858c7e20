"""
Configuration validation for the LMS backend.
Validates secrets, limits, asset store credentials and the database on startup.
"""
import sqlite3
from typing import List, Dict, Any


class ConfigValidator:
    """Validates system configuration before the API starts serving."""

    def __init__(self):
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def validate_all(self) -> Dict[str, Any]:
        """
        Run all validation checks.

        Returns:
            {
                "valid": bool,
                "errors": List[str],
                "warnings": List[str]
            }
        """
        self.errors = []
        self.warnings = []

        # Run all checks
        self._validate_secrets()
        self._validate_asset_store()
        self._validate_database()
        self._validate_config_values()

        return {
            "valid": len(self.errors) == 0,
            "errors": self.errors,
            "warnings": self.warnings
        }

    def _validate_secrets(self):
        """The built-in token secret is only acceptable in development."""
        from core.config import JWT_SECRET, DEFAULT_JWT_SECRET, IS_DEVELOPMENT, APP_ENV

        if not JWT_SECRET:
            self.errors.append("JWT_SECRET is empty. Set it in the environment or .env file.")
        elif JWT_SECRET == DEFAULT_JWT_SECRET:
            if IS_DEVELOPMENT:
                self.warnings.append("Using the default JWT_SECRET. Do not deploy with this value.")
            else:
                self.errors.append(
                    f"JWT_SECRET must be changed from its default when APP_ENV={APP_ENV}."
                )

    def _validate_asset_store(self):
        """Uploads fail with 502 until the asset store is configured."""
        from core.config import CLOUDINARY_CLOUD_NAME, CLOUDINARY_API_KEY, CLOUDINARY_API_SECRET

        missing = [
            name for name, value in (
                ("CLOUDINARY_CLOUD_NAME", CLOUDINARY_CLOUD_NAME),
                ("CLOUDINARY_API_KEY", CLOUDINARY_API_KEY),
                ("CLOUDINARY_API_SECRET", CLOUDINARY_API_SECRET),
            )
            if not value
        ]
        if missing:
            self.warnings.append(
                f"Asset store credentials missing ({', '.join(missing)}). "
                "Thumbnail, video and profile image uploads will fail."
            )

    def _validate_database(self):
        """The schema file must ship with the code; the document tables must exist."""
        from core.config import DB_PATH, SCHEMA_PATH
        from core.database import DOCUMENT_TABLES

        if not SCHEMA_PATH.exists():
            self.errors.append(f"Schema file missing: {SCHEMA_PATH}")
            return

        if not DB_PATH.exists():
            self.warnings.append(f"No document store at {DB_PATH} yet; it is created on first use.")
            return

        conn = None
        try:
            conn = sqlite3.connect(str(DB_PATH))
            rows = conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
        except sqlite3.Error as e:
            self.errors.append(f"Cannot open document store {DB_PATH}: {e}")
            return
        finally:
            if conn is not None:
                conn.close()

        present = {row[0] for row in rows}
        missing = [table for table in DOCUMENT_TABLES if table not in present]
        if missing:
            self.errors.append(
                f"Document tables missing from {DB_PATH}: {', '.join(missing)}. "
                "Apply db/schema.sql."
            )

    def _validate_config_values(self):
        """Validate configuration value ranges."""
        from core.config import (
            JWT_EXPIRES_IN_DAYS,
            RESET_TOKEN_TTL_MINUTES,
            DEFAULT_PAGE_SIZE,
            MAX_PAGE_SIZE,
        )

        if JWT_EXPIRES_IN_DAYS <= 0:
            self.errors.append(f"JWT_EXPIRES_IN_DAYS ({JWT_EXPIRES_IN_DAYS}) must be > 0")

        if RESET_TOKEN_TTL_MINUTES <= 0:
            self.errors.append(f"RESET_TOKEN_TTL_MINUTES ({RESET_TOKEN_TTL_MINUTES}) must be > 0")

        if DEFAULT_PAGE_SIZE <= 0 or MAX_PAGE_SIZE <= 0:
            self.errors.append("DEFAULT_PAGE_SIZE and MAX_PAGE_SIZE must be > 0")
        elif DEFAULT_PAGE_SIZE > MAX_PAGE_SIZE:
            self.errors.append(
                f"DEFAULT_PAGE_SIZE ({DEFAULT_PAGE_SIZE}) must be <= MAX_PAGE_SIZE ({MAX_PAGE_SIZE})"
            )


# Global validator instance
config_validator = ConfigValidator()
