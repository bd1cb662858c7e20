"""
Configuration management for the CourseHub backend.
Loads configuration from environment variables and .env file.
"""
import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
# Look for .env file in the project root or the backend directory
BACKEND_DIR = Path(__file__).parent.parent
PROJECT_ROOT = BACKEND_DIR.parent
ENV_FILE = PROJECT_ROOT / ".env"

if ENV_FILE.exists():
    load_dotenv(ENV_FILE)
else:
    backend_env = BACKEND_DIR / ".env"
    if backend_env.exists():
        load_dotenv(backend_env)

# Runtime environment ("development" exposes error details in 500 responses)
APP_ENV = os.getenv("APP_ENV", "development").lower()
IS_DEVELOPMENT = APP_ENV == "development"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Base paths
DATA_DIR = Path(os.getenv("DATA_DIR", str(PROJECT_ROOT / "data")))
DB_PATH = Path(os.getenv("DATABASE_PATH", str(DATA_DIR / "lms.db")))
SCHEMA_PATH = BACKEND_DIR / "db" / "schema.sql"

# Auth
DEFAULT_JWT_SECRET = "change-me"
JWT_SECRET = os.getenv("JWT_SECRET", DEFAULT_JWT_SECRET)
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_IN_DAYS = int(os.getenv("JWT_EXPIRES_IN_DAYS", "7"))
PASSWORD_HASH_METHOD = os.getenv("PASSWORD_HASH_METHOD", "scrypt")
RESET_TOKEN_TTL_MINUTES = int(os.getenv("RESET_TOKEN_TTL_MINUTES", "10"))
MIN_PASSWORD_LENGTH = 6

# Asset store (Cloudinary REST API)
CLOUDINARY_CLOUD_NAME = os.getenv("CLOUDINARY_CLOUD_NAME", None)
CLOUDINARY_API_KEY = os.getenv("CLOUDINARY_API_KEY", None)
CLOUDINARY_API_SECRET = os.getenv("CLOUDINARY_API_SECRET", None)
CLOUDINARY_BASE_URL = os.getenv("CLOUDINARY_BASE_URL", "https://api.cloudinary.com/v1_1")
ASSET_ROOT_FOLDER = os.getenv("ASSET_ROOT_FOLDER", "lms")
ASSET_UPLOAD_TIMEOUT = float(os.getenv("ASSET_UPLOAD_TIMEOUT", "300"))

THUMBNAIL_FOLDER = "course-thumbnails"
THUMBNAIL_TRANSFORMATION = "c_fill,w_800,h_600,q_auto:good"
LECTURE_VIDEO_FOLDER = "lecture-videos"
PROFILE_IMAGE_FOLDER = "profile-images"
PROFILE_IMAGE_TRANSFORMATION = "c_fill,g_face,w_300,h_300,q_auto:good"

DEFAULT_THUMBNAIL_URL = os.getenv(
    "DEFAULT_THUMBNAIL_URL",
    "https://via.placeholder.com/800x600/4F46E5/FFFFFF?text=Course+Thumbnail",
)

# Pagination
DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", "20"))
MAX_PAGE_SIZE = int(os.getenv("MAX_PAGE_SIZE", "100"))
FEATURED_COURSES_LIMIT = 12

# Progress rules
WATCH_COMPLETION_THRESHOLD = 80  # percent of a lecture watched
MAX_INTERACTIONS = 50

# API configuration
API_PREFIX = "/api"
API_VERSION = "1.0.0"
# CORS origins can be comma-separated list in env var
CORS_ORIGINS_STR = os.getenv("CORS_ORIGINS", "http://localhost:5173")
CORS_ORIGINS = [origin.strip() for origin in CORS_ORIGINS_STR.split(",") if origin.strip()]

# Catalog vocabularies
COURSE_CATEGORIES = [
    "Programming",
    "Design",
    "Business",
    "Marketing",
    "Data Science",
    "Photography",
    "Music",
    "Language",
    "Health & Fitness",
    "Personal Development",
]
COURSE_LEVELS = ["Beginner", "Intermediate", "Advanced", "All Levels"]
