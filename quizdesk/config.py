"""Environment-driven settings for the quiz service."""
import os

from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in {"1", "true", "yes", "on"}


DB_ENV = "QUIZ_DB"

SECRET_KEY = os.environ.get("FLASK_SECRET", "dev-secret")
ADMIN_USERNAME = os.environ.get("QUIZ_ADMIN_USER", "admin")
ADMIN_PASSWORD = os.environ.get("QUIZ_ADMIN_PASSWORD", "admin123")

DEFAULT_MAX_QUESTIONS = int(os.environ.get("QUIZ_DEFAULT_MAX_QUESTIONS", "25"))
STORE_RETRY_SECONDS = float(os.environ.get("QUIZ_STORE_RETRY_SECONDS", "30"))
MAX_UPLOAD_BYTES = int(os.environ.get("QUIZ_MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))
EXPOSE_ANSWER_KEY = _env_flag("QUIZ_EXPOSE_ANSWER_KEY", "false")
ATTEMPT_TTL_SECONDS = float(os.environ.get("QUIZ_ATTEMPT_TTL_SECONDS", str(24 * 60 * 60)))
