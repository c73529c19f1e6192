import os
import tempfile
from dotenv import load_dotenv
load_dotenv()


def _split_env(name, default=""):
    raw = os.getenv(name, default) or ""
    return [x.strip().lower() for x in raw.split(",") if x.strip()]


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///assessment.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    SENDGRID_API_KEY = os.getenv("SENDGRID_API_KEY")
    MAIL_FROM = os.getenv("MAIL_FROM", "noreply@example.com")
    MAIL_FROM_NAME = os.getenv("MAIL_FROM_NAME", "Assessment Team")
    STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "local")
    LOCAL_STORAGE_DIR = os.getenv("LOCAL_STORAGE_DIR", "./storage")
    S3_ENDPOINT = os.getenv("S3_ENDPOINT")
    S3_REGION = os.getenv("S3_REGION")
    S3_BUCKET = os.getenv("S3_BUCKET")
    S3_ACCESS_KEY = os.getenv("S3_ACCESS_KEY")
    S3_SECRET_KEY = os.getenv("S3_SECRET_KEY")

    # playback links handed to reviewers
    SIGNED_URL_TTL = int(os.getenv("SIGNED_URL_TTL", "3600"))
    MAX_AUDIO_UPLOAD_BYTES = 50 * 1024 * 1024
    # request bodies above this are refused by werkzeug before reaching a view
    MAX_CONTENT_LENGTH = 60 * 1024 * 1024
    RECORDING_SPOOL_MAX_AGE = int(os.getenv("RECORDING_SPOOL_MAX_AGE", str(6 * 60 * 60)))
    RECORDING_SPOOL_DIR = os.getenv("RECORDING_SPOOL_DIR", os.path.join(tempfile.gettempdir(), "assessment-spool"))

    # role policy: addresses or domains that sign in as staff
    ADMIN_EMAILS = _split_env("ADMIN_EMAILS")
    ADMIN_EMAIL_DOMAINS = _split_env("ADMIN_EMAIL_DOMAINS")

    PASSWORD_RESET_MAX_AGE = int(os.getenv("PASSWORD_RESET_MAX_AGE", "3600"))
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    WTF_CSRF_ENABLED = False
    REDIS_URL = None
    SENDGRID_API_KEY = None
    STORAGE_BACKEND = "local"
    ADMIN_EMAILS = ["staff@example.com"]
    ADMIN_EMAIL_DOMAINS = ["admin.com"]
    LOG_LEVEL = "DEBUG"
