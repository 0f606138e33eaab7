"""Environment-aware configuration for the Flask application."""
import os
import tempfile


class BaseConfig:
    def __init__(self) -> None:
        # Defaults for local dev: SQLite db and a non-empty secret. Override via env for production.
        self.SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key-change-me")
        db_url = os.getenv("DATABASE_URL")
        if db_url:
            self.SQLALCHEMY_DATABASE_URI = db_url
        else:
            self.SQLALCHEMY_DATABASE_URI = os.getenv(
                "SQLITE_URL",
                f"sqlite:///{os.path.join(os.getcwd(), 'instance', 'clean_madurai.db')}",
            )
        self.SQLALCHEMY_TRACK_MODIFICATIONS = False
        # SQLite pools reject sizing arguments; only pass them to server databases.
        if not self.SQLALCHEMY_DATABASE_URI.startswith("sqlite"):
            self.SQLALCHEMY_ENGINE_OPTIONS = {
                "pool_size": int(os.getenv("DB_POOL_SIZE", 10)),
                "max_overflow": int(os.getenv("DB_MAX_OVERFLOW", 20)),
                "pool_timeout": int(os.getenv("DB_POOL_TIMEOUT", 30)),
                "pool_recycle": int(os.getenv("DB_POOL_RECYCLE", 1800)),
            }
        self.PREFERRED_URL_SCHEME = os.getenv("PREFERRED_URL_SCHEME", "https")
        self.GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
        self.GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
        self.GEMINI_TIMEOUT_SECONDS = int(os.getenv("GEMINI_TIMEOUT_SECONDS", 30))
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.LOG_DIR = os.getenv("LOG_DIR", os.path.join(os.getcwd(), "logs"))
        self.LOG_FILE = os.getenv("LOG_FILE", "clean_madurai.log")
        self.LOG_MAX_BYTES = int(os.getenv("LOG_MAX_BYTES", 5_000_000))
        self.LOG_BACKUP_COUNT = int(os.getenv("LOG_BACKUP_COUNT", 5))
        self.DEFAULT_AUTHORITY_EMAIL = os.getenv("DEFAULT_AUTHORITY_EMAIL", "authority@mcc.tn.gov.in")
        self.DEFAULT_AUTHORITY_PASSWORD = os.getenv("DEFAULT_AUTHORITY_PASSWORD", "admin123")
        self.DEFAULT_AUTHORITY_NAME = os.getenv("DEFAULT_AUTHORITY_NAME", "Municipal Officer")
        # Photos travel inline as data URLs, so the request cap covers the image payloads.
        self.MAX_CONTENT_LENGTH = int(os.getenv("MAX_REQUEST_BYTES", 10 * 1024 * 1024))
        self.NOTIFICATION_FEED_LIMIT = int(os.getenv("NOTIFICATION_FEED_LIMIT", 20))
        self.STATUS_TRANSITION_POLICY = os.getenv("STATUS_TRANSITION_POLICY", "open").lower()
        # Explicit {from_status: [to_status, ...]} table; wins over STATUS_TRANSITION_POLICY when set.
        self.COMPLAINT_STATUS_TRANSITIONS = None


class DevelopmentConfig(BaseConfig):
    def __init__(self) -> None:
        super().__init__()
        self.DEBUG = True
        self.ENV = "development"


class ProductionConfig(BaseConfig):
    def __init__(self) -> None:
        super().__init__()
        self.DEBUG = False
        self.ENV = "production"


class TestingConfig(BaseConfig):
    def __init__(self) -> None:
        super().__init__()
        self.TESTING = True
        self.DEBUG = False
        self.ENV = "testing"
        self.SQLALCHEMY_DATABASE_URI = "sqlite://"
        self.SQLALCHEMY_ENGINE_OPTIONS = {}
        self.GEMINI_API_KEY = ""
        self.LOG_DIR = os.path.join(tempfile.gettempdir(), "clean-madurai-test-logs")
        self.LOG_LEVEL = "WARNING"
