"""Environment-aware configuration for the Flask application."""
import os


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes", "on")


class BaseConfig:
    def __init__(self) -> None:
        # Defaults for local dev: SQLite db and a non-empty secret. Override via env for production.
        self.SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key-change-me")
        self.JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", self.SECRET_KEY)
        self.JWT_EXPIRES_HOURS = int(os.getenv("JWT_EXPIRES_HOURS", 24))
        db_url = os.getenv("DATABASE_URL")
        # If DATABASE_URL points to a placeholder host (e.g., db_host) or is missing, fall back to SQLite for local dev.
        if db_url and "db_host" not in db_url:
            self.SQLALCHEMY_DATABASE_URI = db_url
        else:
            self.SQLALCHEMY_DATABASE_URI = os.getenv(
                "SQLITE_URL",
                f"sqlite:///{os.path.join(os.getcwd(), 'instance', 'terraurb.db')}",
            )
        self.SQLALCHEMY_TRACK_MODIFICATIONS = False
        # SQLite pools do not accept sizing arguments.
        if not self.SQLALCHEMY_DATABASE_URI.startswith("sqlite"):
            self.SQLALCHEMY_ENGINE_OPTIONS = {
                "pool_size": int(os.getenv("DB_POOL_SIZE", 10)),
                "max_overflow": int(os.getenv("DB_MAX_OVERFLOW", 20)),
                "pool_timeout": int(os.getenv("DB_POOL_TIMEOUT", 30)),
                "pool_recycle": int(os.getenv("DB_POOL_RECYCLE", 1800)),
            }
        self.JSON_SORT_KEYS = False
        self.WTF_CSRF_ENABLED = False
        self.CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
        self.MAIL_SERVER = os.getenv("MAIL_SERVER", "")
        self.MAIL_PORT = int(os.getenv("MAIL_PORT", 25))
        self.MAIL_USERNAME = os.getenv("MAIL_USERNAME", "")
        self.MAIL_PASSWORD = os.getenv("MAIL_PASSWORD", "")
        self.MAIL_USE_TLS = os.getenv("MAIL_USE_TLS", "true").lower() == "true"
        self.MAIL_USE_SSL = os.getenv("MAIL_USE_SSL", "false").lower() == "true"
        self.MAIL_DEFAULT_SENDER = os.getenv("MAIL_DEFAULT_SENDER", "no-reply@terraurb.com")
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.LOG_DIR = os.getenv("LOG_DIR", os.path.join(os.getcwd(), "logs"))
        self.DEFAULT_ADMIN_EMAIL = os.getenv("DEFAULT_ADMIN_EMAIL", "admin@terraurb.com")
        self.DEFAULT_ADMIN_NICKNAME = os.getenv("DEFAULT_ADMIN_NICKNAME", "admin")
        self.DEFAULT_ADMIN_PASSWORD = os.getenv("DEFAULT_ADMIN_PASSWORD", "Admin@12345!")
        self.EMAIL_VERIFICATION_REQUIRED = _env_flag("EMAIL_VERIFICATION_REQUIRED", "true")
        self.VERIFICATION_CODE_TTL_MINUTES = int(os.getenv("VERIFICATION_CODE_TTL_MINUTES", 10))
        self.SESSION_STALE_DAYS = int(os.getenv("SESSION_STALE_DAYS", 30))
        self.ACTIVITY_LOG_WINDOW_DAYS = int(os.getenv("ACTIVITY_LOG_WINDOW_DAYS", 30))
        self.ACTIVITY_LOG_LIMIT = int(os.getenv("ACTIVITY_LOG_LIMIT", 100))
        self.SCHEDULER_ENABLED = _env_flag("SCHEDULER_ENABLED", "true")
        self.CODE_SWEEP_INTERVAL_MINUTES = int(os.getenv("CODE_SWEEP_INTERVAL_MINUTES", 15))
        self.SESSION_SWEEP_INTERVAL_HOURS = int(os.getenv("SESSION_SWEEP_INTERVAL_HOURS", 24))


class DevelopmentConfig(BaseConfig):
    def __init__(self) -> None:
        super().__init__()
        self.DEBUG = True
        self.ENV = "development"
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG").upper()


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
        self.SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
        self.SQLALCHEMY_ENGINE_OPTIONS = {}
        self.SECRET_KEY = "test-secret-key-for-testing"
        self.JWT_SECRET_KEY = "test-jwt-secret-key-for-testing"
        self.EMAIL_VERIFICATION_REQUIRED = False
        self.SCHEDULER_ENABLED = False
        self.DEFAULT_ADMIN_EMAIL = ""
        self.MAIL_SERVER = ""
