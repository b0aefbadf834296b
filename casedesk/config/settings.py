"""
Configuration settings for the Casedesk client intake service.
"""

import os

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


class Config:
    """Base configuration class"""

    # Flask Configuration
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-key-change-in-production")
    FLASK_ENV = os.getenv("FLASK_ENV", "development")
    DEBUG = os.getenv("FLASK_DEBUG", "True").lower() == "true"

    # Document store: "firestore" (managed or emulator) or "memory"
    STORE_BACKEND = os.getenv("STORE_BACKEND", "firestore")
    USE_EMULATOR = _env_flag("USE_EMULATOR")
    FIRESTORE_EMULATOR_HOST = os.getenv("FIRESTORE_EMULATOR_HOST", "localhost:8080")
    FIREBASE_AUTH_EMULATOR_HOST = os.getenv("FIREBASE_AUTH_EMULATOR_HOST", "localhost:9099")
    EMULATOR_PROJECT_ID = os.getenv("EMULATOR_PROJECT_ID", "demo-project")

    # Firebase service account
    FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID", "")
    FIREBASE_CLIENT_EMAIL = os.getenv("FIREBASE_CLIENT_EMAIL", "")
    FIREBASE_PRIVATE_KEY = os.getenv("FIREBASE_PRIVATE_KEY", "").replace("\\n", "\n")

    # Attorney access
    ATTORNEY_EMAIL_DOMAIN = os.getenv("ATTORNEY_EMAIL_DOMAIN", "thelawshop.com")

    # Public intake rate limiting
    INTAKE_RATE_LIMIT_MAX = int(os.getenv("INTAKE_RATE_LIMIT_MAX", "3"))
    INTAKE_RATE_LIMIT_WINDOW_HOURS = int(os.getenv("INTAKE_RATE_LIMIT_WINDOW_HOURS", "24"))

    # Cal.com webhook
    CALCOM_WEBHOOK_SECRET = os.getenv("CALCOM_WEBHOOK_SECRET", "")
    WEBHOOK_SIGNATURE_BYPASS = _env_flag("WEBHOOK_SIGNATURE_BYPASS")

    # Google Contacts mirror
    CONTACT_SYNC_ENABLED = _env_flag("CONTACT_SYNC_ENABLED")
    GOOGLE_SERVICE_ACCOUNT_JSON = os.getenv("GOOGLE_SERVICE_ACCOUNT_JSON", "")
    GOOGLE_DELEGATED_USER = os.getenv("GOOGLE_DELEGATED_USER", "")

    # Application Settings
    APP_HOST = os.getenv("APP_HOST", "0.0.0.0")
    APP_PORT = int(os.getenv("APP_PORT", 5000))

    # Additional settings
    MAX_CONTENT_LENGTH = 1 * 1024 * 1024  # 1MB, JSON bodies only

    # Logging Configuration
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT = os.getenv("LOG_FORMAT", "development")  # 'json' for production, 'development' for dev
    LOG_FILE = os.getenv("LOG_FILE", "logs/app.log")
    LOG_MAX_BYTES = int(os.getenv("LOG_MAX_BYTES", str(10 * 1024 * 1024)))  # 10MB
    LOG_BACKUP_COUNT = int(os.getenv("LOG_BACKUP_COUNT", "5"))
    LOG_ENABLE_CONSOLE = os.getenv("LOG_ENABLE_CONSOLE", "true").lower() == "true"
    CLIENT_ERROR_LOG = os.getenv("CLIENT_ERROR_LOG", "logs/error.log")

    @classmethod
    def get_firebase_config(cls):
        """Get Firebase service account configuration as dictionary"""
        if cls.USE_EMULATOR:
            return {"project_id": cls.EMULATOR_PROJECT_ID}
        return {
            "project_id": cls.FIREBASE_PROJECT_ID,
            "client_email": cls.FIREBASE_CLIENT_EMAIL,
            "private_key": cls.FIREBASE_PRIVATE_KEY,
        }

    @classmethod
    def get_emulator_config(cls):
        """Get emulator host variables; empty outside emulator mode"""
        if not cls.USE_EMULATOR:
            return {}
        return {
            "FIRESTORE_EMULATOR_HOST": cls.FIRESTORE_EMULATOR_HOST,
            "FIREBASE_AUTH_EMULATOR_HOST": cls.FIREBASE_AUTH_EMULATOR_HOST,
        }

    @classmethod
    def validate_config(cls):
        """Validate required configuration"""
        if cls.STORE_BACKEND not in ("firestore", "memory"):
            raise ValueError(f"Unsupported STORE_BACKEND: {cls.STORE_BACKEND}")

        missing_vars = []
        if cls.STORE_BACKEND == "firestore" and not cls.USE_EMULATOR:
            for var in ["FIREBASE_PROJECT_ID", "FIREBASE_CLIENT_EMAIL", "FIREBASE_PRIVATE_KEY"]:
                if not getattr(cls, var):
                    missing_vars.append(var)

        if cls.CONTACT_SYNC_ENABLED and not cls.GOOGLE_SERVICE_ACCOUNT_JSON:
            missing_vars.append("GOOGLE_SERVICE_ACCOUNT_JSON")

        if missing_vars:
            raise ValueError(f"Missing required configuration variables: {', '.join(missing_vars)}")

        return True


class DevelopmentConfig(Config):
    """Development configuration"""

    DEBUG = True
    FLASK_ENV = "development"

    # Signatures are checked and logged but never block locally
    WEBHOOK_SIGNATURE_BYPASS = _env_flag("WEBHOOK_SIGNATURE_BYPASS", "true")


class ProductionConfig(Config):
    """Production configuration"""

    DEBUG = False
    FLASK_ENV = "production"

    # Override defaults for production
    SECRET_KEY = os.getenv("SECRET_KEY") or "MUST_BE_SET_IN_PRODUCTION"  # Must be set in production

    # Production logging defaults
    LOG_FORMAT = os.getenv("LOG_FORMAT", "json")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "WARNING")
    LOG_ENABLE_CONSOLE = os.getenv("LOG_ENABLE_CONSOLE", "false").lower() == "true"

    @classmethod
    def validate_config(cls):
        """Additional validation for production"""
        super().validate_config()

        secret_key = getattr(cls, "SECRET_KEY", "")
        if not secret_key or secret_key == "dev-key-change-in-production":
            raise ValueError("SECRET_KEY must be set to a secure value in production")

        if cls.WEBHOOK_SIGNATURE_BYPASS:
            raise ValueError("WEBHOOK_SIGNATURE_BYPASS cannot be enabled in production")

        if cls.STORE_BACKEND == "memory":
            raise ValueError("The in-memory store cannot be used in production")


class TestingConfig(Config):
    """Testing configuration"""

    TESTING = True
    DEBUG = True
    STORE_BACKEND = "memory"
    USE_EMULATOR = False
    CONTACT_SYNC_ENABLED = False
    CALCOM_WEBHOOK_SECRET = "test-webhook-secret"
    WEBHOOK_SIGNATURE_BYPASS = False
    LOG_FILE = ""
    LOG_ENABLE_CONSOLE = False
    LOG_LEVEL = "DEBUG"


# Configuration mapping
config = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
    "default": DevelopmentConfig,
}
