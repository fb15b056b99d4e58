import os
from pathlib import Path


BASE_DIR = Path(__file__).resolve().parent.parent


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "default-secret-key")
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", f"sqlite:///{BASE_DIR / 'adlinkton.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    MAX_CONTENT_LENGTH = int(os.environ.get("MAX_CONTENT_LENGTH", str(32 * 1024 * 1024)))
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    SCHEDULER_ENABLED = os.environ.get("SCHEDULER_ENABLED", "1") == "1"
    FAVICON_STORAGE_DIR = os.environ.get(
        "FAVICON_STORAGE_DIR", str(BASE_DIR / "public" / "favicons")
    )
    FAVICON_PUBLIC_PREFIX = os.environ.get("FAVICON_PUBLIC_PREFIX", "/favicons")
    FAVICON_FETCH_TIMEOUT = float(os.environ.get("FAVICON_FETCH_TIMEOUT", "3"))
    IMPORT_FAVICON_TIMEOUT = float(os.environ.get("IMPORT_FAVICON_TIMEOUT", "2"))
    FAVICON_MAX_BYTES = int(os.environ.get("FAVICON_MAX_BYTES", str(100 * 1024)))
    FAVICON_MAX_REDIRECTS = int(os.environ.get("FAVICON_MAX_REDIRECTS", "3"))
    FAVICON_VERIFY_TLS = os.environ.get("FAVICON_VERIFY_TLS", "1") == "1"
    FAVICON_REFETCH_INTERVAL_MINUTES = int(
        os.environ.get("FAVICON_REFETCH_INTERVAL_MINUTES", "1440")
    )


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SCHEDULER_ENABLED = False
