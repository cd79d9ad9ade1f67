import os
from pathlib import Path


BASE_DIR = Path(__file__).resolve().parent.parent


def _env_bool(name: str, default: str = "0") -> bool:
    return os.environ.get(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "default-secret-key")
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    CORS_ORIGIN = os.environ.get("CORS_ORIGIN", "*")

    ADMIN_USERNAME = os.environ.get("ADMIN_USERNAME", "admin")
    ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD", "admin123")
    ADMIN_PASSWORD_HASH = os.environ.get("ADMIN_PASSWORD_HASH")
    AUTH_TOKEN_MAX_AGE_SECONDS = int(
        os.environ.get("AUTH_TOKEN_MAX_AGE_SECONDS", str(7 * 24 * 3600))
    )

    STORAGE_DRIVER = os.environ.get("STORAGE_DRIVER", "local").strip().lower()
    BOOKMARKS_KEY = os.environ.get("BOOKMARKS_KEY", "litemark/data/bookmarks.json")
    SETTINGS_KEY = os.environ.get("SETTINGS_KEY", "litemark/data/settings.json")
    LOCAL_STORAGE_DIR = os.environ.get("LOCAL_STORAGE_DIR", str(BASE_DIR / "data"))
    STORAGE_TIMEOUT = float(os.environ.get("STORAGE_TIMEOUT", "15"))
    CACHE_REFRESH_INTERVAL_MS = int(
        os.environ.get("CACHE_REFRESH_INTERVAL_MS", "60000")
    )

    S3_BUCKET = os.environ.get("S3_BUCKET")
    S3_REGION = os.environ.get("S3_REGION")
    S3_ACCESS_KEY_ID = os.environ.get("S3_ACCESS_KEY_ID")
    S3_SECRET_ACCESS_KEY = os.environ.get("S3_SECRET_ACCESS_KEY")
    S3_ENDPOINT = os.environ.get("S3_ENDPOINT")
    S3_FORCE_PATH_STYLE = _env_bool("S3_FORCE_PATH_STYLE")

    R2_BUCKET = os.environ.get("R2_BUCKET")
    R2_REGION = os.environ.get("R2_REGION", "auto")
    R2_ACCESS_KEY_ID = os.environ.get("R2_ACCESS_KEY_ID")
    R2_SECRET_ACCESS_KEY = os.environ.get("R2_SECRET_ACCESS_KEY")
    R2_ENDPOINT = os.environ.get("R2_ENDPOINT")
    R2_ACCOUNT_ID = os.environ.get("R2_ACCOUNT_ID")
    R2_FORCE_PATH_STYLE = _env_bool("R2_FORCE_PATH_STYLE", "1")

    OSS_REGION = os.environ.get("OSS_REGION")
    OSS_BUCKET = os.environ.get("OSS_BUCKET")
    OSS_ACCESS_KEY_ID = os.environ.get("OSS_ACCESS_KEY_ID")
    OSS_SECRET_ACCESS_KEY = os.environ.get("OSS_SECRET_ACCESS_KEY")
    OSS_ENDPOINT = os.environ.get("OSS_ENDPOINT")
    OSS_INTERNAL = _env_bool("OSS_INTERNAL")
    OSS_SECURE = _env_bool("OSS_SECURE", "1")

    COS_BUCKET = os.environ.get("COS_BUCKET")
    COS_REGION = os.environ.get("COS_REGION")
    COS_SECRET_ID = os.environ.get("COS_SECRET_ID")
    COS_SECRET_KEY = os.environ.get("COS_SECRET_KEY")

    BLOB_READ_WRITE_TOKEN = os.environ.get("BLOB_READ_WRITE_TOKEN")
    VERCEL_BLOB_API_URL = os.environ.get(
        "VERCEL_BLOB_API_URL", "https://blob.vercel-storage.com"
    )

    WEBDAV_URL = os.environ.get("WEBDAV_URL")
    WEBDAV_USERNAME = os.environ.get("WEBDAV_USERNAME")
    WEBDAV_PASSWORD = os.environ.get("WEBDAV_PASSWORD")

    WEBDAV_BACKUP_URL = os.environ.get("WEBDAV_BACKUP_URL") or WEBDAV_URL
    WEBDAV_BACKUP_USERNAME = os.environ.get("WEBDAV_BACKUP_USERNAME") or WEBDAV_USERNAME
    WEBDAV_BACKUP_PASSWORD = os.environ.get("WEBDAV_BACKUP_PASSWORD") or WEBDAV_PASSWORD
    WEBDAV_BACKUP_PATH = os.environ.get("WEBDAV_BACKUP_PATH", "litemark-backup/")
    WEBDAV_BACKUP_ENABLED = _env_bool("WEBDAV_BACKUP_ENABLED")
    WEBDAV_KEEP_BACKUPS = int(os.environ.get("WEBDAV_KEEP_BACKUPS", "7"))
    WEBDAV_BACKUP_CRON = os.environ.get("WEBDAV_BACKUP_CRON", "0 2 * * *")
    BACKUP_TIMEZONE = os.environ.get("BACKUP_TIMEZONE", "Asia/Shanghai")
    CRON_SECRET = os.environ.get("CRON_SECRET")

    SCHEDULER_ENABLED = os.environ.get("SCHEDULER_ENABLED", "1") == "1"


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret-key"
    STORAGE_DRIVER = "local"
    CACHE_REFRESH_INTERVAL_MS = 0
    CRON_SECRET = None
    WEBDAV_BACKUP_ENABLED = False
    SCHEDULER_ENABLED = False
