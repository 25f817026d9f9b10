import os
from dataclasses import dataclass


@dataclass(frozen=True)
class AppConfig:
    secret_key: str
    env: str
    database_url: str

    # Local mirror of per-tenant inspection settings (JSON files).
    cache_dir: str
    cache_enabled: bool


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getflag(name: str, default: bool) -> bool:
    raw = _getenv(name)
    if not raw:
        return default
    return raw.lower() in ("1", "true", "yes", "on")


def load_app_config() -> AppConfig:
    return AppConfig(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///recon.db"),
        cache_dir=_getenv("CACHE_DIR", "storage/cache"),
        cache_enabled=_getflag("CACHE_ENABLED", True),
    )


def load_config() -> dict:
    c = load_app_config()
    is_production = c.env in ("prod", "production")
    return {
        "SECRET_KEY": c.secret_key,
        "ENV": c.env,
        "DATABASE_URL": c.database_url,
        "CACHE_DIR": c.cache_dir,
        "CACHE_ENABLED": c.cache_enabled,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,  # Require HTTPS in production
        # settings imports are small JSON documents (2MB)
        "MAX_CONTENT_LENGTH": 2 * 1024 * 1024,
    }
