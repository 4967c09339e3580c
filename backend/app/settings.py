############################################################
#
# bloghut - Community Blogging Platform
#
# settings.py: Application configuration and environment settings
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Application settings using Pydantic Settings."""

from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _get_version() -> str:
    """Read version from the installed distribution or pyproject.toml."""
    try:
        from importlib.metadata import version
        return version("bloghut")
    except Exception:
        pass
    # Fallback: read pyproject.toml directly (works in dev without pip install)
    try:
        import tomllib
        toml_path = Path(__file__).resolve().parents[2] / "pyproject.toml"
        with open(toml_path, "rb") as f:
            data = tomllib.load(f)
        return data["project"]["version"]
    except Exception:
        return "0.0.0"


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.prod"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Blog Hut"
    app_tagline: str = "Share your stories with the community"
    app_version: str = Field(default_factory=_get_version)
    site_url: str = "http://localhost:8000"
    debug: bool = False
    reload: bool = False
    host: str = "0.0.0.0"
    port: int = 8000

    # Database
    database_url: str = Field(default="sqlite+aiosqlite:///./bloghut.db")
    database_pool_size: int = 10
    database_max_overflow: int = 20
    database_echo: bool = False

    # Security
    secret_key: str = Field(default="dev-secret-key-change-in-production")
    session_cookie_name: str = "bloghut_session"
    session_cookie_secure: bool = False
    session_cookie_samesite: str = "lax"
    session_lifetime_hours: int = 24
    remember_me_days: int = 30
    csrf_token_bytes: int = 32
    password_reset_max_age_seconds: int = 3600

    # Validation bounds
    username_min_length: int = 3
    username_max_length: int = 50
    password_min_length: int = 6
    title_min_length: int = 5
    title_max_length: int = 255
    content_min_length: int = 50
    content_max_length: int = 100000
    summary_max_length: int = 500
    comment_min_length: int = 3
    comment_max_length: int = 1000
    bio_max_length: int = 500
    category_name_min_length: int = 2
    category_name_max_length: int = 100
    category_description_max_length: int = 500

    # Pagination
    posts_per_page: int = 9
    user_posts_per_page: int = 10
    search_results_per_page: int = 10
    admin_users_per_page: int = 20
    admin_posts_per_page: int = 20
    admin_comments_per_page: int = 20
    comments_batch_size: int = 10
    related_posts_limit: int = 3
    trending_days: int = 7
    trending_limit: int = 3
    latest_limit: int = 6

    # Uploads
    upload_root: str = "./uploads"
    post_images_dir: str = "posts"
    avatars_dir: str = "avatars"
    post_image_max_size_mb: int = 5
    avatar_max_size_mb: int = 2
    upload_allowed_formats: List[str] = ["JPEG", "PNG", "GIF", "WEBP"]
    default_avatar: str = "default-avatar.svg"

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"
    log_file: Optional[str] = None

    @field_validator("upload_allowed_formats", mode="before")
    @classmethod
    def parse_formats(cls, v):
        """Parse allowed image formats from string or list."""
        if isinstance(v, str):
            import json
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [fmt.strip().upper() for fmt in v.split(",")]
        return v

    @property
    def session_max_age(self) -> int:
        """Lifetime of a normal session cookie, in seconds."""
        return self.session_lifetime_hours * 3600

    @property
    def remember_me_max_age(self) -> int:
        """Lifetime of a remembered session cookie, in seconds."""
        return self.remember_me_days * 86400


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
