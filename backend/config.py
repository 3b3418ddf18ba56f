from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Supabase
    supabase_url: str
    supabase_service_role_key: str
    supabase_anon_key: str
    posts_bucket: str = "posts"
    avatars_bucket: str = "avatars"

    # App
    app_name: str = "GLOBE"
    debug: bool = False
    min_app_version: str = "1.0.0"

    # Rate limiting
    rate_limit_signup: str = "5/hour"
    rate_limit_signin: str = "20/minute"
    rate_limit_otp: str = "5/minute"
    rate_limit_api: str = "120/minute"

    # Server
    port: int = 8000
    workers: int = 1

    # Posts
    post_max_length: int = 30
    new_post_window_hours: int = 24
    image_max_px: int = 1280
    image_quality: int = 80

    # Background jobs
    maintenance_interval_minutes: int = 5

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
