from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./lms.db"
    REDIS_URL: str = "redis://localhost:6379/0"
    SECRET_KEY: str = "dev-secret-lms"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_MINUTES: int = 60
    LOG_LEVEL: str = "INFO"
    CACHE_TTL: int = 300  # 5 minutes
    CACHE_ENABLED: bool = True

    # auth endpoints (slowapi)
    RATE_LIMIT_PER_MINUTE: int = 60
    # mutating actions (guard)
    ACTION_RATE_LIMIT: str = "5/minute"
    RATE_LIMIT_STORAGE_URI: str = "memory://"
    BOT_DETECTION_ENABLED: bool = True

    ADMIN_EMAILS: list[str] = []
    APP_URL: str = "http://localhost:8000"

    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    STRIPE_CURRENCY: str = "usd"

    S3_BUCKET: str = "lms-uploads"
    S3_ENDPOINT_URL: str | None = None
    S3_REGION: str = "auto"
    S3_ACCESS_KEY_ID: str | None = None
    S3_SECRET_ACCESS_KEY: str | None = None
    S3_PUBLIC_URL_TEMPLATE: str = "https://{bucket}.fly.storage.tigris.dev/{key}"
    UPLOAD_URL_TTL: int = 360
    MAX_IMAGE_BYTES: int = 5 * 1024 * 1024
    MAX_VIDEO_BYTES: int = 5000 * 1024 * 1024

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
