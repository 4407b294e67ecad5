from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    APP_ENV: str = "local"
    APP_NAME: str = "snapform"

    CORS_ORIGINS: str = "http://localhost:3000"

    DATABASE_URL: str
    REDIS_URL: str = "redis://localhost:6379/0"

    # Tokens are minted by the OAuth bridge and shared with this service.
    AUTH_JWT_SECRET: str = "change_me_auth"
    SUPER_ADMIN_EMAILS: str = ""

    SUBMISSION_RATE_LIMIT: int = 30
    SUBMISSION_RATE_WINDOW_SECONDS: int = 60

    S3_ENDPOINT: str = "http://localhost:9000"
    S3_ACCESS_KEY: str = ""
    S3_SECRET_KEY: str = ""
    S3_BUCKET: str = "snapform-uploads"
    S3_REGION: str = "auto"
    S3_USE_SSL: bool = True
    S3_PUBLIC_URL: str = ""
    MAX_UPLOAD_MB: int = 10
    UPLOAD_ALLOWED_MIME_TYPES: str = (
        "image/jpeg,image/png,image/gif,image/webp,image/svg+xml,application/pdf"
    )

    GOOGLE_SERVICE_ACCOUNT_EMAIL: str = ""
    GOOGLE_PRIVATE_KEY: str = ""
    SHEET_EMAIL_PLACEHOLDER: str = "N/A"
    SHEET_MULTI_VALUE_DELIMITER: str = ", "

    CELERY_TIMEZONE: str = "UTC"

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def super_admin_emails_set(self) -> set[str]:
        return {e.strip().lower() for e in self.SUPER_ADMIN_EMAILS.split(",") if e.strip()}

    @property
    def upload_allowed_mime_types_set(self) -> set[str]:
        return {m.strip().lower() for m in self.UPLOAD_ALLOWED_MIME_TYPES.split(",") if m.strip()}

    @property
    def google_private_key(self) -> str:
        # Keys pasted into env files usually carry literal "\n" sequences.
        return self.GOOGLE_PRIVATE_KEY.replace("\\n", "\n")

settings = Settings()
