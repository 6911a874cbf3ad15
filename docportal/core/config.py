from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional

class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./docportal.db"
    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    # Supabase Auth
    SUPABASE_URL: Optional[str] = None

    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Document storage
    UPLOADS_DIR: str = "uploads"
    MAX_UPLOAD_MB: int = 15
    ALLOWED_UPLOAD_TYPES: List[str] = ["application/pdf"]

    # Verification codes (uppercase, human-enterable)
    VERIFICATION_CODE_LENGTH: int = 10
    VERIFICATION_CODE_ATTEMPTS: int = 5

    # Download watermarking
    WATERMARK_ENABLED: bool = True
    WATERMARK_TIMESTAMP_FORMAT: str = "%d/%m/%Y %H:%M:%S UTC"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
