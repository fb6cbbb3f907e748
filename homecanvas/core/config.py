"""
Configuration settings for the Home Canvas composite service
"""
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "Home Canvas API"
    version: str = "1.0.0"
    environment: str = "development"
    debug: bool = True

    # CORS
    cors_origins: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    # Google AI Studio
    google_ai_api_key: str = ""
    google_ai_image_model: str = "gemini-2.5-flash-image-preview"
    google_ai_temperature: float = 0.4

    # Composite pipeline
    composite_side: int = 1024  # Square side the image model expects
    output_jpeg_quality: int = 95
    generation_timeout_seconds: float = 120.0
    image_download_timeout_seconds: float = 30.0

    # History
    history_max_sessions: int = 500  # Least recently used sessions beyond this are evicted

    # File upload
    max_file_size: int = 10 * 1024 * 1024  # 10MB
    allowed_image_types: List[str] = ["image/jpeg", "image/png", "image/webp"]

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"  # Allow extra fields from .env


# Global settings instance
settings = Settings()
