# errorlytic/config.py
from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    """Application configuration using Pydantic settings"""

    # App Info
    APP_NAME: str = "Errorlytic Diagnostic Quotation Service"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True

    # Database
    DATABASE_URL: str = "sqlite:///./errorlytic.db"

    # Report storage
    STORAGE_DIR: str = "./uploads"
    MAX_UPLOAD_SIZE: int = 10 * 1024 * 1024  # 10 MB
    ALLOWED_EXTENSIONS: dict = {
        "txt": [".txt", ".log"],
        "csv": [".csv", ".tsv"],
        "xlsx": [".xlsx", ".xlsm"],
        "xml": [".xml"],
        "pdf": [".pdf"]
    }

    # CORS
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",  # Vite default
    ]

    # Logging
    LOG_DIR: str = "./logs"
    LOG_LEVEL: str = "INFO"
    LOG_MAX_BYTES: int = 10 * 1024 * 1024
    LOG_BACKUP_COUNT: int = 5

    # Parser / classifier
    RAW_CONTENT_PREVIEW_CHARS: int = 1000
    DEFAULT_FAULT_COST: float = 10000  # KES, unknown fault codes

    # AI enrichment (disabled when no key is configured)
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_BASE_URL: Optional[str] = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    AI_TIMEOUT_SECONDS: float = 15.0
    AI_MAX_EXPLANATIONS: int = 10
    AI_MAX_WORKERS: int = 4
    AI_BASE_CONFIDENCE: float = 0.8

    # Quotation defaults (catalog and labor rate are denominated in KES)
    DEFAULT_CURRENCY: str = "KES"
    DEFAULT_LABOR_RATE: float = 2500
    DEFAULT_MARKUP_PCT: float = 15
    DEFAULT_TAX_PCT: float = 16
    DEFAULT_OEM_PART_PRICE: float = 5000
    DEFAULT_AFTERMARKET_PART_PRICE: float = 2500

    # Public links to shared quotations
    FRONTEND_URL: str = "http://localhost:3000"

    class Config:
        env_file = ".env"
        case_sensitive = True

# Singleton instance
settings = Settings()
