from pydantic_settings import BaseSettings
from typing import List, Any
import json
from pathlib import Path


def parse_cors_origins(v: Any) -> List[str]:
    """Parse CORS origins from string or list"""
    if isinstance(v, list):
        return v
    if isinstance(v, str):
        # Try JSON parsing first
        if v.startswith('['):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        # Fall back to comma-separated
        return [origin.strip() for origin in v.split(',') if origin.strip()]
    return []


class Settings(BaseSettings):
    """Application settings - all configurable via environment variables"""

    # ==========================================
    # Application
    # ==========================================
    APP_NAME: str = "School Info Hub"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    SECRET_KEY: str
    API_VERSION: str = "v1"

    # Server Configuration
    SERVER_HOST: str = "0.0.0.0"
    SERVER_PORT: int = 8000

    # ==========================================
    # Database
    # ==========================================
    DATABASE_URL: str = "sqlite+aiosqlite:///./infohub.db"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800  # 30 minutes
    DB_ECHO: bool = False

    # ==========================================
    # Redis (optional - response cache / rate limit storage)
    # ==========================================
    REDIS_URL: str = "redis://localhost:6379/0"

    # ==========================================
    # Authentication
    # ==========================================
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 10080  # 7 days
    REFRESH_TOKEN_EXPIRE_DAYS: int = 30
    PASSWORD_RESET_EXPIRE_MINUTES: int = 60
    BCRYPT_ROUNDS: int = 12  # 4 for dev (fast), 12 for prod (secure)
    AUTH_COOKIE_NAME: str = "auth-token"
    DEFAULT_APPROVED_ROLE: str = "office_member"

    # Admin account created by `python -m infohub.db.seed_data`
    SEED_ADMIN_EMAIL: str = "admin@school.example"
    SEED_ADMIN_PASSWORD: str = ""

    # Comma-separated API keys accepted from internal tooling (X-API-Key)
    INTERNAL_API_KEYS_STR: str = ""

    @property
    def INTERNAL_API_KEYS(self) -> List[str]:
        return parse_cors_origins(self.INTERNAL_API_KEYS_STR)

    # ==========================================
    # Google OAuth
    # ==========================================
    GOOGLE_CLIENT_ID: str = ""
    GOOGLE_CLIENT_SECRET: str = ""
    GOOGLE_REDIRECT_URI: str = "http://localhost:3000/auth/callback/google"
    # Accounts from these domains are approved on first sign-in
    GOOGLE_ALLOWED_DOMAINS_STR: str = ""

    @property
    def GOOGLE_ALLOWED_DOMAINS(self) -> List[str]:
        return [d.lower() for d in parse_cors_origins(self.GOOGLE_ALLOWED_DOMAINS_STR)]

    FRONTEND_URL: str = "http://localhost:3000"

    # ==========================================
    # Email
    # ==========================================
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    EMAIL_FROM: str = "noreply@school.example"
    EMAIL_FROM_NAME: str = "School Info Hub"
    EMAIL_QUEUE_BATCH_SIZE: int = 10
    EMAIL_QUEUE_INTERVAL_SECONDS: float = 1.0
    EMAIL_MAX_RETRIES: int = 3
    EMAIL_RETRY_DELAY_SECONDS: int = 60

    # ==========================================
    # CORS (stored as comma-separated string, parsed to list)
    # ==========================================
    CORS_ORIGINS_STR: str = "http://localhost:3000,http://127.0.0.1:3000"

    @property
    def CORS_ORIGINS(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        return parse_cors_origins(self.CORS_ORIGINS_STR)

    # ==========================================
    # Rate Limiting
    # ==========================================
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_PER_MINUTE: int = 100
    RATE_LIMIT_STORAGE_URI: str = "memory://"

    # ==========================================
    # Performance & Caching
    # ==========================================
    PERFORMANCE_LOG_SIZE: int = 1000
    SLOW_REQUEST_MS: int = 500
    SLOW_QUERY_MS: int = 100
    CACHE_BACKEND: str = "memory"  # "memory" or "redis"
    CACHE_DEFAULT_TTL: int = 300  # 5 minutes
    CACHE_MAX_ENTRIES: int = 1000  # memory backend only
    CACHE_PATH_PREFIXES_STR: str = "/api/v1/public"

    @property
    def CACHE_PATH_PREFIXES(self) -> List[str]:
        return parse_cors_origins(self.CACHE_PATH_PREFIXES_STR)

    # ==========================================
    # Request validation & uploads
    # ==========================================
    MAX_REQUEST_SIZE: int = 10 * 1024 * 1024  # 10MB
    MAX_UPLOAD_SIZE_MB: int = 25
    UPLOAD_DIR: str = "uploads"

    # ==========================================
    # Notifications
    # ==========================================
    NOTIFICATION_DEDUP_HOURS: int = 24
    SSE_HEARTBEAT_SECONDS: int = 30

    # ==========================================
    # Logging
    # ==========================================
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env that aren't defined in Settings

    @property
    def UPLOAD_PATH(self) -> Path:
        return Path(self.UPLOAD_DIR).resolve()

    def is_dev_mode(self) -> bool:
        """Check if running in development mode"""
        return self.ENVIRONMENT == "development" or self.DEBUG

    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"


# Create settings instance
settings = Settings()
