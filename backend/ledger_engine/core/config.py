"""
Application Configuration
"""
from pydantic_settings import BaseSettings
from typing import List
import warnings

DEFAULT_SECRET_KEY = "your-super-secret-key-change-in-production-min-32-chars"


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    APP_NAME: str = "Ledger Engine API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"  # development, staging, production
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./ledger.db"

    # Security (tokens are issued by the identity provider, we only decode them)
    SECRET_KEY: str = DEFAULT_SECRET_KEY
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440  # 24 hours

    # CORS
    CORS_ORIGINS: str = "http://localhost:5000,http://127.0.0.1:5000"

    # Trial balance import
    IMPORT_MAX_BYTES: int = 10 * 1024 * 1024

    # Pagination
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 200

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    def validate_security_settings(self):
        """Refuse an insecure signing key or DEBUG in production; warn elsewhere"""
        problems = []
        if self.SECRET_KEY == DEFAULT_SECRET_KEY or len(self.SECRET_KEY) < 32:
            problems.append("SECRET_KEY must be the identity provider's signing key (32+ characters)")
        if self.is_production and self.DEBUG:
            problems.append("DEBUG must be False")

        if self.is_production and problems:
            raise ValueError("Insecure production settings: " + "; ".join(problems))
        for problem in problems:
            warnings.warn(problem, UserWarning)

        if self.is_production and self.DATABASE_URL.startswith("sqlite"):
            warnings.warn("SQLite is configured in production; concurrent postings need a server database", UserWarning)
        return True

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
settings.validate_security_settings()
