"""
Configuration settings for DispatchDesk
"""
import os
from pathlib import Path
from typing import List
from dotenv import load_dotenv
from pydantic_settings import BaseSettings

# Resolve .env paths relative to this file so settings load regardless of cwd.
_PACKAGE_DIR = Path(__file__).resolve().parent   # dispatchdesk/
_PROJECT_ROOT = _PACKAGE_DIR.parent               # repository root
_ENV_CANDIDATES = [
    _PACKAGE_DIR / ".env",
    _PROJECT_ROOT / ".env",
]
_ENV_FILE = [str(p) for p in _ENV_CANDIDATES if p.is_file()]

# Load .env into os.environ so the os.getenv defaults below see it.
for _candidate in _ENV_CANDIDATES:
    if _candidate.is_file():
        load_dotenv(_candidate, override=False)
        break


class Settings(BaseSettings):
    """Application settings"""

    # App
    APP_NAME: str = "DispatchDesk"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = os.getenv("DEBUG", "False").lower() == "true"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # Database (SQLite for local work, PostgreSQL in production)
    DATABASE_URL: str = os.getenv("DATABASE_URL", f"sqlite:///{_PROJECT_ROOT / 'dispatchdesk.db'}")

    # Money
    BASE_CURRENCY: str = os.getenv("BASE_CURRENCY", "GBP")  # display only
    MONEY_DECIMAL_PLACES: int = int(os.getenv("MONEY_DECIMAL_PLACES", "2"))

    @property
    def database_connection_string(self) -> str:
        """Database connection string"""
        return self.DATABASE_URL

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    # CORS - parse from comma-separated string or use default
    CORS_ORIGINS: str = "http://localhost:3000,http://127.0.0.1:3000"

    _DEV_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    @property
    def cors_origins_list(self) -> List[str]:
        """Get CORS origins as a list. Always includes the local dev origins."""
        if not self.CORS_ORIGINS:
            return list(dict.fromkeys(self._DEV_ORIGINS))
        origins = [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]
        # "*" cannot be combined with allow_credentials=True; use explicit list instead
        if "*" in origins:
            return list(dict.fromkeys(self._DEV_ORIGINS))
        return list(dict.fromkeys(origins + self._DEV_ORIGINS))

    class Config:
        env_file = _ENV_FILE if _ENV_FILE else [".env"]
        case_sensitive = True
        extra = "ignore"


settings = Settings()
