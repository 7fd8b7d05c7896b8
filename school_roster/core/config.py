# school_roster/core/config.py
import os
from typing import ClassVar
from pydantic import BaseModel, Field
from dotenv import load_dotenv

load_dotenv()

def _default_database_url() -> str:
    data_dir = os.path.abspath(os.getenv("DATA_DIR", "./data"))
    os.makedirs(data_dir, exist_ok=True)
    return os.getenv("DATABASE_URL", f"sqlite:///{os.path.join(data_dir, 'roster.db')}")

def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}

class Settings(BaseModel):
    # Constants (not pydantic fields)
    DATA_DIR: ClassVar[str] = os.path.abspath(os.getenv("DATA_DIR", "./data"))
    CLASS_NAMES: ClassVar[tuple[str, ...]] = tuple(f"Class {n}" for n in range(1, 13))
    SECTIONS: ClassVar[tuple[str, ...]] = ("A", "B", "C", "D", "E")

    DATABASE_URL: str = Field(default_factory=_default_database_url)
    SECRET_KEY: str = Field(default_factory=lambda: os.getenv("SECRET_KEY", "CHANGE_ME_SUPER_SECRET"))
    ALGORITHM: str = Field(default_factory=lambda: os.getenv("JWT_ALGORITHM", "HS256"))
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default_factory=lambda: int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "1440")))

    # storage calls never block longer than this
    DB_TIMEOUT_SECONDS: int = Field(default_factory=lambda: int(os.getenv("DB_TIMEOUT_SECONDS", "10")))
    READ_RETRY_ATTEMPTS: int = Field(default_factory=lambda: int(os.getenv("READ_RETRY_ATTEMPTS", "2")))

    ROLL_NUMBER_BASE: int = Field(default_factory=lambda: int(os.getenv("ROLL_NUMBER_BASE", "101")))
    ROLL_ALLOCATION_ATTEMPTS: int = Field(default_factory=lambda: int(os.getenv("ROLL_ALLOCATION_ATTEMPTS", "3")))
    MAX_PAGE_SIZE: int = Field(default_factory=lambda: int(os.getenv("MAX_PAGE_SIZE", "50")))

    LOG_LEVEL: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())
    AUTO_MIGRATE: bool = Field(default_factory=lambda: _flag("AUTO_MIGRATE", "true"))
    SEED_ADMIN_USERNAME: str = Field(default_factory=lambda: os.getenv("SEED_ADMIN_USERNAME", "admin"))
    SEED_ADMIN_PASSWORD: str = Field(default_factory=lambda: os.getenv("SEED_ADMIN_PASSWORD", "admin123"))

settings = Settings()
