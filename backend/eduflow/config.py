"""Application settings and validation."""

import os
from pathlib import Path

BASE = Path(__file__).resolve().parent.parent


class Settings:
    ENV: str
    DATABASE_URL: str
    DB_POOL_SIZE: int
    DB_MAX_OVERFLOW: int
    DB_POOL_TIMEOUT: float
    ARGON2_TIME_COST: int
    ARGON2_MEMORY_COST: int
    TOKEN_SWEEP_INTERVAL_SECONDS: int
    ALLOW_DEV_CORS: bool
    LOG_LEVEL: str

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE / 'eduflow.db'}")
        self.DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "5"))
        self.DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "10"))
        self.DB_POOL_TIMEOUT = float(os.getenv("DB_POOL_TIMEOUT", "10"))
        self.ARGON2_TIME_COST = int(os.getenv("ARGON2_TIME_COST", "3"))
        self.ARGON2_MEMORY_COST = int(os.getenv("ARGON2_MEMORY_COST", "65536"))  # KiB
        self.TOKEN_SWEEP_INTERVAL_SECONDS = int(os.getenv("TOKEN_SWEEP_INTERVAL_SECONDS", "3600"))
        self.ALLOW_DEV_CORS = os.getenv("ALLOW_DEV_CORS", "true").lower() == "true"
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self._validate()

    def _validate(self):
        if self.DB_POOL_SIZE < 1 or self.DB_MAX_OVERFLOW < 0 or self.DB_POOL_TIMEOUT <= 0:
            raise RuntimeError("DB_POOL_SIZE, DB_MAX_OVERFLOW and DB_POOL_TIMEOUT must be positive")
        if self.ARGON2_TIME_COST < 1 or self.ARGON2_MEMORY_COST < 8:
            raise RuntimeError("ARGON2_TIME_COST must be >= 1 and ARGON2_MEMORY_COST >= 8 KiB")
        if self.TOKEN_SWEEP_INTERVAL_SECONDS < 0:
            raise RuntimeError("TOKEN_SWEEP_INTERVAL_SECONDS must not be negative")
        if self.ENV == "prod" and self.ALLOW_DEV_CORS:
            raise RuntimeError("ALLOW_DEV_CORS must be disabled in prod")


settings = Settings()
