"""Application settings and validation."""

import os
from pathlib import Path

_DEFAULT_DB = Path(__file__).resolve().parent.parent / "quiz_engine.db"


class Settings:
    ENV: str
    JWT_SECRET: str
    JWT_ALGORITHM: str
    ALLOW_INSECURE_JWT: bool
    DATABASE_URL: str
    ATTEMPT_TTL_SECONDS: int
    TIMER_WARNING_MINUTES: tuple
    ALLOW_RETAKE_AFTER_PASS: bool
    SUBMIT_GRACE_SECONDS: int
    LOG_LEVEL: str

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.JWT_SECRET = os.getenv("JWT_SECRET", "change_me_for_prod")
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.ALLOW_INSECURE_JWT = os.getenv("ALLOW_INSECURE_JWT", "false").lower() == "true"
        self.DATABASE_URL = os.getenv("QUIZ_ENGINE_DB_URL", f"sqlite:///{_DEFAULT_DB}")
        self.ATTEMPT_TTL_SECONDS = int(os.getenv("ATTEMPT_TTL_SECONDS", str(24 * 3600)))  # 1 day default
        self.TIMER_WARNING_MINUTES = _parse_minutes(os.getenv("TIMER_WARNING_MINUTES", "10,5,2,1"))
        self.ALLOW_RETAKE_AFTER_PASS = os.getenv("ALLOW_RETAKE_AFTER_PASS", "true").lower() == "true"
        self.SUBMIT_GRACE_SECONDS = int(os.getenv("SUBMIT_GRACE_SECONDS", "0"))
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self._validate()

    def _validate(self):
        if self.ENV != "dev" and not self.ALLOW_INSECURE_JWT and self.JWT_SECRET == "change_me_for_prod":
            raise RuntimeError("JWT_SECRET must be set to a non-default value in non-dev environments")
        if self.ATTEMPT_TTL_SECONDS <= 0:
            raise RuntimeError("ATTEMPT_TTL_SECONDS must be positive")
        if self.SUBMIT_GRACE_SECONDS < 0:
            raise RuntimeError("SUBMIT_GRACE_SECONDS must not be negative")


def _parse_minutes(raw: str) -> tuple:
    values = sorted({int(part) for part in raw.split(",") if part.strip()}, reverse=True)
    if any(v <= 0 for v in values):
        raise RuntimeError("TIMER_WARNING_MINUTES must be positive integers")
    return tuple(values)


settings = Settings()
