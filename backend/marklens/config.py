"""
config.py — Environment-driven settings and analysis thresholds.

Values are read from the process environment (populated from ``.env`` by
``main.py``). Thresholds are grouped into their own dataclass so analysis
functions take them as an argument instead of embedding literals.
"""

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List

INVALID_MARK_POLICIES = ("reject", "zero", "exclude")


@dataclass(frozen=True)
class Thresholds:
    at_risk: float = 50.0
    weak_subject: float = 60.0
    strong_subject: float = 80.0
    excellent: float = 80.0
    good_progress: float = 60.0
    trend_margin: float = 2.0

    def as_dict(self) -> dict:
        return {
            "at_risk": self.at_risk,
            "weak_subject": self.weak_subject,
            "strong_subject": self.strong_subject,
            "excellent": self.excellent,
            "good_progress": self.good_progress,
            "trend_margin": self.trend_margin,
        }


@dataclass(frozen=True)
class Settings:
    app_name: str = "MarkLens"
    thresholds: Thresholds = field(default_factory=Thresholds)
    invalid_mark_policy: str = "reject"
    record_store_url: str = ""
    record_store_collection: str = "studentmarks"
    record_store_api_key: str = ""
    record_store_timeout: float = 20.0
    page_size: int = 1000
    cors_origins: List[str] = field(
        default_factory=lambda: ["http://localhost:5173", "http://localhost:3000"]
    )

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables, falling back to defaults."""
        thresholds = Thresholds(
            at_risk=_env_float("AT_RISK_THRESHOLD", 50.0),
            weak_subject=_env_float("WEAK_SUBJECT_THRESHOLD", 60.0),
            strong_subject=_env_float("STRONG_SUBJECT_THRESHOLD", 80.0),
            excellent=_env_float("EXCELLENT_THRESHOLD", 80.0),
            good_progress=_env_float("GOOD_PROGRESS_THRESHOLD", 60.0),
            trend_margin=_env_float("TREND_MARGIN", 2.0),
        )

        policy = os.getenv("INVALID_MARK_POLICY", "reject").strip().lower()
        if policy not in INVALID_MARK_POLICIES:
            raise ValueError(
                f"INVALID_MARK_POLICY must be one of {INVALID_MARK_POLICIES}, got '{policy}'."
            )

        page_size = int(os.getenv("RECORD_STORE_PAGE_SIZE", "1000"))
        if page_size <= 0:
            raise ValueError("RECORD_STORE_PAGE_SIZE must be a positive integer.")

        # Comma-separated allowed origins, e.g. http://localhost:5173,https://app.example.com
        raw_origins = os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000")

        return cls(
            app_name=os.getenv("APP_NAME", "MarkLens"),
            thresholds=thresholds,
            invalid_mark_policy=policy,
            record_store_url=os.getenv("RECORD_STORE_URL", "").strip(),
            record_store_collection=os.getenv("RECORD_STORE_COLLECTION", "studentmarks").strip(),
            record_store_api_key=os.getenv("RECORD_STORE_API_KEY", "").strip(),
            record_store_timeout=_env_float("RECORD_STORE_TIMEOUT_SECONDS", 20.0),
            page_size=page_size,
            cors_origins=[o.strip() for o in raw_origins.split(",") if o.strip()],
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got '{raw}'.")
