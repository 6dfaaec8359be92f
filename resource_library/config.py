from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

_DATA_DIR = Path(__file__).resolve().parent / "data"

SUBJECTS = (
    "Math",
    "Chinese",
    "English",
    "Physics",
    "Chemistry",
    "Biology",
    "History",
    "Geography",
    "Art",
    "Music",
)
RESOURCE_TYPES = ("document", "video", "audio", "image", "link", "exercise", "other")
GRADES = (1, 2, 3, 4, 5, 6)

AGGREGATION_STRATEGIES = ("incremental", "recompute")


@dataclass(frozen=True)
class AppConfig:
    session_secret: str = os.getenv(
        "SESSION_SECRET", "resource-library-secret-change-in-production"
    )
    catalog_path: Path = Path(os.getenv("CATALOG_CSV", str(_DATA_DIR / "resources.csv")))
    event_log_size: int = int(os.getenv("EVENT_LOG_SIZE", "10000"))


@dataclass(frozen=True)
class AggregationConfig:
    strategy: str = os.getenv("RATING_AGGREGATION_STRATEGY", "incremental")

    def __post_init__(self) -> None:
        if self.strategy not in AGGREGATION_STRATEGIES:
            raise ValueError(
                f"Unknown aggregation strategy {self.strategy!r}, "
                f"expected one of {AGGREGATION_STRATEGIES}"
            )


@dataclass(frozen=True)
class RecommendationConfig:
    min_average_rating: float = 4.0
    min_review_count: int = 3
    default_limit: int = 10
    max_limit: int = 50
    cache_ttl: float = 300.0  # 5 minutes
    similarity_threshold: float = 0.3
    user_weight: float = 0.5
    item_weight: float = 0.5


DEFAULT_APP_CONFIG = AppConfig()
DEFAULT_AGGREGATION_CONFIG = AggregationConfig()
DEFAULT_RECOMMENDATION_CONFIG = RecommendationConfig()
