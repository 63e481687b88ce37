"""Runtime configuration for FeedWatch.

Environment variables pick the database and config file locations; the
detection parameters live in a JSON file so thresholds can be tuned without
touching detector code. Missing keys fall back to the defaults below.
"""

import json
import logging
import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()

logger = logging.getLogger(__name__)

DB_PATH = os.environ.get("FEEDWATCH_DB", "feedwatch.db")
CONFIG_PATH = os.environ.get(
    "FEEDWATCH_CONFIG",
    os.path.join(os.path.dirname(__file__), "..", "configs", "detection.json"),
)


class DetectionConfig(BaseModel):
    """Windows and thresholds shared by the change detectors."""
    job_window_days: int = 7
    update_window_days: int = 7
    warm_path_window_days: int = 30
    min_new_jobs: int = 3          # also the "warming" tier
    heat_hot: int = 6
    heat_very_hot: int = 10
    match_score_cutoff: int = 50
    top_job_titles: int = 3
    preview_max_chars: int = 200
    feed_retention_days: int = 30


def load_config(path: Optional[str] = None) -> DetectionConfig:
    """Load detection parameters from JSON, falling back to defaults."""
    config_path = path or CONFIG_PATH

    if not os.path.exists(config_path):
        logger.info("No detection config at %s, using defaults", config_path)
        return DetectionConfig()

    with open(config_path) as f:
        data = json.load(f)

    logger.info("Loaded detection config from %s", config_path)
    return DetectionConfig(**data)
