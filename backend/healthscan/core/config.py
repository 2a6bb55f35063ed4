from functools import lru_cache
from pathlib import Path
from typing import Dict, Literal

from pydantic_settings import BaseSettings

_PROJECT_ROOT = Path(__file__).resolve().parents[2]


class Settings(BaseSettings):
    app_name: str = "Health Scan Classifier Gateway"
    api_prefix: str = "/api"
    cors_origins: list[str] = ["*"]  # The mobile client calls from arbitrary origins.
    log_level: str = "INFO"

    # "strict" surfaces missing/broken models as errors, "heuristic" answers
    # with the payload-size pseudo-predictions instead.
    fallback_policy: Literal["strict", "heuristic"] = "strict"
    default_body_part: str = "eye"

    model_root: Path = _PROJECT_ROOT / "trained_models"
    # Body part -> checkpoint directory (relative to model_root). Parts that
    # are not listed have no backend.
    model_dirs: Dict[str, str] = {"eyes": "eye_classifier"}
    device: str = "cpu"
    image_size: int = 224

    heuristic_large_bytes: int = 50_000
    heuristic_medium_bytes: int = 20_000

    class Config:
        env_file = ".env"
        env_prefix = "HEALTHSCAN_"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
