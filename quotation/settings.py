# quotation/settings.py
import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PACKAGE_ROOT = Path(__file__).resolve().parent
DEFAULT_CONFIG_PATH = PACKAGE_ROOT / "config" / "modules.yaml"


class Settings(BaseSettings):
    # === Algemeen ===
    app_env: str = "local"  # local | development | production

    # === Configuratie tabel ===
    config_path: str = Field(str(DEFAULT_CONFIG_PATH), description="YAML table with tunable constants")
    config_overrides_path: Optional[str] = Field(
        None, description="Optional YAML file whose leaves replace values of the base table"
    )

    # === Logging ===
    log_level: str = "INFO"
    log_json: bool = False

    # === Aggregatie ===
    margin_rate: str = "0.30"
    risk_score_cap: int = 100
    manual_review_threshold: int = 70

    model_config = SettingsConfigDict(
        env_prefix="QUOTATION_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Singleton Settings instance met simpele env-overrides."""
    s = Settings()

    env = os.getenv("ENVIRONMENT", s.app_env).lower()
    if env == "production":
        s.log_level = "WARNING"
        s.log_json = True
    elif env == "development":
        s.log_level = "DEBUG"

    return s
