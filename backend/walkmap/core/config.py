from pydantic_settings import BaseSettings
from pydantic import field_validator

from walkmap.core.constants import DEFAULT_TOLERANCE_DEG


class Settings(BaseSettings):
    database_url: str = "sqlite+pysqlite:///data/walks.db"
    source_dir: str = "public/gpx"  # relative to working dir
    # Timezone for displaying track dates.
    # Examples: "America/New_York", "Europe/London", or "local" to use system tz.
    timezone: str = "local"
    log_level: str = "INFO"

    # Simplification
    simplify_tolerance: float = DEFAULT_TOLERANCE_DEG
    target_simplified_points: int = 50
    min_simplified_points: int = 10

    # Viewport query / LOD switching
    low_zoom_threshold: float = 8.0  # below this, no spatial filtering
    high_detail_zoom_threshold: float = 15.0  # at or above, serve full geometry
    near_point_threshold: float = 0.0005  # degrees, ~50 m

    # Narrative summaries (Ollama, optional)
    summaries_enabled: bool = True
    ollama_url: str = "http://localhost:11434"
    ollama_model: str = "gemma3:1b"
    ollama_timeout_seconds: float = 30.0
    ollama_probe_timeout_seconds: float = 5.0
    summary_region: str = "New York City"

    # Allow empty env strings for optional fields
    @field_validator("ollama_url", "ollama_model", mode="before")
    @classmethod
    def _empty_to_default(cls, v, info):
        if v in ("", None, "null", "None"):
            return cls.model_fields[info.field_name].default
        return v

    class Config:
        env_file = ".env"


settings = Settings()
