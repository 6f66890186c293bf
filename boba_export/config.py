from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application
    app_name: str = "Boba Export API"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True

    # FFmpeg
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"

    # Sources
    local_source_path: str = "/tmp/boba-sources"
    source_fetch_timeout_s: float = 60.0

    # Preprocessing
    # Maximum number of clips fetched/compressed at the same time
    preprocess_concurrency: int = 4
    audio_sample_rate: int = 48000

    # Output
    output_prefix: str = "boba_export"
    output_dir: str = "/tmp/boba-exports"


@lru_cache
def get_settings() -> Settings:
    return Settings()
