"""
Runtime configuration for the Chapter Quiz skill.

All settings come from environment variables so the same code runs on
Lambda, against LocalStack, and in tests.
"""

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

DEFAULT_CONTENT_DIR = Path(__file__).parent / "quizzes"


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    """Environment-derived settings."""

    device_table_name: str = "ChapterQuizDeviceData"
    progress_table_name: str = "ChapterQuizProgress"
    content_dir: Path = DEFAULT_CONTENT_DIR
    aws_endpoint_url: str | None = None
    aws_region: str = "us-east-1"
    remote_sync_enabled: bool = True
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            device_table_name=os.environ.get("DYNAMODB_TABLE_NAME", cls.device_table_name),
            progress_table_name=os.environ.get("PROGRESS_TABLE_NAME", cls.progress_table_name),
            content_dir=Path(os.environ.get("QUIZ_CONTENT_DIR", str(DEFAULT_CONTENT_DIR))),
            aws_endpoint_url=os.environ.get("AWS_ENDPOINT_URL") or None,
            aws_region=os.environ.get("AWS_REGION", cls.aws_region),
            remote_sync_enabled=_env_flag("REMOTE_SYNC_ENABLED", True),
            log_level=os.environ.get("LOG_LEVEL", cls.log_level).upper(),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Settings for this process, read once."""
    return Settings.from_env()
