"""Application configuration."""
import os
from dataclasses import dataclass


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


@dataclass
class StudioApiConfig:
    """Mapper Studio backend configuration."""

    base_url: str = "http://localhost:8081"
    api_key: str = ""  # Read from env or prompted by config-api
    timeout: int = 60
    studio_prefix: str = "/api/studio"
    conversation_prefix: str = "/api/v1/conversation"

    @property
    def studio_url(self) -> str:
        return f"{self.base_url.rstrip('/')}{self.studio_prefix}"

    @property
    def conversation_url(self) -> str:
        return f"{self.base_url.rstrip('/')}{self.conversation_prefix}"

    @classmethod
    def from_env(cls) -> "StudioApiConfig":
        """Load config from environment variables."""
        return cls(
            base_url=os.getenv("MAPPER_STUDIO_API_URL", "http://localhost:8081"),
            api_key=os.getenv("MAPPER_STUDIO_API_KEY", ""),
            timeout=int(_env_float("MAPPER_STUDIO_TIMEOUT", 60)),
        )


@dataclass
class AppConfig:
    """Application configuration."""

    output_dir: str = "./output"
    project_code: str = "CAR_MODIFICATION_BNZADPT"
    mapping_version: str = "1.0.0"
    source_type: str = "JSON"
    target_type: str = "JSON"
    poll_interval: float = 2.0
    log_level: str = "INFO"
    studio_api: StudioApiConfig = None

    def __post_init__(self):
        """Initialize defaults."""
        if self.studio_api is None:
            self.studio_api = StudioApiConfig.from_env()

    @property
    def snapshot_dir(self) -> str:
        return os.path.join(self.output_dir, "snapshots")

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Load config from environment variables."""
        return cls(
            output_dir=os.getenv("MAPPER_STUDIO_OUTPUT_DIR", "./output"),
            project_code=os.getenv("MAPPER_STUDIO_PROJECT_CODE", "CAR_MODIFICATION_BNZADPT"),
            mapping_version=os.getenv("MAPPER_STUDIO_MAPPING_VERSION", "1.0.0"),
            source_type=os.getenv("MAPPER_STUDIO_SOURCE_TYPE", "JSON"),
            target_type=os.getenv("MAPPER_STUDIO_TARGET_TYPE", "JSON"),
            poll_interval=_env_float("MAPPER_STUDIO_POLL_INTERVAL", 2.0),
            log_level=os.getenv("MAPPER_STUDIO_LOG_LEVEL", "INFO"),
            studio_api=StudioApiConfig.from_env(),
        )


# Global instance
app_config = AppConfig.from_env()
