"""
Configuration management for the Kafka Tool.
"""

import os
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv

# Consumer group owned by the tool, used only to seed a repeatable read position
KAFKA_GROUP_ID = "mtools"


@dataclass
class ToolSettings:
    """Runtime settings for the Kafka Tool core and its local API."""

    # Profile persistence
    config_path: str = ".config"

    # Kafka client behaviour
    work_group_id: str = KAFKA_GROUP_ID
    client_id: str = "kafka-tool"
    poll_timeout_ms: int = 1000
    max_poll_records: int = 500
    max_poll_cycles: int = 10000
    request_timeout_ms: int = 30000

    # Local API
    api_host: str = "localhost"
    api_port: int = 3100
    shell_origins: List[str] = field(default_factory=list)

    @classmethod
    def from_env(cls) -> "ToolSettings":
        """Create settings from environment variables."""
        settings = cls()

        settings.config_path = os.getenv("KAFKA_TOOL_CONFIG_PATH", settings.config_path)
        settings.work_group_id = os.getenv("KAFKA_TOOL_WORK_GROUP", settings.work_group_id)
        settings.client_id = os.getenv("KAFKA_TOOL_CLIENT_ID", settings.client_id)
        settings.poll_timeout_ms = int(os.getenv(
            "KAFKA_TOOL_POLL_TIMEOUT_MS",
            str(settings.poll_timeout_ms)
        ))
        settings.max_poll_records = int(os.getenv(
            "KAFKA_TOOL_MAX_POLL_RECORDS",
            str(settings.max_poll_records)
        ))
        settings.max_poll_cycles = int(os.getenv(
            "KAFKA_TOOL_MAX_POLL_CYCLES",
            str(settings.max_poll_cycles)
        ))
        settings.request_timeout_ms = int(os.getenv(
            "KAFKA_TOOL_REQUEST_TIMEOUT_MS",
            str(settings.request_timeout_ms)
        ))

        settings.api_host = os.getenv("KAFKA_TOOL_API_HOST", settings.api_host)
        settings.api_port = int(os.getenv("KAFKA_TOOL_API_PORT", str(settings.api_port)))
        origins = os.getenv("KAFKA_TOOL_SHELL_ORIGINS", "")
        settings.shell_origins = [o.strip() for o in origins.split(",") if o.strip()]

        return settings

    def validate(self) -> None:
        """Validate the settings."""
        errors = []

        if not self.config_path:
            errors.append("config_path is required")
        if not self.work_group_id:
            errors.append("work_group_id is required")
        if self.poll_timeout_ms <= 0:
            errors.append("poll_timeout_ms must be positive")
        if self.max_poll_records <= 0:
            errors.append("max_poll_records must be positive")
        if self.max_poll_cycles <= 0:
            errors.append("max_poll_cycles must be positive")
        if self.request_timeout_ms <= 0:
            errors.append("request_timeout_ms must be positive")
        if self.api_port <= 0:
            errors.append("api_port must be positive")

        if errors:
            raise ValueError(f"Configuration validation failed: {'; '.join(errors)}")


def get_settings() -> ToolSettings:
    """Get the validated settings instance."""
    load_dotenv()
    settings = ToolSettings.from_env()
    settings.validate()
    return settings
