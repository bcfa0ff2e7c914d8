"""
Persistence of the connection profile list.
"""
import uuid
from pathlib import Path
from typing import Dict, List

from pydantic import ValidationError

from .exceptions import ConfigLoadError, ProfileNotFoundError
from .models import ConnectionConfig, ToolConfig
from ..logger_config import setup_logger

logger = setup_logger(__name__)


class ConfigStore:
    """
    JSON-file backed store of connection profiles.

    A file that cannot be parsed is deleted on load and the store starts empty.
    """

    def __init__(self, path: str = ".config"):
        self.path = Path(path)
        self.config = ToolConfig()

    def load(self) -> ToolConfig:
        """Load the profile list, discarding a corrupt file."""
        if not self.path.exists():
            self.config = ToolConfig()
            return self.config

        raw = self.path.read_bytes()
        try:
            self.config = ToolConfig.model_validate_json(raw)
        except ValidationError as e:
            error = ConfigLoadError(f"Discarding unreadable configuration {self.path}: {e}")
            logger.error(str(error))
            self.path.unlink()
            self.config = ToolConfig()

        logger.info(f"Loaded {len(self.config.kafka_configs)} connection profiles from {self.path}")
        return self.config

    def save(self, profile: ConnectionConfig) -> ConnectionConfig:
        """
        Insert or replace a profile by id and write the whole list.

        Returns:
            The stored profile, with an id assigned on first save
        """
        if not profile.id:
            profile = profile.model_copy(update={"id": str(uuid.uuid4())})

        configs = self.config.kafka_configs
        for index, existing in enumerate(configs):
            if existing.id == profile.id:
                configs[index] = profile
                break
        else:
            configs.append(profile)

        self._write()
        logger.info(f"Saved connection profile {profile.display_name} ({profile.id})")
        return profile

    def get(self, profile_id: str) -> ConnectionConfig:
        for profile in self.config.kafka_configs:
            if profile.id == profile_id:
                return profile
        raise ProfileNotFoundError(f"Unknown connection profile {profile_id}")

    def list(self) -> List[ConnectionConfig]:
        return list(self.config.kafka_configs)

    def grouped(self) -> Dict[str, List[ConnectionConfig]]:
        """Profiles grouped by their group label, groups in first-seen order."""
        groups: Dict[str, List[ConnectionConfig]] = {}
        for profile in self.config.kafka_configs:
            groups.setdefault(profile.group_label, []).append(profile)
        return groups

    def _write(self) -> None:
        if self.path.parent and not self.path.parent.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(self.config.model_dump_json(indent=2), encoding="utf-8")
