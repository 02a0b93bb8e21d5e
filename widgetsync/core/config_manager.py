
import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Optional

import aiofiles

from .logging_config import configure_logging
from .logging_utils import get_module_logger


logger = get_module_logger("ConfigManager")

DEFAULT_MSG_THROTTLE = 3


class ConfigManager:

    def __init__(self):
        self.logger = get_module_logger("ConfigManager")

    # ------------------------------------------------------------------
    # Internal helpers

    def _parse_config_lines(self, lines: Iterable[str]) -> Dict[str, str]:
        config: Dict[str, str] = {}

        for raw_line in lines:
            line = raw_line.strip()
            if not line or line.startswith('#'):
                continue
            if '=' not in line:
                continue

            key, value = line.split('=', 1)
            key = key.strip()
            value = value.strip()

            if '#' in value:
                value = value.split('#')[0].strip()

            if (value.startswith('"') and value.endswith('"')) or (value.startswith("'") and value.endswith("'")):
                value = value[1:-1]

            config[key] = value

        return config

    def read_config(self, config_path: Path) -> Dict[str, str]:
        """Read a ``key = value`` file; a missing or unreadable file gives ``{}``."""
        config_path = Path(config_path)
        if not config_path.exists():
            return {}

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                return self._parse_config_lines(f)
        except OSError as e:
            logger.error("Failed to read config %s: %s", config_path, e)
            return {}

    async def read_config_async(self, config_path: Path) -> Dict[str, str]:
        """Async version for use in async contexts."""
        config_path = Path(config_path)
        if not await asyncio.to_thread(config_path.exists):
            return {}

        try:
            lines: list[str] = []
            async with aiofiles.open(config_path, 'r', encoding='utf-8') as f:
                async for line in f:
                    lines.append(line)
        except OSError as e:
            logger.error("Failed to read config %s: %s", config_path, e)
            return {}

        return self._parse_config_lines(lines)

    def get_bool(self, config: Dict[str, str], key: str, default: bool = False) -> bool:
        if key not in config:
            return default

        value = config[key].lower()
        return value in ('true', '1', 'yes', 'on')

    def get_int(self, config: Dict[str, str], key: str, default: int = 0) -> int:
        if key not in config:
            return default

        try:
            return int(config[key])
        except ValueError:
            logger.warning("Invalid int value for %s: %s, using default %d", key, config[key], default)
            return default

    def get_float(self, config: Dict[str, str], key: str, default: float = 0.0) -> float:
        if key not in config:
            return default

        try:
            return float(config[key])
        except ValueError:
            logger.warning("Invalid float value for %s: %s, using default %f", key, config[key], default)
            return default

    def get_str(self, config: Dict[str, str], key: str, default: str = "") -> str:
        return config.get(key, default)


_config_manager = ConfigManager()


def get_config_manager() -> ConfigManager:
    return _config_manager


@dataclass
class SyncSettings:
    """Engine-wide defaults, optionally read from a config file."""
    msg_throttle: int = DEFAULT_MSG_THROTTLE
    log_level: str = "INFO"
    log_file: Optional[Path] = None

    @classmethod
    def from_config(cls, config: Dict[str, str]) -> "SyncSettings":
        cm = get_config_manager()
        throttle = cm.get_int(config, "msg_throttle", DEFAULT_MSG_THROTTLE)
        if throttle < 1:
            logger.warning("msg_throttle must be >= 1, got %d; using %d", throttle, DEFAULT_MSG_THROTTLE)
            throttle = DEFAULT_MSG_THROTTLE
        log_file = cm.get_str(config, "log_file")
        return cls(
            msg_throttle=throttle,
            log_level=cm.get_str(config, "log_level", "INFO").upper(),
            log_file=Path(log_file) if log_file else None,
        )

    def configure_logging(self, **kwargs) -> None:
        """Apply ``log_level`` and ``log_file`` to the root logger."""
        configure_logging(self.log_level, log_file=self.log_file, **kwargs)

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "SyncSettings":
        if config_path is None:
            return cls()
        return cls.from_config(get_config_manager().read_config(config_path))

    @classmethod
    async def load_async(cls, config_path: Optional[Path] = None) -> "SyncSettings":
        if config_path is None:
            return cls()
        return cls.from_config(await get_config_manager().read_config_async(config_path))
