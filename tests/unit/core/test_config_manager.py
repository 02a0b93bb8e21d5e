"""Unit tests for ConfigManager and SyncSettings."""

from pathlib import Path
from unittest.mock import patch

import pytest

from widgetsync.core.config_manager import (
    DEFAULT_MSG_THROTTLE,
    ConfigManager,
    SyncSettings,
    get_config_manager,
)

SAMPLE_CONFIG = """# widgetsync settings
msg_throttle = 5
log_level = debug   # inline comment
log_file = "logs/sync.log"
enabled = yes
ratio = 0.5
broken line without equals
"""


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "config.txt"
    path.write_text(SAMPLE_CONFIG, encoding="utf-8")
    return path


class TestConfigManager:
    """Test reading key = value files."""

    def test_read_config(self, config_file):
        config = ConfigManager().read_config(config_file)

        assert config["msg_throttle"] == "5"
        assert config["log_level"] == "debug"
        assert config["log_file"] == "logs/sync.log"
        assert "broken line without equals" not in config

    @pytest.mark.asyncio
    async def test_read_config_async_matches_sync(self, config_file):
        cm = ConfigManager()

        assert await cm.read_config_async(config_file) == cm.read_config(config_file)

    def test_missing_file(self, tmp_path):
        assert ConfigManager().read_config(tmp_path / "absent.txt") == {}

    @pytest.mark.asyncio
    async def test_missing_file_async(self, tmp_path):
        assert await ConfigManager().read_config_async(tmp_path / "absent.txt") == {}

    def test_typed_getters(self, config_file):
        cm = ConfigManager()
        config = cm.read_config(config_file)

        assert cm.get_int(config, "msg_throttle") == 5
        assert cm.get_bool(config, "enabled") is True
        assert cm.get_float(config, "ratio") == 0.5
        assert cm.get_str(config, "missing", "fallback") == "fallback"

    def test_invalid_int_uses_default(self):
        cm = ConfigManager()

        assert cm.get_int({"n": "many"}, "n", 7) == 7
        assert cm.get_float({"f": "x"}, "f", 1.5) == 1.5

    def test_singleton(self):
        assert get_config_manager() is get_config_manager()


class TestSyncSettings:
    """Test engine settings."""

    def test_defaults(self):
        settings = SyncSettings.load()

        assert settings.msg_throttle == DEFAULT_MSG_THROTTLE
        assert settings.log_level == "INFO"
        assert settings.log_file is None

    def test_file_overrides_defaults(self, config_file):
        settings = SyncSettings.load(config_file)

        assert settings.msg_throttle == 5
        assert settings.log_level == "DEBUG"
        assert settings.log_file == Path("logs/sync.log")

    @pytest.mark.asyncio
    async def test_load_async(self, config_file):
        settings = await SyncSettings.load_async(config_file)

        assert settings.msg_throttle == 5

    def test_non_positive_throttle_ignored(self):
        settings = SyncSettings.from_config({"msg_throttle": "0"})

        assert settings.msg_throttle == DEFAULT_MSG_THROTTLE

    def test_configure_logging(self, tmp_path):
        settings = SyncSettings(log_level="WARNING", log_file=tmp_path / "sync.log")

        with patch("widgetsync.core.config_manager.configure_logging") as configure:
            settings.configure_logging(force=True)

        configure.assert_called_once_with("WARNING", log_file=tmp_path / "sync.log", force=True)
