"""Tests for diarysync.journal.config."""

import pytest

from diarysync.core.config import Config
from diarysync.core.exceptions import ConfigurationError
from diarysync.journal.config import SyncConfig


class TestSyncConfig:
    def test_defaults(self):
        cfg = SyncConfig()
        assert cfg.cards_path == "cards"
        assert cfg.series_path == "other/series"
        assert cfg.unique_topic_path == "other/unique_topic"
        assert cfg.groups_path == "other/groups"
        assert cfg.timeout == 10.0

    def test_no_timeout(self):
        assert SyncConfig(timeout=None).timeout is None

    @pytest.mark.parametrize("timeout", [0, -1.5])
    def test_invalid_timeout(self, timeout):
        with pytest.raises(ConfigurationError):
            SyncConfig(timeout=timeout)

    def test_from_config_file(self, tmp_config_file):
        cfg = SyncConfig.from_config(Config(config_file=tmp_config_file))
        assert cfg.timeout == 3.0

    def test_from_env(self, tmp_dir, monkeypatch):
        monkeypatch.setenv("DIARYSYNC_SYNC__TIMEOUT", "2.5")
        cfg = SyncConfig.from_config(Config(data_dir=tmp_dir))
        assert cfg.timeout == 2.5
