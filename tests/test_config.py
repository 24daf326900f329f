import json

from pydantic import ValidationError
import pytest

from teamsync.config import BRIDGE_URL_ENV_VAR, BridgeConfig, Config, ConfigFileError, SyncConfig, default_config_path, load_config, save_config


class TestConfig:

    def test_defaults(self):
        config = Config()
        assert config.bridge.url is None
        assert config.bridge.timeout is None
        assert config.sync.mode == 'direct'
        assert config.display.group_by == 'status'

    def test_invalid_values(self):
        with pytest.raises(ValidationError):
            _ = SyncConfig(mode='eventually')
        with pytest.raises(ValidationError):
            _ = BridgeConfig(timeout=0)

    def test_save_load(self, tmp_path):
        path = tmp_path / 'cfg' / 'config.json'
        assert load_config(path) == Config()
        config = Config(bridge=BridgeConfig(url='https://bridge.example.com/exec', timeout=5))
        assert save_config(config, path) == path
        with open(path) as f:
            assert json.load(f)['bridge'] == {'url': 'https://bridge.example.com/exec', 'timeout': 5}
        assert load_config(path) == config

    @pytest.mark.parametrize('contents', ['{', '[1, 2]', '{"sync": {"mode": "later"}}'])
    def test_malformed(self, tmp_path, contents):
        path = tmp_path / 'config.json'
        path.write_text(contents)
        with pytest.raises(ConfigFileError, match='When loading config file'):
            _ = load_config(path)

    def test_env_var_override(self, monkeypatch):
        config = Config(bridge=BridgeConfig(url='https://stored.example.com'))
        assert config.bridge_url == 'https://stored.example.com'
        monkeypatch.setenv(BRIDGE_URL_ENV_VAR, 'https://env.example.com')
        assert config.bridge_url == 'https://env.example.com'

    def test_default_path(self, tmp_path):
        assert default_config_path().parts[-2:] == ('.teamsync', 'config.json')
