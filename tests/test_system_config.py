import pytest

from secure_fedavg.config import AggregationMode
from secure_fedavg.config.system import (
    CONFIG_ENV_VAR,
    load_coordinator_config,
    resolve_config_path,
)


def test_load_config_from_default_location(tmp_path, monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    config_file = config_dir / "coordinator.json"
    config_file.write_text('{"aggregation_mode": "smpc", "smpc_scale": 100}')

    config, path = load_coordinator_config(tmp_path)

    assert path == config_file.resolve()
    assert config.aggregation_mode is AggregationMode.SMPC
    assert config.smpc_scale == 100


def test_load_config_from_env_override(tmp_path, monkeypatch):
    override_path = tmp_path / "custom.json"
    override_path.write_text('{"history_limit": 3}')
    monkeypatch.setenv(CONFIG_ENV_VAR, str(override_path))

    config, path = load_coordinator_config(tmp_path / "elsewhere")

    assert path == override_path
    assert config.history_limit == 3


def test_relative_env_override_resolves_from_cwd(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv(CONFIG_ENV_VAR, "conf/c.json")

    assert resolve_config_path() == (tmp_path / "conf" / "c.json").resolve()


def test_missing_file_yields_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)

    config, path = load_coordinator_config(tmp_path)

    assert not path.exists()
    assert config.aggregation_mode is AggregationMode.PLAIN


def test_load_config_invalid_json(tmp_path, monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "coordinator.json").write_text("{invalid json")

    with pytest.raises(ValueError):
        load_coordinator_config(tmp_path)
