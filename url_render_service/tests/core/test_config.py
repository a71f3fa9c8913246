import os

import pytest
import yaml

from url_render_service.core.config import ConfigurationManager, ConfigFileNotFoundError, InvalidYamlError


@pytest.fixture(scope="function")
def temp_config_dir(tmp_path, monkeypatch):
    """
    Writes temporary YAML config files and points the ConfigurationManager singleton at them.
    The singleton's original directory and environment are restored afterwards.
    """
    manager = ConfigurationManager()
    original_env = manager.current_environment
    monkeypatch.setattr(ConfigurationManager, "CONFIG_DIR", str(tmp_path))
    monkeypatch.delenv("PORT", raising=False)

    dev_config_content = {
        "server": {"host": "0.0.0.0", "port": 3000},
        "renderer": {"success_markers": ["配送", "商品详情"], "rotation": {"interval_seconds": 1800}},
    }
    prod_config_content = {"server": {"host": "127.0.0.1", "port": 8080}}

    with open(os.path.join(tmp_path, "development.yaml"), "w", encoding="utf-8") as f:
        yaml.dump(dev_config_content, f, allow_unicode=True)
    with open(os.path.join(tmp_path, "production.yaml"), "w", encoding="utf-8") as f:
        yaml.dump(prod_config_content, f)
    with open(os.path.join(tmp_path, "invalid.yaml"), "w") as f:
        f.write("server: {host: 'bad_host', port: 1000")  # Missing closing brace
    with open(os.path.join(tmp_path, "not_dict.yaml"), "w") as f:
        yaml.dump(["list", "instead", "of", "dict"], f)

    yield manager

    monkeypatch.undo()
    manager.load_config(original_env)


def test_singleton_returns_same_instance():
    assert ConfigurationManager() is ConfigurationManager()


def test_load_development_and_nested_get(temp_config_dir):
    temp_config_dir.load_config("development")
    assert temp_config_dir.current_environment == "development"
    assert temp_config_dir.get("server.port") == 3000
    assert temp_config_dir.get("renderer.success_markers") == ["配送", "商品详情"]
    assert temp_config_dir.get("renderer.rotation.interval_seconds") == 1800


def test_get_missing_key_returns_default(temp_config_dir):
    temp_config_dir.load_config("development")
    assert temp_config_dir.get("server.missing", "fallback") == "fallback"
    assert temp_config_dir.get("server.port.deeper", 7) == 7
    assert temp_config_dir.get("nope") is None


def test_app_env_selects_file(temp_config_dir, monkeypatch):
    monkeypatch.setenv("APP_ENV", "production")
    temp_config_dir.load_config()
    assert temp_config_dir.current_environment == "production"
    assert temp_config_dir.get("server.host") == "127.0.0.1"


def test_port_env_overrides_server_port(temp_config_dir, monkeypatch):
    monkeypatch.setenv("PORT", "4100")
    temp_config_dir.load_config("development")
    assert temp_config_dir.get("server.port") == 4100


def test_invalid_port_env_raises(temp_config_dir, monkeypatch):
    monkeypatch.setenv("PORT", "not-a-port")
    with pytest.raises(InvalidYamlError):
        temp_config_dir.load_config("development")


def test_missing_file_raises(temp_config_dir):
    with pytest.raises(ConfigFileNotFoundError):
        temp_config_dir.load_config("staging")


def test_invalid_yaml_raises(temp_config_dir):
    with pytest.raises(InvalidYamlError):
        temp_config_dir.load_config("invalid")


def test_non_dict_yaml_raises(temp_config_dir):
    with pytest.raises(InvalidYamlError):
        temp_config_dir.load_config("not_dict")


def test_set_creates_nested_sections(temp_config_dir):
    temp_config_dir.load_config("production")
    temp_config_dir.set("renderer.rotation.probability", 0.25)
    assert temp_config_dir.get("renderer.rotation.probability") == 0.25


def test_reload_config_switches_environment(temp_config_dir):
    temp_config_dir.load_config("development")
    temp_config_dir.reload_config("production")
    assert temp_config_dir.current_environment == "production"
    assert temp_config_dir.get("server.port") == 8080


def test_shipped_configs_parse():
    """The packaged YAML files load and carry the keys the service reads."""
    package_dir = os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "..", "config")
    for env in ("development", "production", "testing"):
        with open(os.path.join(package_dir, f"{env}.yaml"), encoding="utf-8") as f:
            data = yaml.safe_load(f)
        assert isinstance(data, dict)
        assert "server" in data and "renderer" in data and "logging" in data
