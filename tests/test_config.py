import importlib
from pathlib import Path


def _reload_settings_module():
    settings_module = importlib.import_module("stackeer.settings")
    return importlib.reload(settings_module)


def test_settings_defaults(monkeypatch):
    for name in (
        "STACKEER_CACHE_DIR",
        "STACKEER_HTTP_TIMEOUT",
        "STACKEER_MAX_ATTEMPTS",
        "STACKEER_DEFAULT_TTL_HOURS",
    ):
        monkeypatch.delenv(name, raising=False)
    settings_module = _reload_settings_module()
    settings_module.Settings.model_config["env_file"] = None

    settings = settings_module.Settings()

    assert settings.cache_dir == Path.home() / ".cache" / "stackeer"
    assert settings.http_timeout == 15.0
    assert settings.max_attempts == 4
    assert settings.default_ttl_hours == 72


def test_settings_read_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("STACKEER_CACHE_DIR", str(tmp_path / "cache"))
    monkeypatch.setenv("STACKEER_MAX_ATTEMPTS", "2")
    settings_module = _reload_settings_module()

    settings = settings_module.Settings()

    assert settings.cache_dir == tmp_path / "cache"
    assert settings.max_attempts == 2


def test_get_settings_is_cached(monkeypatch):
    settings_module = _reload_settings_module()
    assert settings_module.get_settings() is settings_module.get_settings()
