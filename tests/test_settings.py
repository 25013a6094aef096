"""
Настройки config.json и переменные окружения
"""
import json

import pytest

from cambio_hub.infra.settings import SettingsLoader, SingletonMeta


@pytest.fixture(autouse=True)
def fresh_singleton(monkeypatch):
    monkeypatch.setattr(SingletonMeta, "_instances", {})
    for key in SettingsLoader.DEFAULT_CONFIG:
        monkeypatch.delenv(f"CAMBIO_{key}", raising=False)


def test_creates_default_file(tmp_path):
    path = tmp_path / "config.json"

    settings = SettingsLoader(str(path))

    assert json.loads(path.read_text(encoding="utf-8")) == SettingsLoader.DEFAULT_CONFIG
    assert settings.get("FALLBACK_RATE") == 5.50


def test_user_values_override_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"FALLBACK_RATE": 5.1, "LOG_DIR": "var"}), encoding="utf-8")

    settings = SettingsLoader(str(path))

    assert settings.get("FALLBACK_RATE") == 5.1
    assert settings.get("LOG_DIR") == "var"
    assert settings.get("LOG_LEVEL") == "INFO"


@pytest.mark.parametrize("content", ["{", "[1, 2]"])
def test_broken_file_uses_defaults(tmp_path, content):
    path = tmp_path / "config.json"
    path.write_text(content, encoding="utf-8")

    assert SettingsLoader(str(path)).get_all() == SettingsLoader.DEFAULT_CONFIG


def test_env_overrides_file(tmp_path, monkeypatch):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"MAX_RETRIES": 4}), encoding="utf-8")
    monkeypatch.setenv("CAMBIO_MAX_RETRIES", "1")
    monkeypatch.setenv("CAMBIO_FALLBACK_RATE", "5.25")
    monkeypatch.setenv("CAMBIO_RETRY_DELAY", "soon")

    settings = SettingsLoader(str(path))

    assert settings.get("MAX_RETRIES") == 1
    assert settings.get("FALLBACK_RATE") == 5.25
    assert settings.get("RETRY_DELAY") == 1.0


def test_parser_overrides(tmp_path):
    path = tmp_path / "config.json"
    sources = [{"name": "X", "kind": "api", "url": "https://x", "selectors": {"rate": "r"}}]
    path.write_text(json.dumps({"SOURCES": sources, "SESSION_FILE": "s.json"}), encoding="utf-8")

    overrides = SettingsLoader(str(path)).parser_overrides()

    assert overrides["SOURCES"] == sources
    assert overrides["SESSION_FILE_PATH"] == "s.json"
    assert overrides["LOGS_DIR"] == "logs"
    assert "LOG_FILE" not in overrides


def test_singleton(tmp_path, monkeypatch):
    monkeypatch.setenv("CAMBIO_CONFIG", str(tmp_path / "custom.json"))

    first = SettingsLoader()

    assert SettingsLoader() is first
    assert first.config_path == tmp_path / "custom.json"
    assert (tmp_path / "custom.json").exists()
