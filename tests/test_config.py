"""
Tests for the config loader: YAML layering, env substitution, coercion.
"""

import pytest

from deepsite import config as cfg_mod


@pytest.fixture(autouse=True)
def fresh_config():
    orig = cfg_mod._config
    cfg_mod.reset_config()
    yield
    cfg_mod._config = orig


def test_env_substitution_with_default(monkeypatch):
    monkeypatch.delenv("DS_TEST_VAR", raising=False)
    assert cfg_mod._resolve_env_vars("${DS_TEST_VAR:-fallback}") == "fallback"
    monkeypatch.setenv("DS_TEST_VAR", "real")
    assert cfg_mod._resolve_env_vars("x-${DS_TEST_VAR:-fallback}-y") == "x-real-y"


def test_env_substitution_without_default(monkeypatch):
    monkeypatch.delenv("DS_TEST_VAR", raising=False)
    assert cfg_mod._resolve_env_vars("${DS_TEST_VAR}") == ""


def test_load_layers_over_defaults(tmp_path, monkeypatch):
    monkeypatch.setenv("DS_PORT", "8123")
    path = tmp_path / "config.yaml"
    path.write_text("server:\n  port: ${DS_PORT:-3000}\nrate_limit:\n  ip_rate_limit: 5\n")

    cfg = cfg_mod.load_config(path)
    assert cfg["server"]["port"] == "8123"
    assert cfg["server"]["host"] == "0.0.0.0"
    assert cfg["rate_limit"]["ip_rate_limit"] == 5
    assert cfg["rate_limit"]["window_seconds"] == 3600
    assert cfg_mod.get_config() is cfg


def test_missing_file_gives_defaults(tmp_path):
    cfg = cfg_mod.load_config(tmp_path / "nope.yaml")
    assert cfg["generation"]["default_max_tokens"] == 8000
    assert cfg["storage"]["sqlite_path"] == ""


def test_config_path_from_env(tmp_path, monkeypatch):
    path = tmp_path / "alt.yaml"
    path.write_text("site_url: https://alt.test\n")
    monkeypatch.setenv("DEEPSITE_CONFIG", str(path))
    assert cfg_mod.get_config()["site_url"] == "https://alt.test"


def test_coercion_helpers():
    cfg = {
        "rate_limit": {"ip_rate_limit": "0", "window_seconds": "", "bogus": "abc"},
        "site_url": "https://x.test",
    }
    assert cfg_mod.config_int(cfg, "rate_limit", "ip_rate_limit", 100) == 0
    assert cfg_mod.config_float(cfg, "rate_limit", "window_seconds", 3600) == 3600
    assert cfg_mod.config_int(cfg, "rate_limit", "bogus", 7) == 7
    assert cfg_mod.config_int(cfg, "missing", "key", 3) == 3
    assert cfg_mod.config_str(cfg, "", "site_url") == "https://x.test"
    assert cfg_mod.config_str(cfg, "server", "host", "0.0.0.0") == "0.0.0.0"
