# tests/test_config.py
"""Tests for ViewCacheConfig and TOML config loading."""

import pytest
from pathlib import Path

from viewcache import ViewCache, ViewCacheConfig
from viewcache.config.loader import apply_settings, find_project_config, load_config
from viewcache.exceptions import ConfigError
from viewcache.util import merge_dicts

def test_defaults():
    config = ViewCacheConfig()
    assert config.strict_errors is False
    assert config.prefer_locals is False
    assert config.layout_delims == ("{%", "%}")
    assert config.layout_tag == "body"

def test_bad_delimiter_pair():
    with pytest.raises(ConfigError):
        ViewCacheConfig(layout_delims=("{%",))

def test_apply_settings_aliases_and_unknown_keys():
    config = apply_settings(ViewCacheConfig(), {"strict": True, "default_layout": "base", "bogus": 1})
    assert config.strict_errors is True
    assert config.layout == "base"
    assert not hasattr(config, "bogus")

def test_viewcache_overrides():
    views = ViewCache(strict_errors=True, layout="base")
    assert views.config.strict_errors is True
    assert views.config.layout == "base"

class TestLoadConfig:
    def test_pyproject_section(self, tmp_path: Path):
        pyproject = tmp_path / "pyproject.toml"
        pyproject.write_text('[tool.viewcache]\nstrict_errors = true\nlayout_delims = ["<%", "%>"]\n')
        config = load_config(pyproject)
        assert config.strict_errors is True
        assert config.layout_delims == ("<%", "%>")

    def test_overrides_applied_last(self, tmp_path: Path):
        config_file = tmp_path / "viewcache.toml"
        config_file.write_text('layout = "from-file"\n')
        assert load_config(config_file, layout="override").layout == "override"

    def test_malformed_file(self, tmp_path: Path):
        config_file = tmp_path / "viewcache.toml"
        config_file.write_text("layout = \n")
        with pytest.raises(ConfigError):
            load_config(config_file)

    def test_missing_explicit_file(self, tmp_path: Path):
        with pytest.raises(ConfigError):
            load_config(tmp_path / "absent.toml")

    def test_discovery_order(self, tmp_path: Path):
        (tmp_path / "pyproject.toml").write_text("[project]\nname = 'x'\n")
        assert find_project_config(tmp_path) is None
        (tmp_path / "viewcache.toml").write_text('layout = "a"\n')
        assert find_project_config(tmp_path).name == "viewcache.toml"
        (tmp_path / ".viewcache.toml").write_text('layout = "b"\n')
        assert find_project_config(tmp_path).name == ".viewcache.toml"

    def test_discovers_from_cwd(self, tmp_path: Path, monkeypatch):
        (tmp_path / ".viewcache.toml").write_text("prefer_locals = true\n")
        monkeypatch.chdir(tmp_path)
        assert load_config().prefer_locals is True

def test_merge_dicts_is_deep_and_non_mutating():
    left = {"a": {"b": 1, "c": [1]}}
    right = {"a": {"c": [2]}, "d": 3}
    merged = merge_dicts(left, right)
    assert merged == {"a": {"b": 1, "c": [2]}, "d": 3}
    assert left == {"a": {"b": 1, "c": [1]}}

def test_configure_logging_attaches_handler():
    import logging
    import structlog
    from viewcache.logging_setup import LOGGER_NAMESPACE, configure_logging

    try:
        configure_logging("debug", json_output=True)
        package_logger = logging.getLogger(LOGGER_NAMESPACE)
        assert package_logger.level == logging.DEBUG
        assert len(package_logger.handlers) == 1
    finally:
        logging.getLogger(LOGGER_NAMESPACE).handlers.clear()
        structlog.reset_defaults()
