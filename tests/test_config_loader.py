"""Tests for shared/config_loader.py."""

import yaml

from shared.config_loader import DEFAULTS, _deep_merge, load_yaml


class TestLoadYaml:
    def test_missing_file_gives_defaults(self, tmp_path, monkeypatch):
        monkeypatch.delenv("CONFIG_PATH", raising=False)
        monkeypatch.delenv("REDIS_URL", raising=False)
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        cfg = load_yaml(str(tmp_path / "missing.yml"))
        assert cfg == DEFAULTS

    def test_yaml_merged_over_defaults(self, tmp_path, monkeypatch):
        monkeypatch.delenv("CONFIG_PATH", raising=False)
        monkeypatch.delenv("REDIS_URL", raising=False)
        path = tmp_path / "config.yml"
        path.write_text(yaml.dump({"bridge": {"retry_delay": 2}, "queue": {"remove_on_fail": 50}}))
        cfg = load_yaml(str(path))
        assert cfg["bridge"]["retry_delay"] == 2
        assert cfg["bridge"]["raw_list"] == "logs"
        assert cfg["queue"]["remove_on_fail"] == 50
        assert cfg["queue"]["name"] == "log-processing"

    def test_config_path_env(self, tmp_path, monkeypatch):
        path = tmp_path / "other.yml"
        path.write_text(yaml.dump({"worker": {"concurrency": 9}}))
        monkeypatch.setenv("CONFIG_PATH", str(path))
        assert load_yaml("ignored.yml")["worker"]["concurrency"] == 9

    def test_env_overrides(self, tmp_path, monkeypatch):
        monkeypatch.delenv("CONFIG_PATH", raising=False)
        monkeypatch.setenv("REDIS_URL", "redis://cache:6379/1")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        cfg = load_yaml(str(tmp_path / "missing.yml"))
        assert cfg["redis"]["url"] == "redis://cache:6379/1"
        assert cfg["logging"]["level"] == "DEBUG"

    def test_empty_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("CONFIG_PATH", raising=False)
        monkeypatch.delenv("REDIS_URL", raising=False)
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        path = tmp_path / "empty.yml"
        path.write_text("")
        assert load_yaml(str(path)) == DEFAULTS


def test_deep_merge_does_not_mutate_base():
    base = {"a": {"b": 1, "c": 2}}
    result = _deep_merge(base, {"a": {"b": 5}})
    assert result == {"a": {"b": 5, "c": 2}}
    assert base == {"a": {"b": 1, "c": 2}}
