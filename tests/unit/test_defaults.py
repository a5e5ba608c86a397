"""Unit tests for default config loading and merging."""

import pytest

from embedded_kafka.config.defaults import load_defaults, merge_configs


class TestLoadDefaults:
    def test_loads_launcher_defaults(self):
        defaults = load_defaults("launcher")
        assert defaults["docker"] == "docker"
        assert defaults["host"] == "localhost"
        assert "zookeeper_image" in defaults

    def test_missing_defaults_raises(self):
        with pytest.raises(FileNotFoundError, match="nonexistent"):
            load_defaults("nonexistent")


class TestMergeConfigs:
    def test_shallow_override(self):
        base = {"a": 1, "b": 2}
        result = merge_configs(base, {"b": 99})
        assert result == {"a": 1, "b": 99}

    def test_deep_merge(self):
        base = {"images": {"kraft": "apache/kafka", "zookeeper": "zk"}}
        overrides = {"images": {"kraft": "custom/kafka"}}
        result = merge_configs(base, overrides)
        assert result["images"]["kraft"] == "custom/kafka"
        assert result["images"]["zookeeper"] == "zk"

    def test_non_mutating(self):
        base = {"a": {"x": 1}}
        overrides = {"a": {"y": 2}}
        merge_configs(base, overrides)
        assert "y" not in base["a"]
