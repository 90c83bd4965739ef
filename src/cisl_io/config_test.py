"""Tests for the hierarchical Config reader."""

import json

import pytest

from cisl_io.config import Config
from cisl_io.errors import ConfigurationError


def test_get_walks_nested_sections():
    config = Config({"rabbit": {"exchange": "amq.topic", "mgmt": {"port": 15672}}})

    assert config.get("rabbit:exchange") == "amq.topic"
    assert config.get("rabbit:mgmt:port") == 15672


def test_get_prefers_literal_key_with_separator():
    config = Config({"a:b": 1, "a": {"b": 2}})

    assert config.get("a:b") == 1


def test_get_missing_key_raises_unless_default():
    config = Config({"rabbit": {}})

    with pytest.raises(ConfigurationError, match="Could not find key: rabbit:vhost"):
        config.get("rabbit:vhost")
    assert config.get("rabbit:vhost", "/") == "/"


def test_get_empty_key_raises():
    with pytest.raises(ConfigurationError):
        Config({}).get("")


def test_mq_section_aliases_rabbit():
    config = Config({"mq": {"hostname": "broker"}})

    assert config.get("rabbit:hostname") == "broker"


def test_defaults_fill_missing_and_true_sections():
    config = Config({"rabbit": True, "other": {"keep": 1}})
    config.defaults({"rabbit": {"username": "guest"}, "other": {"keep": 2, "add": 3}})

    assert config.get("rabbit") == {"username": "guest"}
    assert config.get("other") == {"keep": 1, "add": 3}


def test_has_and_has_value():
    config = Config({"rabbit": False, "redis": {"host": "x"}})

    assert config.has("rabbit") is True
    assert config.has_value("rabbit") is False
    assert config.has_value("redis") is True
    assert config.has("mongo") is False


def test_required_reports_missing_key():
    config = Config({"rabbit": {"hostname": "x"}})

    config.required(["rabbit:hostname"])
    with pytest.raises(ConfigurationError, match="Value required for key: rabbit:port"):
        config.required(["rabbit:port"])


def test_load_reads_file_and_env_url(tmp_path, monkeypatch):
    path = tmp_path / "cog.json"
    path.write_text(json.dumps({"rabbit": {"exchange": "custom"}}))
    monkeypatch.setenv("RABBITMQ_URL", "amqp://broker:5673/vh")

    config = Config.load(path)

    assert config.get("rabbit:exchange") == "custom"
    assert config.get("rabbit:url") == "amqp://broker:5673/vh"


def test_load_without_file_is_empty(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("COG_FILE", raising=False)
    monkeypatch.delenv("RABBITMQ_URL", raising=False)

    assert Config.load().as_dict() == {}


def test_load_rejects_invalid_json(tmp_path):
    path = tmp_path / "cog.json"
    path.write_text("{nope")

    with pytest.raises(ConfigurationError, match="Unable to read configuration file"):
        Config.load(path)
