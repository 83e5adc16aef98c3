"""Tests for configuration loading."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from papersync.config import load_config


@pytest.fixture
def empty_env_file(tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("")
    return env_file


def test_defaults(empty_env_file):
    env = {"PAPERSYNC_CONSUMER_KEY": "ck", "PAPERSYNC_CONSUMER_SECRET": "cs"}
    with patch.dict(os.environ, env, clear=True):
        config = load_config(empty_env_file)

    assert config.consumer_key == "ck"
    assert config.consumer_secret == "cs"
    assert config.api_url == "https://www.instapaper.com"
    assert config.data_dir == Path("papersync-data")
    assert config.state_file == Path("papersync-data") / "state.json"
    assert config.connect_timeout == 10.0
    assert config.request_timeout == 30.0
    assert config.list_limit == 200
    assert config.embed_images is True
    assert config.max_image_bytes == 1024 * 1024
    assert config.online_check_host == "www.instapaper.com"
    assert config.log_level == "INFO"


def test_overrides(empty_env_file, tmp_path):
    env = {
        "PAPERSYNC_CONSUMER_KEY": "ck",
        "PAPERSYNC_CONSUMER_SECRET": "cs",
        "PAPERSYNC_API_URL": "http://localhost:8080/",
        "PAPERSYNC_DATA_DIR": str(tmp_path),
        "PAPERSYNC_STATE_FILE": str(tmp_path / "custom.json"),
        "PAPERSYNC_CONNECT_TIMEOUT": "2.5",
        "PAPERSYNC_REQUEST_TIMEOUT": "12",
        "PAPERSYNC_LIST_LIMIT": "50",
        "PAPERSYNC_EMBED_IMAGES": "false",
        "PAPERSYNC_MAX_IMAGE_BYTES": "2048",
        "LOG_LEVEL": "debug",
    }
    with patch.dict(os.environ, env, clear=True):
        config = load_config(empty_env_file)

    assert config.api_url == "http://localhost:8080"
    assert config.data_dir == tmp_path
    assert config.state_file == tmp_path / "custom.json"
    assert config.connect_timeout == 2.5
    assert config.request_timeout == 12.0
    assert config.list_limit == 50
    assert config.embed_images is False
    assert config.max_image_bytes == 2048
    assert config.online_check_host == "localhost"
    assert config.log_level == "DEBUG"


def test_reads_env_file(tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("PAPERSYNC_CONSUMER_KEY=from-file\nPAPERSYNC_CONSUMER_SECRET=secret-file\n")
    with patch.dict(os.environ, {}, clear=True):
        config = load_config(env_file)
    assert config.consumer_key == "from-file"
    assert config.consumer_secret == "secret-file"


@pytest.mark.parametrize("missing", ["PAPERSYNC_CONSUMER_KEY", "PAPERSYNC_CONSUMER_SECRET"])
def test_missing_required(empty_env_file, missing):
    env = {"PAPERSYNC_CONSUMER_KEY": "ck", "PAPERSYNC_CONSUMER_SECRET": "cs"}
    del env[missing]
    with patch.dict(os.environ, env, clear=True):
        with pytest.raises(ValueError, match=missing):
            load_config(empty_env_file)
