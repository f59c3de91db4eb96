"""Tests for client configuration."""

import json

from common.config import Config


def test_config_creates_default_file(tmp_path):
    """Test that config file is created with defaults if missing."""
    config_path = tmp_path / '.reelstream' / 'config.json'
    config = Config(config_path)

    assert config_path.exists()

    assert config.data['server_host'] == 'localhost'
    assert config.data['server_port'] == 8080
    assert config.data['api_prefix'] == '/api/v1'
    assert config.data['timeout'] == 30
    assert config.data['max_retries'] == 3
    assert config.data['segment_time'] == 60


def test_config_loads_existing_file(tmp_path):
    """Test loading existing config file."""
    config_path = tmp_path / '.reelstream' / 'config.json'
    config_path.parent.mkdir(parents=True)

    with open(config_path, 'w') as f:
        json.dump({'server_host': 'media.example.com', 'server_port': 9000, 'segment_time': 6}, f)

    config = Config(config_path)

    assert config.data['server_host'] == 'media.example.com'
    assert config.get_segment_time() == 6
    assert config.data['timeout'] == 30


def test_config_handles_corrupted_file(tmp_path):
    """Test recovery from corrupted config file."""
    config_path = tmp_path / '.reelstream' / 'config.json'
    config_path.parent.mkdir(parents=True)

    with open(config_path, 'w') as f:
        f.write('{ invalid json content')

    config = Config(config_path)
    assert config.data['server_host'] == 'localhost'

    backup_path = config_path.with_suffix('.json.bak')
    assert backup_path.exists()


def test_config_save(temp_config):
    temp_config.data['playback_rate'] = 4.0
    temp_config.save()

    with open(temp_config.config_path, 'r') as f:
        assert json.load(f)['playback_rate'] == 4.0


def test_config_get_base_url(temp_config):
    """Test base URL construction."""
    assert temp_config.get_base_url() == 'http://localhost:8080/api/v1'

    temp_config.data['server_host'] = 'example.com'
    temp_config.data['server_port'] = 9000
    temp_config.data['api_prefix'] = '/media/'
    assert temp_config.get_base_url() == 'http://example.com:9000/media'


def test_config_get_retry_config(temp_config):
    """Test retry configuration retrieval."""
    retry_config = temp_config.get_retry_config()

    assert retry_config['max_retries'] == 3
    assert retry_config['retry_backoff_multiplier'] == 2

    temp_config.data['max_retries'] = 5
    assert temp_config.get_retry_config()['max_retries'] == 5


def test_config_get_playback_config(temp_config):
    playback = temp_config.get_playback_config()

    assert playback == {
        'segment_time': 60.0,
        'max_buffer_length': 15.0,
        'max_max_buffer_length': 20.0,
        'resume_margin': 2.0,
        'max_recoveries': 3,
        'playback_rate': 1.0,
    }


def test_config_directory_created_if_missing(tmp_path):
    """Test that config directory is created if it doesn't exist."""
    config_path = tmp_path / 'nested' / 'deep' / '.reelstream' / 'config.json'

    assert not config_path.parent.exists()

    Config(config_path)
    assert config_path.exists()
