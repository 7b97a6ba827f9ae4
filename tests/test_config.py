"""Tests for the configuration module."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from murmur.client.config import (
  AudioConfig,
  CredentialConfig,
  MurmurConfig,
  SessionConfig,
  load_config_from_file,
)
from murmur.client.resample import ResampleMethod


@pytest.fixture
def fake_filesystem(fs):
  """Variable name 'fs' causes a pylint warning. Provide a longer name
  acceptable to pylint for use in tests.
  """
  yield fs


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
  for name in ("MURMUR_TOKEN", "MURMUR_URL", "MURMUR_USER_AGENT", "MURMUR_ORIGIN", "MURMUR_RESAMPLE"):
    monkeypatch.delenv(name, raising=False)


class TestAudioConfig:
  """Test AudioConfig validation and defaults."""

  def test_audio_config_defaults(self):
    config = AudioConfig()

    assert config.target_rate == 16000
    assert config.chunk_samples == 4096
    assert config.dtype == "float32"
    assert config.device is None
    assert config.resample_method == ResampleMethod.LINEAR

  def test_resample_method_from_env(self, monkeypatch):
    monkeypatch.setenv("MURMUR_RESAMPLE", "sinc")
    assert AudioConfig().resample_method == ResampleMethod.SINC

  def test_unsupported_dtype(self):
    with pytest.raises(ValueError, match="Unsupported dtype"):
      AudioConfig(dtype="int24")

  def test_positive_values(self):
    with pytest.raises(ValidationError):
      AudioConfig(target_rate=0)

    with pytest.raises(ValidationError):
      AudioConfig(chunk_samples=-1)


class TestSessionConfig:
  """Test SessionConfig defaults."""

  def test_session_config_defaults(self):
    config = SessionConfig()

    assert config.finalize_grace == 1.0
    assert config.outbound_queue_size == 100
    assert config.probe_timeout == 5.0

  def test_grace_must_be_positive(self):
    with pytest.raises(ValidationError):
      SessionConfig(finalize_grace=0)


class TestCredentialConfig:
  """Test environment overrides for credentials."""

  def test_env_fills_missing_fields(self, monkeypatch):
    monkeypatch.setenv("MURMUR_TOKEN", "env-token")
    monkeypatch.setenv("MURMUR_URL", "wss://env")

    config = CredentialConfig(url="wss://file")

    assert config.token == "env-token"
    assert config.url == "wss://file"
    assert config.is_complete

  def test_incomplete_without_token(self):
    assert not CredentialConfig(url="wss://x").is_complete


class TestLoadConfigFromFile:
  """Test YAML loading."""

  def test_load_valid_config(self, fake_filesystem):
    fake_filesystem.create_file(
      "/config.yaml",
      contents="""
audio:
  target_rate: 8000
  chunk_samples: 2048
  device: 3
  resample_method: sinc
session:
  finalize_grace: 2.5
credential:
  token: file-token
  url: wss://asr.example.com/stream
""",
    )

    config = load_config_from_file(Path("/config.yaml"))

    assert isinstance(config, MurmurConfig)
    assert config.audio.target_rate == 8000
    assert config.audio.chunk_samples == 2048
    assert config.audio.device == 3
    assert config.audio.resample_method == ResampleMethod.SINC
    assert config.session.finalize_grace == 2.5
    assert config.credential.token == "file-token"

  def test_missing_file(self, fake_filesystem):
    with pytest.raises(ValidationError):
      load_config_from_file(Path("/missing.yaml"))

  def test_empty_file(self, fake_filesystem):
    fake_filesystem.create_file("/empty.yaml", contents="")
    with pytest.raises(ValueError, match="empty"):
      load_config_from_file(Path("/empty.yaml"))

  def test_not_a_dictionary(self, fake_filesystem):
    fake_filesystem.create_file("/list.yaml", contents="- a\n- b\n")
    with pytest.raises(ValueError, match="dictionary"):
      load_config_from_file(Path("/list.yaml"))

  def test_invalid_yaml(self, fake_filesystem):
    fake_filesystem.create_file("/bad.yaml", contents="audio: [unclosed\n")
    with pytest.raises(ValueError, match="Invalid YAML"):
      load_config_from_file(Path("/bad.yaml"))

  def test_invalid_values(self, fake_filesystem):
    fake_filesystem.create_file("/bad.yaml", contents="session:\n  finalize_grace: -1\n")
    with pytest.raises(ValidationError):
      load_config_from_file(Path("/bad.yaml"))
