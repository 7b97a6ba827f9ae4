"""Tests for command line argument parsing."""

import pytest

try:
  from murmur.client.__main__ import parse_audio_device, parse_config_path
except OSError:
  pytest.skip("PortAudio library not available", allow_module_level=True)


@pytest.fixture
def fake_filesystem(fs):
  """Variable name 'fs' causes a pylint warning. Provide a longer name
  acceptable to pylint for use in tests.
  """
  yield fs


class TestParseConfigPath:
  """Test --config validation."""

  def test_existing_file(self, fake_filesystem):
    fake_filesystem.create_file("/etc/murmur.yaml", contents="audio: {}\n")
    assert str(parse_config_path("/etc/murmur.yaml")) == "/etc/murmur.yaml"

  def test_missing_file(self, fake_filesystem):
    with pytest.raises(ValueError, match="does not exist"):
      parse_config_path("/nope.yaml")

  def test_directory(self, fake_filesystem):
    fake_filesystem.create_dir("/etc/murmur")
    with pytest.raises(ValueError, match="not a file"):
      parse_config_path("/etc/murmur")

  def test_empty(self):
    with pytest.raises(ValueError, match="cannot be empty"):
      parse_config_path("  ")


class TestParseAudioDevice:
  """Test --audio-device mapping."""

  def test_default(self):
    assert parse_audio_device("default") is None

  def test_index(self):
    assert parse_audio_device("3") == 3

  def test_name(self):
    assert parse_audio_device("USB Mic") == "USB Mic"
