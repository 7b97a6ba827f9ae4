"""Tests for PCM sample format helpers."""

import numpy as np
import pytest

from murmur.client.pcm import downmix_to_mono, from_pcm_bytes, to_int16, to_pcm_bytes


class TestToInt16:
  """Test conversion of device sample formats to int16."""

  def test_float_is_clamped_and_scaled(self):
    data = np.array([0.0, 0.5, -0.5, 1.0, -1.0, 2.0, -3.0], dtype=np.float32)
    assert to_int16(data).tolist() == [0, 16383, -16383, 32767, -32767, 32767, -32767]

  def test_float_nan_becomes_silence(self):
    data = np.array([np.nan, 0.25], dtype=np.float64)
    assert to_int16(data).tolist() == [0, 8191]

  def test_int16_passes_through(self):
    data = np.array([-32768, 0, 32767], dtype=np.int16)
    assert to_int16(data) is data

  def test_int32_keeps_high_bits(self):
    data = np.array([0x7FFF0000, -0x80000000, 0x00010000], dtype=np.int32)
    assert to_int16(data).tolist() == [32767, -32768, 1]

  def test_8bit_formats(self):
    assert to_int16(np.array([-128, 1], dtype=np.int8)).tolist() == [-32768, 256]
    assert to_int16(np.array([0, 128, 255], dtype=np.uint8)).tolist() == [-32768, 0, 32512]

  def test_unsupported_format(self):
    with pytest.raises(ValueError, match="Unsupported"):
      to_int16(np.array([1], dtype=np.int64))


class TestDownmix:
  """Test channel averaging."""

  def test_mono_is_unchanged(self):
    data = np.array([1, 2, 3], dtype=np.int16)
    assert downmix_to_mono(data, 1).tolist() == [1, 2, 3]

  def test_stereo_average(self):
    data = np.array([10, 20, -10, -21, 32767, 32767], dtype=np.int16)
    # Means truncate toward zero
    assert downmix_to_mono(data, 2).tolist() == [15, -15, 32767]

  def test_frame_count(self):
    data = np.zeros((480, 6), dtype=np.int16)
    assert len(downmix_to_mono(data, 6)) == 480

  def test_partial_frame_dropped(self):
    data = np.array([2, 4, 6], dtype=np.int16)
    assert downmix_to_mono(data, 2).tolist() == [3]


class TestPcmBytes:
  """Test little-endian serialization."""

  def test_little_endian_layout(self):
    assert to_pcm_bytes(np.array([1, -1], dtype=np.int16)) == b"\x01\x00\xff\xff"

  def test_from_bytes(self):
    assert from_pcm_bytes(b"\x00\x80\xff\x7f").tolist() == [-32768, 32767]
