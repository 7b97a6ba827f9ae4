"""Tests for the resampling module."""

import numpy as np
import pytest

from murmur.client.resample import Resampler, ResampleMethod, SincResampler, resample_linear


class TestResampleMethod:
  """Test algorithm selection from the environment."""

  def test_defaults_to_linear(self, monkeypatch):
    monkeypatch.delenv("MURMUR_RESAMPLE", raising=False)
    assert ResampleMethod.from_env() == ResampleMethod.LINEAR

  def test_sinc_from_env(self, monkeypatch):
    monkeypatch.setenv("MURMUR_RESAMPLE", " SINC ")
    assert ResampleMethod.from_env() == ResampleMethod.SINC

  def test_unknown_value_means_linear(self, monkeypatch):
    monkeypatch.setenv("MURMUR_RESAMPLE", "cubic")
    assert ResampleMethod.from_env() == ResampleMethod.LINEAR


class TestLinearResample:
  """Test stateless linear interpolation."""

  def test_equal_rates_return_input(self):
    samples = np.array([1, -2, 3, -4], dtype=np.int16)
    result = resample_linear(samples, 16000, 16000)
    np.testing.assert_array_equal(result, samples)

  def test_output_length_is_floor(self):
    samples = np.arange(1000, dtype=np.int16)
    assert len(resample_linear(samples, 44100, 16000)) == 1000 * 16000 // 44100
    assert len(resample_linear(samples, 48000, 16000)) == 333
    assert len(resample_linear(samples, 8000, 16000)) == 2000

  def test_downsample_by_three(self):
    samples = np.zeros(4800, dtype=np.int16)
    assert len(resample_linear(samples, 48000, 16000)) == 1600

  def test_single_sample_returned_unchanged(self):
    result = resample_linear([1234], 48000, 16000)
    np.testing.assert_array_equal(result, np.array([1234], dtype=np.int16))

  def test_empty_input(self):
    assert len(resample_linear([], 48000, 16000)) == 0

  def test_interpolates_and_truncates(self):
    # Upsampling by two puts every other output halfway between inputs
    result = resample_linear([0, 101, -101], 8000, 16000)
    assert result.tolist() == [0, 50, 101, 0, -101, -101]

  def test_is_deterministic(self):
    rng = np.random.default_rng(7)
    samples = rng.integers(-32768, 32767, size=2048).astype(np.int16)
    first = resample_linear(samples, 44100, 16000)
    second = resample_linear(samples, 44100, 16000)
    np.testing.assert_array_equal(first, second)

  def test_rejects_non_positive_rates(self):
    with pytest.raises(ValueError, match="positive"):
      resample_linear([1, 2, 3], 0, 16000)


class TestSincResampler:
  """Test the streaming windowed-sinc resampler."""

  def test_process_before_reset(self):
    with pytest.raises(RuntimeError):
      SincResampler().process(np.zeros(10, dtype=np.int16))

  def test_rejects_extreme_ratio(self):
    with pytest.raises(ValueError, match="ratio"):
      SincResampler().reset(1_000_000, 16000)

  def test_output_length_close_to_ratio(self):
    resampler = SincResampler()
    resampler.reset(48000, 16000)
    output = resampler.process(np.zeros(4800, dtype=np.int16))
    assert 1500 <= len(output) <= 1700

  def test_streaming_length_tracks_ratio(self):
    resampler = SincResampler()
    resampler.reset(48000, 16000)
    total = sum(len(resampler.process(np.zeros(480, dtype=np.int16))) for _ in range(100))
    # Latency of half a kernel is held back as history
    assert 16000 - 40 <= total <= 16000

  def test_preserves_dc_level(self):
    resampler = SincResampler()
    resampler.reset(48000, 16000)
    output = resampler.process(np.full(4800, 10000, dtype=np.int16))
    # Past the zero-padded start the level settles at the input value
    assert np.all(np.abs(output[100:].astype(np.int32) - 10000) <= 2)

  def test_rejects_odd_kernel(self):
    with pytest.raises(ValueError, match="sinc_len"):
      SincResampler(sinc_len=63)


class TestResampler:
  """Test the algorithm-dispatching resampler."""

  @pytest.mark.parametrize("method", [ResampleMethod.LINEAR, ResampleMethod.SINC])
  def test_equal_rates_are_identity(self, method):
    samples = np.array([5, -5, 32767, -32768], dtype=np.int16)
    result = Resampler(method).resample(samples, 16000, 16000)
    np.testing.assert_array_equal(result, samples)

  def test_linear_method(self):
    result = Resampler(ResampleMethod.LINEAR).resample(np.zeros(4800, dtype=np.int16), 48000, 16000)
    assert len(result) == 1600

  def test_sinc_resets_on_rate_change(self):
    resampler = Resampler(ResampleMethod.SINC)
    resampler.resample(np.zeros(4800, dtype=np.int16), 48000, 16000)
    assert resampler._sinc.matches(48000, 16000)

    resampler.resample(np.zeros(4410, dtype=np.int16), 44100, 16000)
    assert resampler._sinc.matches(44100, 16000)

  def test_reset_discards_sinc_history(self):
    resampler = Resampler(ResampleMethod.SINC)
    fresh = resampler.resample(np.full(4800, 8000, dtype=np.int16), 48000, 16000)
    resampler.resample(np.full(4800, 8000, dtype=np.int16), 48000, 16000)

    resampler.reset()

    assert not resampler._sinc.matches(48000, 16000)
    again = resampler.resample(np.full(4800, 8000, dtype=np.int16), 48000, 16000)
    np.testing.assert_array_equal(again, fresh)

  def test_sinc_falls_back_to_linear(self):
    resampler = Resampler(ResampleMethod.SINC)
    samples = np.arange(1000, dtype=np.int16)
    result = resampler.resample(samples, 1_000_000, 16000)
    np.testing.assert_array_equal(result, resample_linear(samples, 1_000_000, 16000))
    assert len(result) == 16
