"""
Sample-rate conversion for captured audio.

Two interchangeable algorithms convert mono int16 audio to the service rate:

- ``linear``: stateless linear interpolation. Cheap and lowest latency, but aliases when
  downsampling.
- ``sinc``: windowed-sinc interpolation with an antialiasing low-pass. Keeps filter history
  between calls, so it is fed consecutive buffers of one stream.

The algorithm is picked once per process from ``MURMUR_RESAMPLE`` (``linear`` by default).
"""

import math
import os
import threading
from collections.abc import Sequence
from enum import StrEnum

import numpy as np

from murmur.common import get_logger

logger = get_logger("snd/rs")


class ResampleMethod(StrEnum):
  """Resampling algorithm selection."""

  LINEAR = "linear"
  SINC = "sinc"

  @classmethod
  def from_env(cls) -> "ResampleMethod":
    """Read the method from MURMUR_RESAMPLE. Anything but "sinc" means linear."""
    value = os.getenv("MURMUR_RESAMPLE", "").strip().lower()
    return cls.SINC if value == cls.SINC.value else cls.LINEAR


def resample_linear(samples: Sequence[int] | np.ndarray, from_rate: int, to_rate: int) -> np.ndarray:
  """
  Resample by linear interpolation between neighbouring input samples.

  Produces exactly ``floor(len(samples) * to_rate / from_rate)`` samples. Interpolated
  values are truncated toward zero; positions past the last input pair repeat the last
  sample.
  """
  data = np.asarray(samples, dtype=np.int16)
  if from_rate == to_rate or len(data) <= 1:
    return data
  if from_rate <= 0 or to_rate <= 0:
    raise ValueError(f"Sample rates must be positive, got {from_rate} -> {to_rate}")

  n = len(data)
  output_len = n * to_rate // from_rate
  if output_len == 0:
    return np.empty(0, dtype=np.int16)

  ratio = from_rate / to_rate
  src_pos = np.arange(output_len, dtype=np.float64) * ratio
  src_idx = np.minimum(np.floor(src_pos).astype(np.int64), n - 1)
  frac = src_pos - src_idx

  y = data.astype(np.float64)
  next_idx = np.minimum(src_idx + 1, n - 1)
  interpolated = np.trunc(y[src_idx] + (y[next_idx] - y[src_idx]) * frac)

  output = np.where(src_idx + 1 < n, interpolated, y[n - 1])
  return output.astype(np.int16)


def _blackman(u: np.ndarray) -> np.ndarray:
  """Blackman window evaluated at continuous positions u in [-1, 1]."""
  return 0.42 + 0.5 * np.cos(np.pi * u) + 0.08 * np.cos(2.0 * np.pi * u)


class SincResampler:
  """
  Streaming windowed-sinc resampler for one (from_rate, to_rate) pair.

  Each output sample is a weighted sum of ``sinc_len`` input samples around its source
  position, weighted by a Blackman-windowed sinc whose cutoff sits at ``f_cutoff`` of the
  lower of the two Nyquist frequencies. Input that is still needed as context for future
  outputs is carried over in ``_history``, so output lags input by about ``sinc_len / 2``
  source samples.

  Not thread-safe; :class:`Resampler` serializes access.
  """

  MAX_RATIO = 16.0

  def __init__(self, sinc_len: int = 64, f_cutoff: float = 0.95):
    if sinc_len < 2 or sinc_len % 2:
      raise ValueError(f"sinc_len must be an even number >= 2, got {sinc_len}")
    if not 0.0 < f_cutoff <= 1.0:
      raise ValueError(f"f_cutoff must be in (0, 1], got {f_cutoff}")

    self.sinc_len = sinc_len
    self.f_cutoff = f_cutoff
    self.from_rate: int | None = None
    self.to_rate: int | None = None

    self._half = sinc_len // 2
    self._offsets = np.arange(-self._half + 1, self._half + 1)
    self._step = 1.0
    self._cutoff = f_cutoff
    self._history = np.zeros(0, dtype=np.float64)
    self._position = 0.0

  def matches(self, from_rate: int, to_rate: int) -> bool:
    return self.from_rate == from_rate and self.to_rate == to_rate

  def reset(self, from_rate: int, to_rate: int) -> None:
    """Discard all history and prepare for a new rate pair."""
    self.from_rate = None
    self.to_rate = None

    if from_rate <= 0 or to_rate <= 0:
      raise ValueError(f"Sample rates must be positive, got {from_rate} -> {to_rate}")
    ratio = from_rate / to_rate
    if not 1.0 / self.MAX_RATIO <= ratio <= self.MAX_RATIO:
      raise ValueError(f"Unsupported resample ratio {from_rate} -> {to_rate}")

    self._step = ratio
    self._cutoff = self.f_cutoff * min(1.0, to_rate / from_rate)
    # Zero left context so the first output can be centred on the first input sample
    self._history = np.zeros(self._half - 1, dtype=np.float64)
    self._position = float(self._half - 1)

    self.from_rate = from_rate
    self.to_rate = to_rate

  def process(self, chunk: np.ndarray) -> np.ndarray:
    """Resample the next buffer of the stream."""
    if self.from_rate is None:
      raise RuntimeError("SincResampler.process() called before reset()")
    if len(chunk) == 0:
      return np.empty(0, dtype=np.int16)

    buffer = np.concatenate([self._history, chunk.astype(np.float64) / 32768.0])

    # Highest integer source position with a full kernel of right-hand context
    last_base = len(buffer) - 1 - self._half
    count = max(0, math.ceil((last_base + 1 - self._position) / self._step))
    positions = self._position + self._step * np.arange(count, dtype=np.float64)
    positions = positions[np.floor(positions) <= last_base]

    if len(positions):
      bases = np.floor(positions).astype(np.int64)
      taps = bases[:, None] + self._offsets[None, :]
      distance = positions[:, None] - taps
      weights = self._cutoff * np.sinc(self._cutoff * distance) * _blackman(distance / self._half)
      weights /= weights.sum(axis=1, keepdims=True)
      output = (buffer[taps] * weights).sum(axis=1)
      next_position = positions[-1] + self._step
    else:
      output = np.empty(0, dtype=np.float64)
      next_position = self._position

    drop = max(0, math.floor(next_position) - self._half + 1)
    self._history = buffer[drop:]
    self._position = next_position - drop

    return np.clip(output * 32767.0, -32768.0, 32767.0).astype(np.int16)


class Resampler:
  """
  Converts mono int16 audio between sample rates with the configured algorithm.

  The sinc state is rebuilt automatically whenever the requested rate pair differs from
  the previous call. All calls are serialized by one lock, so a single instance can be
  driven from the audio callback thread.
  """

  def __init__(self, method: ResampleMethod | None = None):
    self.method = method or ResampleMethod.from_env()
    self._sinc = SincResampler()
    self._lock = threading.Lock()
    logger.info("Resampler ready", method=self.method.value)

  def reset(self) -> None:
    """Forget the sinc history so the next stream starts clean."""
    with self._lock:
      self._sinc = SincResampler(self._sinc.sinc_len, self._sinc.f_cutoff)

  def resample(
    self, samples: Sequence[int] | np.ndarray, from_rate: int, to_rate: int
  ) -> np.ndarray:
    """Resample ``samples`` from ``from_rate`` to ``to_rate``. Equal rates return the input."""
    data = np.asarray(samples, dtype=np.int16)
    if from_rate == to_rate:
      return data

    if self.method == ResampleMethod.LINEAR:
      return resample_linear(data, from_rate, to_rate)
    return self._resample_sinc(data, from_rate, to_rate)

  def _resample_sinc(self, data: np.ndarray, from_rate: int, to_rate: int) -> np.ndarray:
    if len(data) == 0:
      return data

    with self._lock:
      try:
        if not self._sinc.matches(from_rate, to_rate):
          self._sinc.reset(from_rate, to_rate)
          logger.info("Created sinc resampler", from_rate=from_rate, to_rate=to_rate)
        return self._sinc.process(data)
      except (ValueError, RuntimeError, FloatingPointError) as e:
        logger.error("Sinc resampling failed, falling back to linear", error=str(e))

    return resample_linear(data, from_rate, to_rate)
