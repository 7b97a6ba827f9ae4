"""Sample format helpers for 16-bit PCM audio."""

import numpy as np


def to_int16(data: np.ndarray) -> np.ndarray:
  """
  Convert device samples of any supported PCM format to int16.

  Floating samples are clamped to [-1.0, 1.0] and scaled by 32767, truncating toward zero.
  Integer formats are shifted into the 16-bit range.
  """
  if data.dtype.kind == "f":
    clamped = np.clip(np.nan_to_num(data, nan=0.0), -1.0, 1.0)
    return (clamped * 32767.0).astype(np.int16)
  if data.dtype == np.int16:
    return data
  if data.dtype == np.int32:
    return (data >> 16).astype(np.int16)
  if data.dtype == np.int8:
    return data.astype(np.int16) << 8
  if data.dtype == np.uint8:
    return (data.astype(np.int16) - 128) << 8
  raise ValueError(f"Unsupported sample format: {data.dtype}")


def downmix_to_mono(samples: np.ndarray, channels: int) -> np.ndarray:
  """
  Average interleaved frames down to one channel.

  Each output sample is the integer-truncated mean of its frame's channel values. A
  trailing partial frame is discarded.
  """
  flat = np.asarray(samples, dtype=np.int16).ravel()
  if channels <= 1:
    return flat

  frame_count = len(flat) // channels
  frames = flat[: frame_count * channels].reshape(frame_count, channels)
  totals = frames.astype(np.int32).sum(axis=1)
  return np.trunc(totals / channels).astype(np.int16)


def to_pcm_bytes(samples: np.ndarray) -> bytes:
  """Serialize int16 samples as little-endian bytes."""
  return np.asarray(samples, dtype=np.int16).astype("<i2").tobytes()


def from_pcm_bytes(chunk: bytes) -> np.ndarray:
  """Inverse of :func:`to_pcm_bytes`."""
  return np.frombuffer(chunk, dtype="<i2").astype(np.int16)
