"""
Microphone capture for the dictation pipeline.

Audio is opened at the input device's native rate and channel count, then converted inside
the PortAudio callback to 16-bit mono at the target rate and cut into fixed-size chunks of
little-endian PCM bytes.
"""

import queue
import threading
from typing import Any, Protocol, TypedDict

import numpy as np
import sounddevice as sd

from murmur.client.config import AudioConfig
from murmur.client.errors import DeviceError
from murmur.client.pcm import downmix_to_mono, to_int16, to_pcm_bytes
from murmur.client.resample import Resampler
from murmur.common import Samples, get_logger

logger = get_logger("snd/cap")


class ChunkSink(Protocol):
  """Receives audio chunks from the capture callback."""

  def put(self, chunk: bytes, timeout: float | None = None) -> None: ...

  def close(self) -> None: ...


class InputDevice(TypedDict):
  """Summary of one audio input device."""

  index: int
  name: str
  channels: int
  default_samplerate: float
  is_default: bool


def list_input_devices() -> list[InputDevice]:
  """Enumerate the audio devices that can record."""
  default_input = sd.default.device[0]

  devices: list[InputDevice] = []
  for index, device in enumerate(sd.query_devices()):
    if device["max_input_channels"] > 0:
      devices.append(
        InputDevice(
          index=index,
          name=device["name"],
          channels=device["max_input_channels"],
          default_samplerate=device["default_samplerate"],
          is_default=index == default_input,
        )
      )
  return devices


class CaptureHandle:
  """
  One running capture, from stream start to the final flush.

  The PortAudio thread calls :meth:`_audio_callback`; a dedicated capture thread waits for
  the stop signal, closes the stream and flushes the remainder.
  """

  def __init__(
    self,
    stream_factory,
    sink: ChunkSink,
    stop_signal: threading.Event,
    resampler: Resampler,
    native_rate: int,
    channels: int,
    config: AudioConfig,
  ):
    self.sink = sink
    self.stop_signal = stop_signal
    self.native_rate = native_rate
    self.channels = channels
    self.chunks_emitted = 0
    self.chunks_dropped = 0

    self.failed = threading.Event()
    """One-shot signal set when the stream fails at runtime."""

    self.error: BaseException | None = None

    self._resampler = resampler
    self._config = config
    self._lock = threading.Lock()
    self._buffer = np.empty(0, dtype=np.int16)
    self._stream = stream_factory(self._audio_callback)
    self._thread = threading.Thread(target=self._run, name="murmur-capture", daemon=True)

  def _start(self) -> None:
    self._stream.start()
    self._thread.start()

  def _audio_callback(self, indata: np.ndarray, frames: int, time_info: Any, status) -> None:
    if status:
      logger.warning("Audio status", status=str(status))

    try:
      mono = downmix_to_mono(to_int16(indata), self.channels)
      samples = self._resampler.resample(mono, self.native_rate, self._config.target_rate)
      self._append(samples)
    except Exception as e:
      self._fail(e)
      raise sd.CallbackAbort from e

  def _append(self, samples: np.ndarray) -> None:
    chunk_samples = self._config.chunk_samples
    ready = []
    with self._lock:
      self._buffer = np.concatenate([self._buffer, samples])
      while len(self._buffer) >= chunk_samples:
        chunk, self._buffer = self._buffer[:chunk_samples], self._buffer[chunk_samples:]
        ready.append(chunk)

    # The audio callback must never wait on the consumer
    for chunk in ready:
      self._emit(chunk, timeout=0)

  def _emit(self, chunk: np.ndarray, timeout: float | None) -> None:
    try:
      self.sink.put(to_pcm_bytes(chunk), timeout=timeout)
    except queue.Full:
      self.chunks_dropped += 1
      logger.warning(
        "Chunk queue full, dropping chunk",
        samples=Samples(len(chunk)),
        dropped=self.chunks_dropped,
      )
      return
    self.chunks_emitted += 1

  def _fail(self, error: BaseException) -> None:
    if not self.failed.is_set():
      self.error = error
      self.failed.set()
      logger.error("Audio stream failed", error=str(error))

  def _run(self) -> None:
    logger.info("Recording started", rate=self.native_rate, channels=self.channels)
    try:
      while not self.stop_signal.wait(self._config.stop_poll):
        if self.failed.is_set():
          break
      logger.info("Capture ending, flushing buffer", failed=self.failed.is_set())
      try:
        self._stream.stop()
        self._stream.close()
      except sd.PortAudioError as e:
        self._fail(e)
      self._flush()
    except Exception as e:
      self._fail(e)
    finally:
      self.sink.close()
      logger.info(
        "Recording stopped", chunks=self.chunks_emitted, dropped=self.chunks_dropped
      )

  def _flush(self) -> None:
    with self._lock:
      remainder, self._buffer = self._buffer, np.empty(0, dtype=np.int16)
    if len(remainder):
      logger.info("Sending remaining samples", samples=Samples(len(remainder)))
      self._emit(remainder, timeout=self._config.flush_timeout)

  def join(self, timeout: float | None = None) -> None:
    """Wait for the capture thread to finish its final flush."""
    self._thread.join(timeout)

  def is_alive(self) -> bool:
    return self._thread.is_alive()


class AudioCapturer:
  """Opens the input device and produces target-rate mono chunks until told to stop."""

  def __init__(self, config: AudioConfig | None = None, resampler: Resampler | None = None):
    self.config = config or AudioConfig()
    self.resampler = resampler or Resampler(self.config.resample_method)

  def _negotiate(self) -> tuple[int, int]:
    try:
      device_info = sd.query_devices(self.config.device, kind="input")
    except (sd.PortAudioError, ValueError) as e:
      raise DeviceError(f"No audio input device available: {e}") from e

    native_rate = int(device_info["default_samplerate"])
    channels = int(device_info["max_input_channels"])
    if native_rate <= 0 or channels < 1:
      raise DeviceError(
        f"Input device '{device_info['name']}' reports no usable format "
        f"(rate={native_rate}, channels={channels})"
      )

    logger.info(
      "Input device",
      name=device_info["name"],
      rate=native_rate,
      channels=channels,
      dtype=self.config.dtype,
    )
    return native_rate, channels

  def start(self, sink: ChunkSink, stop_signal: threading.Event) -> CaptureHandle:
    """
    Start capturing from the input device.

    Chunks of ``config.chunk_samples`` samples are delivered to ``sink.put`` from the audio
    callback. Once ``stop_signal`` is set the stream is closed, any remaining samples are
    delivered as one shorter chunk and ``sink.close()`` is called.

    :raises DeviceError: No input device, or its stream could not be opened.
    """
    native_rate, channels = self._negotiate()
    self.resampler.reset()

    def stream_factory(callback):
      return sd.InputStream(
        device=self.config.device,
        samplerate=native_rate,
        channels=channels,
        dtype=self.config.dtype,
        callback=callback,
      )

    try:
      handle = CaptureHandle(
        stream_factory,
        sink,
        stop_signal,
        self.resampler,
        native_rate,
        channels,
        self.config,
      )
      handle._start()
    except (sd.PortAudioError, ValueError) as e:
      raise DeviceError(f"Failed to open input stream: {e}") from e

    return handle

  def warmup(self, duration: float = 0.1) -> threading.Thread:
    """
    Briefly open the input device in the background so the OS permission prompt appears
    before the first real recording. Failures are only logged.
    """

    def _warmup() -> None:
      try:
        with sd.InputStream(device=self.config.device, callback=lambda *_: None):
          threading.Event().wait(duration)
        logger.info("Microphone warmup complete")
      except (sd.PortAudioError, ValueError) as e:
        logger.warning("Microphone warmup failed", error=str(e))

    logger.info("Warming up microphone")
    thread = threading.Thread(target=_warmup, name="murmur-warmup", daemon=True)
    thread.start()
    return thread
