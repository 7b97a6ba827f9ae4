"""
Push-to-talk glue between a trigger, the microphone and the transcription session.

``press()`` and ``release()`` may be called from any thread (keyboard listeners usually
run on their own). Sessions run on the event loop the controller was created with.
"""

import asyncio
import concurrent.futures
import threading
from typing import Protocol

from murmur.client.audio import AudioCapturer, CaptureHandle
from murmur.client.chunk_queue import ChunkQueue
from murmur.client.config import SessionConfig
from murmur.client.credentials import CredentialProvider
from murmur.client.errors import DeviceError, SessionError
from murmur.client.session import Connector, TranscriptionSession, connect_websocket
from murmur.common import get_logger

logger = get_logger("ptt")


class TranscriptSink(Protocol):
  """Consumer of transcripts, e.g. an overlay or a paste helper."""

  def on_partial(self, text: str) -> None: ...

  def on_final(self, text: str) -> None: ...

  def on_error(self, error: Exception) -> None: ...


class TriggerSource(Protocol):
  """Something that reports when the dictation trigger goes down and up."""

  def start(self, on_press, on_release, on_exit) -> None: ...

  def stop(self) -> None: ...


class DictationController:
  """Runs at most one capture + transcription session at a time."""

  def __init__(
    self,
    capturer: AudioCapturer,
    provider: CredentialProvider,
    sink: TranscriptSink,
    loop: asyncio.AbstractEventLoop,
    session_config: SessionConfig | None = None,
    queue_size: int = 256,
    connector: Connector = connect_websocket,
  ):
    self._capturer = capturer
    self._provider = provider
    self._sink = sink
    self._loop = loop
    self._session_config = session_config or SessionConfig()
    self._queue_size = queue_size
    self._connector = connector

    self._lock = threading.Lock()
    self._active = False
    self._stop_signal: threading.Event | None = None
    self.current: concurrent.futures.Future[None] | None = None

  @property
  def active(self) -> bool:
    with self._lock:
      return self._active

  def press(self) -> bool:
    """
    Start recording and transcribing.

    :returns: False if a session is already running or the microphone failed to open.
    """
    with self._lock:
      if self._active:
        logger.warning("Already recording")
        return False
      self._active = True

    stop_signal = threading.Event()
    chunks = ChunkQueue(self._queue_size)
    try:
      handle = self._capturer.start(chunks, stop_signal)
    except DeviceError as e:
      logger.error("Recording failed", error=str(e))
      with self._lock:
        self._active = False
      self._sink.on_error(e)
      return False

    with self._lock:
      self._stop_signal = stop_signal
    logger.info("Recording started")
    self.current = asyncio.run_coroutine_threadsafe(
      self._run_session(chunks, stop_signal, handle), self._loop
    )
    return True

  def release(self) -> bool:
    """Stop recording; the session then finalizes on its own."""
    with self._lock:
      stop_signal = self._stop_signal
      self._stop_signal = None

    if stop_signal is None:
      return False

    logger.info("Recording released")
    stop_signal.set()
    return True

  async def _run_session(
    self, chunks: ChunkQueue, stop_signal: threading.Event, handle: CaptureHandle
  ) -> None:
    session = TranscriptionSession(self._provider, self._session_config, self._connector)
    try:
      await session.run(chunks, stop_signal, self._sink.on_partial, self._sink.on_final)
    except SessionError as e:
      logger.error("Session failed", error=str(e))
      self._sink.on_error(e)
    except Exception as e:
      logger.exception("Unexpected session failure")
      self._sink.on_error(e)
    finally:
      # A failed session must not leave the microphone open
      stop_signal.set()
      while handle.is_alive():
        await asyncio.sleep(0.05)
      if handle.failed.is_set():
        logger.warning("Capture ended with an error", error=str(handle.error))
      with self._lock:
        self._active = False
        if self._stop_signal is stop_signal:
          self._stop_signal = None
      logger.info("Dictation finished", state=session.state.value)

  async def shutdown(self) -> None:
    """Stop any running session and wait for it to finish."""
    self.release()
    if self.current is not None:
      await asyncio.wrap_future(self.current)
