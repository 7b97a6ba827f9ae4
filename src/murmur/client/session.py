"""
Streaming transcription session.

One session covers one trigger press: it connects to the service, relays audio chunks as
binary frames while the trigger is held, and turns the service's inbound events into
partial and final transcript callbacks. Three asyncio tasks share the session:

- the relay moves chunks from the capture queue into an outbound queue,
- the sender is the only writer on the connection,
- the receiver reads events and drives the finalize state machine.

Once stop is observed the session waits a bounded grace period for the service's finish
event; if none arrives the last partial becomes the final transcript.
"""

import asyncio
import secrets
import threading
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import Protocol

import websockets
from websockets.exceptions import (
  ConnectionClosed,
  ConnectionClosedError,
  ConnectionClosedOK,
  WebSocketException,
)

from murmur.client.chunk_queue import ChunkQueueClosed
from murmur.client.config import SessionConfig
from murmur.client.credentials import Credential, CredentialProvider
from murmur.client.errors import ConnectError, ServiceError
from murmur.common import Bytes, Milliseconds, Seconds, get_logger
from murmur.wire import (
  FinalEvent,
  FinishMessage,
  PartialEvent,
  ProtocolError,
  ServiceErrorEvent,
  parse_event,
  serialize_message,
)

logger = get_logger("asr")

type TranscriptCallback = Callable[[str], None]


class SessionState(StrEnum):
  IDLE = "idle"
  CONNECTING = "connecting"
  STREAMING = "streaming"
  FINALIZING = "finalizing"
  CLOSED = "closed"


class ChunkSource(Protocol):
  """
  Awaitable source of audio chunks, e.g. a ChunkQueue.

  ``get`` returns None on timeout and raises ChunkQueueClosed once the producer is done.
  """

  async def get(self, timeout: float | None = None) -> bytes | None: ...


class Connection(Protocol):
  """The subset of a websockets ClientConnection used by the session."""

  async def send(self, message: str | bytes) -> None: ...

  async def recv(self) -> str | bytes: ...

  async def close(self) -> None: ...


type Connector = Callable[[Credential], Awaitable[Connection]]


async def connect_websocket(credential: Credential) -> Connection:
  """Open the service WebSocket using the credential's endpoint and headers."""
  return await websockets.connect(
    credential.url,
    additional_headers=credential.headers(),
    user_agent_header=credential.user_agent,
  )


async def _open_connection(connector: Connector, credential: Credential) -> Connection:
  try:
    return await connector(credential)
  except (WebSocketException, OSError, TimeoutError) as e:
    raise ConnectError(f"Failed to connect to transcription service: {e}") from e


class TranscriptionSession:
  """
  A single-use push-to-talk transcription session.

  :param provider: Source of the connection credential. Invalidated when the service
      reports an error.
  :param config: Timing and buffering parameters.
  :param connector: Opens the connection. Defaults to a real WebSocket.
  """

  def __init__(
    self,
    provider: CredentialProvider,
    config: SessionConfig | None = None,
    connector: Connector = connect_websocket,
  ):
    self._provider = provider
    self._config = config or SessionConfig()
    self._connector = connector

    self.session_id = secrets.token_hex(2)
    self.logger = logger.bind(session=self.session_id)

    self.state = SessionState.IDLE
    self.partial = ""
    """The current best-known transcript."""

    self.chunks_sent = 0
    self.bytes_sent = 0
    self._final_delivered = False

  def _set_state(self, state: SessionState) -> None:
    if state != self.state:
      self.logger.debug("Session state", previous=self.state.value, state=state.value)
      self.state = state

  async def run(
    self,
    chunk_source: ChunkSource,
    stop_signal: threading.Event,
    on_partial: TranscriptCallback,
    on_final: TranscriptCallback,
  ) -> None:
    """
    Run the session until it produces a final transcript or fails.

    ``on_final`` is called at most once, and only on success. No callback fires after
    this coroutine returns.

    :raises ConnectError: The credential or the connection could not be obtained.
    :raises ServiceError: The service reported a non-zero status code. The credential has
        been invalidated.
    """
    if self.state != SessionState.IDLE:
      raise RuntimeError("TranscriptionSession.run() can only be called once")

    self._set_state(SessionState.CONNECTING)
    try:
      credential = await self._provider.acquire()
      self.logger.info("Connecting", url=credential.url)
      connection = await _open_connection(self._connector, credential)
    except BaseException:
      self._set_state(SessionState.CLOSED)
      raise

    self.logger.info("Connected")
    self._set_state(SessionState.STREAMING)

    outbound: asyncio.Queue[bytes] = asyncio.Queue(maxsize=self._config.outbound_queue_size)
    closing = asyncio.Event()
    relay_done = asyncio.Event()

    relay_task = asyncio.create_task(
      self._relay_audio(chunk_source, outbound, closing, relay_done)
    )
    send_task = asyncio.create_task(
      self._send_audio(connection, stop_signal, outbound, closing, relay_done)
    )

    try:
      await self._receive_events(connection, stop_signal, on_partial, on_final)
    finally:
      self._set_state(SessionState.CLOSED)
      closing.set()
      for result in await asyncio.gather(relay_task, send_task, return_exceptions=True):
        if isinstance(result, BaseException):
          self.logger.error("Session task failed", error=repr(result))
      await connection.close()
      self.logger.info(
        "Session ended", chunks_sent=self.chunks_sent, bytes_sent=Bytes(self.bytes_sent)
      )

  async def _relay_audio(
    self,
    source: ChunkSource,
    outbound: asyncio.Queue[bytes],
    closing: asyncio.Event,
    relay_done: asyncio.Event,
  ) -> None:
    relayed = 0
    try:
      while not closing.is_set():
        try:
          chunk = await source.get(timeout=self._config.relay_poll)
        except ChunkQueueClosed:
          self.logger.debug("Chunk source exhausted")
          break

        if chunk is None:
          # The capture flush lands after stop; only a close ends the stream
          continue

        while not closing.is_set():
          try:
            await asyncio.wait_for(outbound.put(chunk), timeout=self._config.relay_poll)
            relayed += 1
            break
          except asyncio.TimeoutError:
            self.logger.warning("Outbound queue full, waiting for sender")
    finally:
      relay_done.set()
      self.logger.debug("Audio relay ended", relayed=relayed)

  async def _send_audio(
    self,
    connection: Connection,
    stop_signal: threading.Event,
    outbound: asyncio.Queue[bytes],
    closing: asyncio.Event,
    relay_done: asyncio.Event,
  ) -> None:
    while not closing.is_set():
      try:
        chunk = await asyncio.wait_for(outbound.get(), timeout=self._config.send_poll)
      except asyncio.TimeoutError:
        # Audio queued before stop is flushed before the finish frame goes out
        if stop_signal.is_set() and relay_done.is_set() and outbound.empty():
          await self._send_finish(connection)
          break
        continue

      try:
        await connection.send(chunk)
      except ConnectionClosed as e:
        self.logger.error("Send error", error=str(e))
        break

      self.chunks_sent += 1
      self.bytes_sent += len(chunk)
      if self.chunks_sent % 10 == 0:
        self.logger.debug("Sent chunks", count=self.chunks_sent)

    self.logger.info("Sender ended", chunks_sent=self.chunks_sent)

  async def _send_finish(self, connection: Connection) -> None:
    self.logger.info("Sending finish signal")
    try:
      await connection.send(serialize_message(FinishMessage()))
    except ConnectionClosed as e:
      self.logger.error("Failed to send finish signal", error=str(e))

  async def _receive_events(
    self,
    connection: Connection,
    stop_signal: threading.Event,
    on_partial: TranscriptCallback,
    on_final: TranscriptCallback,
  ) -> None:
    loop = asyncio.get_running_loop()
    grace = self._config.finalize_grace
    deadline: float | None = None
    stopped_at = 0.0

    while True:
      if deadline is None and stop_signal.is_set():
        self._set_state(SessionState.FINALIZING)
        stopped_at = loop.time()
        deadline = stopped_at + grace
        self.logger.info("Stop detected, waiting for final result", grace=Seconds(grace))

      timeout = self._config.recv_poll
      if deadline is not None:
        remaining = deadline - loop.time()
        if remaining <= 0:
          self.logger.info("No finish event in time, using partial as final", text=self.partial)
          self._deliver_final(on_final)
          return
        timeout = min(timeout, remaining)

      try:
        frame = await asyncio.wait_for(connection.recv(), timeout=timeout)
      except asyncio.TimeoutError:
        continue
      except ConnectionClosed as e:
        self.logger.info("Connection closed by service", reason=str(e))
        self._deliver_final(on_final)
        return

      try:
        event = parse_event(frame)
      except ProtocolError as e:
        self.logger.warning("Skipping malformed frame", error=str(e))
        continue

      match event:
        case PartialEvent(text=text):
          if text:
            self.partial = text
            self.logger.info("Partial", text=text)
            on_partial(text)
        case FinalEvent():
          waited = Milliseconds((loop.time() - stopped_at) * 1000) if deadline is not None else None
          self.logger.info("Finish received", text=self.partial, waited=waited)
          self._deliver_final(on_final)
          return
        case ServiceErrorEvent(code=code, message=message):
          self.logger.error("Service error", code=code, message=message)
          self._provider.invalidate()
          raise ServiceError(code, message)
        case None:
          self.logger.debug("Ignoring unrecognized event")

  def _deliver_final(self, on_final: TranscriptCallback) -> None:
    if self._final_delivered or not self.partial:
      return
    self._final_delivered = True
    on_final(self.partial)


async def probe_connection(
  provider: CredentialProvider,
  timeout: float = 5.0,
  connector: Connector = connect_websocket,
) -> None:
  """
  Check that the service accepts the current credential.

  Opens a connection, immediately sends the finish frame and waits for the service to
  answer. A silent service is not treated as a failure.

  :raises ConnectError: The credential or the connection could not be obtained, or the
      service dropped the connection without a clean close.
  :raises ServiceError: The service rejected the session. The credential is invalidated.
  """
  credential = await provider.acquire()
  logger.info("Probing connection", url=credential.url)
  connection = await _open_connection(connector, credential)

  try:
    await connection.send(serialize_message(FinishMessage()))
    async with asyncio.timeout(timeout):
      while True:
        try:
          frame = await connection.recv()
        except ConnectionClosedOK:
          logger.info("Probe passed, connection closed by service")
          return
        except ConnectionClosedError as e:
          raise ConnectError(f"Connection closed abnormally during probe: {e}") from e

        try:
          event = parse_event(frame)
        except ProtocolError as e:
          logger.warning("Probe skipping malformed frame", error=str(e))
          continue

        match event:
          case ServiceErrorEvent(code=code, message=message):
            provider.invalidate()
            raise ServiceError(code, message)
          case FinalEvent():
            logger.info("Probe passed")
            return
          case _:
            continue
  except TimeoutError:
    logger.warning("Probe got no answer in time, assuming the connection works", timeout=timeout)
  finally:
    await connection.close()
