"""In-memory stand-ins for the transcription service and credential provider."""

import asyncio
import json

from websockets.exceptions import ConnectionClosed, ConnectionClosedOK

from murmur.client.credentials import Credential


def result(text: str) -> str:
  return json.dumps({"event": "result", "result": {"Text": text}, "code": 0})


FINISH = json.dumps({"event": "finish", "code": 0})


class FakeConnection:
  """In-memory stand-in for a websockets client connection."""

  def __init__(
    self,
    frames=(),
    close_after_frames: bool = False,
    finish_reply=(),
    closed_with: type[ConnectionClosed] = ConnectionClosedOK,
  ):
    self.inbound: asyncio.Queue = asyncio.Queue()
    for frame in frames:
      self.inbound.put_nowait(frame)
    self.close_after_frames = close_after_frames
    self.closed_with = closed_with
    self.finish_reply = list(finish_reply)
    self.sent: list = []
    self.closed = False

  async def send(self, message):
    if self.closed:
      raise ConnectionClosedOK(None, None)
    self.sent.append(message)
    if isinstance(message, str):
      for frame in self.finish_reply:
        self.inbound.put_nowait(frame)

  async def recv(self):
    if self.inbound.empty() and (self.closed or self.close_after_frames):
      raise self.closed_with(None, None)
    return await self.inbound.get()

  async def close(self):
    self.closed = True

  @property
  def audio_frames(self) -> list[bytes]:
    return [m for m in self.sent if isinstance(m, bytes)]

  @property
  def text_frames(self) -> list[str]:
    return [m for m in self.sent if isinstance(m, str)]


class ListSource:
  """Chunk source that yields a fixed list, then reports quiet."""

  def __init__(self, chunks=()):
    self.chunks = list(chunks)

  async def get(self, timeout=None):
    if self.chunks:
      return self.chunks.pop(0)
    await asyncio.sleep(timeout or 0)
    return None


class FakeProvider:
  def __init__(self, error: Exception | None = None):
    self.credential = Credential(token="t", url="wss://asr.example.com/stream")
    self.error = error
    self.acquired = 0
    self.invalidated = 0

  async def acquire(self) -> Credential:
    self.acquired += 1
    if self.error is not None:
      raise self.error
    return self.credential

  def invalidate(self) -> None:
    self.invalidated += 1


def connector_for(connection):
  async def connect(credential):
    return connection

  return connect
