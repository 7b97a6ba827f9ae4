"""
Bounded FIFO handing audio chunks from the capture thread to the asyncio session.

The producer side blocks (the capture thread can afford to wait a little); the consumer
side is awaitable and is woken through the event loop rather than by parking a worker
thread on a blocking get.
"""

import asyncio
import queue
import threading
import time
from collections import deque

from murmur.common import get_logger

logger = get_logger("snd/q")


class ChunkQueueClosed(Exception):
  """The producer closed the queue and every chunk has been consumed."""


class ChunkQueue:
  """
  Single-producer/single-consumer queue of audio chunks.

  ``put`` and ``close`` may be called from any thread. ``get`` must always be awaited from
  the same event loop, which is bound on first use.
  """

  def __init__(self, maxsize: int = 256):
    if maxsize <= 0:
      raise ValueError(f"maxsize must be positive, got {maxsize}")

    self.maxsize = maxsize
    self._items: deque[bytes] = deque()
    self._lock = threading.Lock()
    self._not_full = threading.Condition(self._lock)
    self._closed = False

    self._loop: asyncio.AbstractEventLoop | None = None
    self._ready: asyncio.Event | None = None

  @property
  def closed(self) -> bool:
    return self._closed

  def qsize(self) -> int:
    with self._lock:
      return len(self._items)

  def put(self, chunk: bytes, timeout: float | None = None) -> None:
    """
    Append a chunk, blocking while the queue is full.

    :raises queue.Full: The queue stayed full for ``timeout`` seconds.
    :raises ChunkQueueClosed: The queue was closed.
    """
    deadline = None if timeout is None else time.monotonic() + timeout
    with self._not_full:
      while len(self._items) >= self.maxsize and not self._closed:
        remaining = None if deadline is None else deadline - time.monotonic()
        if remaining is not None and remaining <= 0:
          raise queue.Full
        self._not_full.wait(remaining)

      if self._closed:
        raise ChunkQueueClosed("Cannot put into a closed ChunkQueue")
      self._items.append(chunk)

    self._wake_consumer()

  __call__ = put

  def close(self) -> None:
    """Mark the end of the stream. Chunks already queued can still be consumed."""
    with self._not_full:
      self._closed = True
      self._not_full.notify_all()
    self._wake_consumer()

  def _wake_consumer(self) -> None:
    loop, ready = self._loop, self._ready
    if loop is None or ready is None or loop.is_closed():
      return
    try:
      loop.call_soon_threadsafe(ready.set)
    except RuntimeError:
      # Loop shut down between the check and the call
      pass

  def _bind(self) -> asyncio.Event:
    loop = asyncio.get_running_loop()
    if self._loop is not loop:
      self._loop = loop
      self._ready = asyncio.Event()
    assert self._ready is not None
    return self._ready

  async def get(self, timeout: float | None = None) -> bytes | None:
    """
    Pop the oldest chunk.

    :returns: The chunk, or None if nothing arrived within ``timeout`` seconds.
    :raises ChunkQueueClosed: The queue is closed and empty.
    """
    ready = self._bind()
    loop = asyncio.get_running_loop()
    deadline = None if timeout is None else loop.time() + timeout

    while True:
      with self._not_full:
        if self._items:
          chunk = self._items.popleft()
          self._not_full.notify()
          return chunk
        if self._closed:
          raise ChunkQueueClosed("ChunkQueue is closed")
        # Cleared under the lock, so a put() that follows always schedules a fresh set()
        ready.clear()

      remaining = None if deadline is None else deadline - loop.time()
      if remaining is not None and remaining <= 0:
        return None
      try:
        await asyncio.wait_for(ready.wait(), timeout=remaining)
      except asyncio.TimeoutError:
        return None
