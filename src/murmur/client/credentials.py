"""
Connection credentials for the transcription service.

The service authenticates a WebSocket handshake with a token, an endpoint URL and a
client identity. How those are obtained (for example harvested from another application)
is the job of a :class:`CredentialFetcher`; this module caches the result in an explicit
:class:`CredentialStore` and exposes it to sessions through a :class:`CredentialProvider`.
"""

import threading
from typing import Protocol
from urllib.parse import parse_qsl, urlsplit

from pydantic import BaseModel, ConfigDict

from murmur.client.config import CredentialConfig
from murmur.client.errors import ConnectError
from murmur.common import Pretty, get_logger

logger = get_logger("cred")


class Credential(BaseModel):
  """Point-in-time connection parameters for one session's handshake."""

  model_config = ConfigDict(frozen=True)

  token: str
  """Authentication token, sent as the Cookie header."""

  url: str
  """WebSocket endpoint of the transcription service."""

  user_agent: str = "murmur"
  """Client identity presented to the service."""

  origin: str | None = None
  """Origin header expected by the service, if any."""

  @property
  def endpoint_params(self) -> dict[str, str]:
    """Query parameters of the endpoint URL."""
    return dict(parse_qsl(urlsplit(self.url).query, keep_blank_values=True))

  def headers(self) -> dict[str, str]:
    """Extra HTTP headers for the WebSocket handshake. User-Agent is sent separately."""
    headers = {"Cookie": self.token}
    if self.origin:
      headers["Origin"] = self.origin
    return headers

  def __repr__(self) -> str:
    return f"Credential(url={self.url!r}, user_agent={self.user_agent!r}, token=<redacted>)"

  __str__ = __repr__


class CredentialStore:
  """Thread-safe cache holding at most one credential."""

  def __init__(self, credential: Credential | None = None):
    self._lock = threading.Lock()
    self._credential = credential

  def read(self) -> Credential | None:
    with self._lock:
      return self._credential

  def write(self, credential: Credential) -> None:
    with self._lock:
      self._credential = credential

  def clear(self) -> None:
    with self._lock:
      self._credential = None

  @property
  def has_credential(self) -> bool:
    return self.read() is not None


class CredentialFetcher(Protocol):
  """Produces a fresh credential, possibly by performing network I/O."""

  async def fetch(self) -> Credential: ...

  async def is_available(self) -> bool: ...


class CredentialProvider(Protocol):
  """What a session needs from the credential layer."""

  async def acquire(self) -> Credential: ...

  def invalidate(self) -> None: ...


class StaticCredentialFetcher:
  """Fetcher backed by user configuration rather than a live source."""

  def __init__(self, config: CredentialConfig):
    self._config = config

  async def is_available(self) -> bool:
    return self._config.is_complete

  async def fetch(self) -> Credential:
    if not self._config.is_complete:
      raise ValueError("Credential configuration needs at least a token and a url")
    assert self._config.token is not None and self._config.url is not None

    return Credential(
      token=self._config.token,
      url=self._config.url,
      user_agent=self._config.user_agent or "murmur",
      origin=self._config.origin,
    )


class CachingCredentialProvider:
  """Serves the cached credential, fetching a new one only after invalidation."""

  def __init__(self, store: CredentialStore, fetcher: CredentialFetcher):
    self.store = store
    self._fetcher = fetcher

  async def acquire(self) -> Credential:
    """
    Return a credential snapshot.

    :raises ConnectError: Nothing was cached and the fetcher failed.
    """
    cached = self.store.read()
    if cached is not None:
      logger.debug("Using cached credential")
      return cached

    logger.info("No cached credential, fetching")
    try:
      credential = await self._fetcher.fetch()
    except Exception as e:
      raise ConnectError(f"Failed to acquire credential: {e}") from e

    self.store.write(credential)
    logger.info("Credential acquired", url=credential.url)
    logger.debug("Endpoint parameters", params=Pretty(credential.endpoint_params))
    return credential

  def invalidate(self) -> None:
    """Drop the cached credential so the next acquire() fetches again."""
    logger.info("Invalidating cached credential")
    self.store.clear()

  async def is_available(self) -> bool:
    """Whether a session could start right now without user intervention."""
    if self.store.has_credential:
      return True
    return await self._fetcher.is_available()
