"""Exceptions raised by the capture pipeline and the transcription session."""


class MurmurError(Exception):
  """Base exception for murmur client errors."""


class DeviceError(MurmurError):
  """No usable audio input device, or its format could not be negotiated."""


class SessionError(MurmurError):
  """A transcription session ended without producing a final transcript."""


class ConnectError(SessionError):
  """The credential could not be acquired or the connection handshake failed."""


class ServiceError(SessionError):
  """The service reported a non-zero status code."""

  def __init__(self, code: int, message: str):
    super().__init__(f"Service error: code={code}, message={message}")
    self.code = code
    self.message = message
