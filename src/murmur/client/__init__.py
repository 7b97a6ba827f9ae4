"""
murmur client package.

Audio capture, resampling, credentials and the streaming transcription session. The
microphone-facing modules (``audio``, ``controller``) are imported explicitly since they
need PortAudio at import time.
"""

from murmur.client.chunk_queue import ChunkQueue, ChunkQueueClosed
from murmur.client.config import (
  AudioConfig,
  CredentialConfig,
  MurmurConfig,
  SessionConfig,
  load_config_from_file,
)
from murmur.client.credentials import (
  CachingCredentialProvider,
  Credential,
  CredentialFetcher,
  CredentialProvider,
  CredentialStore,
  StaticCredentialFetcher,
)
from murmur.client.errors import ConnectError, DeviceError, MurmurError, ServiceError, SessionError
from murmur.client.resample import Resampler, ResampleMethod, SincResampler, resample_linear
from murmur.client.session import SessionState, TranscriptionSession, probe_connection

__all__ = [
  "AudioConfig",
  "CachingCredentialProvider",
  "ChunkQueue",
  "ChunkQueueClosed",
  "ConnectError",
  "Credential",
  "CredentialConfig",
  "CredentialFetcher",
  "CredentialProvider",
  "CredentialStore",
  "DeviceError",
  "MurmurConfig",
  "MurmurError",
  "ResampleMethod",
  "Resampler",
  "ServiceError",
  "SessionConfig",
  "SessionError",
  "SessionState",
  "SincResampler",
  "StaticCredentialFetcher",
  "TranscriptionSession",
  "load_config_from_file",
  "probe_connection",
  "resample_linear",
]
