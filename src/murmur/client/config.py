import os

import yaml
from pydantic import BaseModel, Field, model_validator, validate_call
from pydantic.types import FilePath

from murmur.client.resample import ResampleMethod
from murmur.common import get_logger

logger = get_logger("cfg")

_CREDENTIAL_ENV_VARS = {
  "token": "MURMUR_TOKEN",
  "url": "MURMUR_URL",
  "user_agent": "MURMUR_USER_AGENT",
  "origin": "MURMUR_ORIGIN",
}


class AudioConfig(BaseModel):
  """Configuration for microphone capture and resampling."""

  target_rate: int = Field(default=16000, gt=0)
  """Sample rate of the chunks handed to the session, in Hz."""

  chunk_samples: int = Field(default=4096, gt=0)
  """Number of samples per outbound chunk. Only the final flush chunk may be shorter."""

  dtype: str = "float32"
  """Sample format requested from the input device."""

  device: int | str | None = None
  """Input device index or name. None selects the system default."""

  resample_method: ResampleMethod = Field(default_factory=ResampleMethod.from_env)
  """Resampling algorithm used to convert the device rate to target_rate."""

  stop_poll: float = Field(default=0.05, gt=0.0)
  """How often the capture thread checks the stop signal, in seconds."""

  flush_timeout: float = Field(default=1.0, gt=0.0)
  """How long the final flush may wait for room in the chunk queue, in seconds."""

  @model_validator(mode="after")
  def validate_dtype(self) -> "AudioConfig":
    """Reject sample formats the converter does not understand."""
    supported = ("float32", "float64", "int32", "int16", "int8", "uint8")
    if self.dtype not in supported:
      raise ValueError(f"Unsupported dtype '{self.dtype}', expected one of {supported}")
    return self


class SessionConfig(BaseModel):
  """Configuration for the streaming transcription session."""

  finalize_grace: float = Field(default=1.0, gt=0.0)
  """How long to wait for the service's finish event after stop, in seconds."""

  send_poll: float = Field(default=0.05, gt=0.0)
  """Period at which the sender checks the stop signal, in seconds."""

  recv_poll: float = Field(default=0.1, gt=0.0)
  """Read timeout of the receiver between stop/deadline checks, in seconds."""

  relay_poll: float = Field(default=0.1, gt=0.0)
  """Read timeout of the audio relay on the chunk source, in seconds."""

  outbound_queue_size: int = Field(default=100, gt=0)
  """Maximum number of chunks buffered between the relay and the sender."""

  probe_timeout: float = Field(default=5.0, gt=0.0)
  """How long a connection probe waits for the service to answer, in seconds."""


class CredentialConfig(BaseModel):
  """
  Connection parameters supplied by the user instead of a credential harvester.

  Missing fields are filled from the MURMUR_TOKEN, MURMUR_URL, MURMUR_USER_AGENT and
  MURMUR_ORIGIN environment variables.
  """

  token: str | None = None
  url: str | None = None
  user_agent: str | None = None
  origin: str | None = None

  @model_validator(mode="after")
  def apply_env_overrides(self) -> "CredentialConfig":
    for field, env_var in _CREDENTIAL_ENV_VARS.items():
      if getattr(self, field) is None and os.getenv(env_var):
        setattr(self, field, os.getenv(env_var))
    return self

  @property
  def is_complete(self) -> bool:
    """Whether enough is known to open a connection."""
    return bool(self.token and self.url)


class MurmurConfig(BaseModel):
  """Top-level murmur configuration."""

  audio: AudioConfig = Field(default_factory=AudioConfig)
  session: SessionConfig = Field(default_factory=SessionConfig)
  credential: CredentialConfig = Field(default_factory=CredentialConfig)

  def pretty_print(self) -> None:
    """Log every configuration property at INFO level, secrets masked."""
    logger.info("AUDIO SETTINGS:")
    logger.info(f"  Device: {self.audio.device or 'default'}")
    logger.info(f"  Sample Format: {self.audio.dtype}")
    logger.info(f"  Target Rate: {self.audio.target_rate}Hz")
    logger.info(f"  Chunk Size: {self.audio.chunk_samples} samples")
    logger.info(f"  Resample Method: {self.audio.resample_method}")

    logger.info("SESSION SETTINGS:")
    logger.info(f"  Finalize Grace: {self.session.finalize_grace}s")
    logger.info(f"  Send Poll: {self.session.send_poll}s")
    logger.info(f"  Receive Poll: {self.session.recv_poll}s")
    logger.info(f"  Relay Poll: {self.session.relay_poll}s")
    logger.info(f"  Outbound Queue: {self.session.outbound_queue_size} chunks")

    logger.info("CREDENTIAL SETTINGS:")
    logger.info(f"  URL: {self.credential.url}")
    logger.info(f"  Token: {'<set>' if self.credential.token else None}")
    logger.info(f"  User Agent: {self.credential.user_agent}")
    logger.info(f"  Origin: {self.credential.origin}")


@validate_call
def load_config_from_file(config_path: FilePath) -> MurmurConfig:
  """Load and validate murmur configuration from a YAML file."""

  logger.info("Loading murmur configuration", path=str(config_path))

  try:
    with open(config_path, "r", encoding="utf-8") as file:
      config_data = yaml.safe_load(file)
  except yaml.YAMLError as e:
    raise ValueError(f"Invalid YAML in configuration file: {e}") from e
  except OSError as e:
    raise ValueError(f"Error reading configuration file: {e}") from e

  if config_data is None:
    raise ValueError("Configuration file is empty")

  if not isinstance(config_data, dict):
    raise ValueError("Configuration file must contain a YAML dictionary")

  config = MurmurConfig.model_validate(config_data)
  config.pretty_print()
  return config
