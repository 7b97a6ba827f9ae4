"""Main entry point for the murmur push-to-talk dictation client."""

import asyncio
import sys
from pathlib import Path

from clypi import Command, arg

from murmur.client.audio import AudioCapturer, list_input_devices
from murmur.client.config import MurmurConfig, load_config_from_file
from murmur.client.controller import DictationController
from murmur.client.credentials import (
  CachingCredentialProvider,
  CredentialStore,
  StaticCredentialFetcher,
)
from murmur.client.interface import ConsoleTranscriptSink, TerminalTrigger
from murmur.client.session import probe_connection
from murmur.common import get_logger, setup_logging_from_env


def parse_config_path(value: str | list[str]) -> Path:
  """Parse and validate the configuration file path.

  :param value: Path to a YAML configuration file
  :type value: str
  :return: Absolute path to the file
  :rtype: Path
  :raises ValueError: If the path is empty, missing, or not a file
  """
  if not isinstance(value, str):
    raise ValueError("--config must be a string")

  if not value.strip():
    raise ValueError("--config cannot be empty")

  config_path = Path(value).expanduser().resolve()

  if not config_path.exists():
    raise ValueError(f"--config does not exist: {config_path}")

  if not config_path.is_file():
    raise ValueError(f"--config is not a file: {config_path}")

  return config_path


def parse_audio_device(value: str) -> int | str | None:
  """Map the --audio-device value onto what sounddevice expects."""
  value = value.strip()
  if not value or value == "default":
    return None
  if value.isdigit():
    return int(value)
  return value


def load_config(config_path: Path | None) -> MurmurConfig:
  if config_path is None:
    return MurmurConfig()
  return load_config_from_file(config_path)


def build_provider(config: MurmurConfig) -> CachingCredentialProvider:
  return CachingCredentialProvider(CredentialStore(), StaticCredentialFetcher(config.credential))


class ListDevices(Command):
  """List available audio input devices.

  Shows every device that can record, with the ID to pass to --audio-device.
  """

  async def run(self) -> None:
    devices = list_input_devices()
    print("Audio Input Devices (for use with --audio-device):")
    print("=" * 55)

    if not devices:
      print("No input devices found.")
      return

    for device in devices:
      default_marker = " [DEFAULT INPUT]" if device["is_default"] else ""
      print(f"Device: {device['name']}{default_marker}")
      print(f"  ID: {device['index']}")
      print(f"  Input channels: {device['channels']}")
      print(f"  Sample rate: {device['default_samplerate']:.0f}Hz")
      print()


class Probe(Command):
  """Check that the transcription service accepts the configured credential."""

  config: Path | None = arg(default=None, parser=parse_config_path)

  async def run(self) -> None:
    logger = get_logger("cli")
    config = load_config(self.config)
    await probe_connection(build_provider(config), timeout=config.session.probe_timeout)
    logger.info("Connection OK")
    print("Connection OK")


class Murmur(Command):
  """murmur - push-to-talk dictation.

  Records from the microphone while the trigger is held, streams the audio to a
  transcription service and prints the transcript when the trigger is released.
  """

  subcommand: ListDevices | Probe | None

  config: Path | None = arg(default=None, parser=parse_config_path)
  audio_device: str = arg(default="default")

  def __init__(self, **kwargs):
    super().__init__(**kwargs)
    self.logger = get_logger("cli")

  async def run(self) -> None:
    """Main entry point for the command."""
    config = load_config(self.config)
    device = parse_audio_device(self.audio_device)
    if device is not None:
      config.audio.device = device

    provider = build_provider(config)
    if not await provider.is_available():
      self.logger.warning(
        "No credential configured; set MURMUR_TOKEN and MURMUR_URL or use --config"
      )

    capturer = AudioCapturer(config.audio)
    capturer.warmup()

    loop = asyncio.get_running_loop()
    exit_requested = asyncio.Event()

    trigger = TerminalTrigger()
    sink = ConsoleTranscriptSink(trigger)
    controller = DictationController(capturer, provider, sink, loop, config.session)

    trigger.show_welcome_message(config.credential.url)
    trigger.start(
      on_press=controller.press,
      on_release=controller.release,
      on_exit=lambda: loop.call_soon_threadsafe(exit_requested.set),
    )

    try:
      await exit_requested.wait()
    finally:
      trigger.stop()
      await controller.shutdown()
      self.logger.info("Goodbye")


def main() -> None:
  """Main entry point for the murmur command."""
  setup_logging_from_env()
  logger = get_logger("main")

  try:
    cli = Murmur.parse()
    cli.start()
  except KeyboardInterrupt:
    logger.info("Received interrupt signal, shutting down...")
    sys.exit(0)
  except Exception:
    logger.exception("Fatal error")
    sys.exit(1)


if __name__ == "__main__":
  main()
