"""
Terminal trigger and transcript output for the interactive client.
"""

import select
import sys
import termios
import threading
import tty
from collections.abc import Callable

from murmur.common import get_logger

logger = get_logger("tty")


class TerminalTrigger:
  """
  Spacebar push-to-talk for terminals.

  Terminals cannot report key releases, so the spacebar toggles: the first press starts
  dictation and the next one ends it. Ctrl+C exits.
  """

  def __init__(self):
    self.old_settings: list | None = None
    self.running = False
    self.held = False
    self._thread: threading.Thread | None = None
    self._output_lock = threading.Lock()

  def setup_terminal(self) -> None:
    """Put the terminal in raw mode to read single key presses."""
    try:
      self.old_settings = termios.tcgetattr(sys.stdin)
      tty.setraw(sys.stdin.fileno())
    except termios.error as e:
      logger.warning("Could not switch terminal to raw mode", error=str(e))

  def restore_terminal(self) -> None:
    """Restore normal terminal settings."""
    if self.old_settings:
      try:
        termios.tcsetattr(sys.stdin, termios.TCSADRAIN, self.old_settings)
      except termios.error as e:
        logger.warning("Could not restore terminal settings", error=str(e))

  def safe_print(self, message: str) -> None:
    """Print with cooked terminal settings so newlines render properly."""
    with self._output_lock:
      self.restore_terminal()
      print(message)
      sys.stdout.flush()
      if self.running:
        self.setup_terminal()

  def _listen(
    self,
    on_press: Callable[[], bool],
    on_release: Callable[[], bool],
    on_exit: Callable[[], None],
  ) -> None:
    while self.running:
      if sys.stdin not in select.select([sys.stdin], [], [], 0.1)[0]:
        continue

      char = sys.stdin.read(1)
      if char == " ":
        if self.held:
          self.held = False
          on_release()
        else:
          self.held = on_press()
      elif char == "\x03":  # Ctrl+C
        self.running = False
        if self.held:
          self.held = False
          on_release()
        on_exit()

  def start(
    self,
    on_press: Callable[[], bool],
    on_release: Callable[[], bool],
    on_exit: Callable[[], None],
  ) -> None:
    """Start listening for key presses on a background thread."""
    self.running = True
    self.setup_terminal()
    self._thread = threading.Thread(
      target=self._listen, args=(on_press, on_release, on_exit), name="murmur-tty", daemon=True
    )
    self._thread.start()

  def stop(self) -> None:
    self.running = False
    if self._thread is not None:
      self._thread.join(timeout=1.0)
    self.restore_terminal()

  def show_welcome_message(self, url: str | None) -> None:
    print("murmur push-to-talk dictation")
    print(f"Service: {url or '(not configured)'}")
    print("\nPress SPACEBAR to start dictating, SPACEBAR again to finish.")
    print("Press Ctrl+C to exit\n")


class ConsoleTranscriptSink:
  """Writes transcripts to the terminal."""

  def __init__(self, trigger: TerminalTrigger):
    self._trigger = trigger

  def on_partial(self, text: str) -> None:
    self._trigger.safe_print(f"  … {text}")

  def on_final(self, text: str) -> None:
    self._trigger.safe_print(f'Transcript: "{text}"')

  def on_error(self, error: Exception) -> None:
    self._trigger.safe_print(f"[ERROR]: {error}")
