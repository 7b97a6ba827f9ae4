"""
Message codec for the wire protocol.

Converts inbound frames into :data:`TranscriptEvent` values and outbound control messages
into JSON text, hiding the Pydantic details from the session code.
"""

from pydantic import BaseModel, ValidationError

from .messages import (
  FinalEvent,
  InboundEventType,
  InboundFrame,
  PartialEvent,
  ServiceErrorEvent,
  TranscriptEvent,
)


class ProtocolError(ValueError):
  """An inbound frame could not be decoded. The session logs it and keeps going."""


def serialize_message(message: BaseModel) -> str:
  """Serialize an outbound message to compact JSON text."""
  return message.model_dump_json()


def parse_event(frame: str | bytes) -> TranscriptEvent | None:
  """
  Decode one inbound frame.

  Args:
      frame: The frame payload. Binary frames are decoded as UTF-8.

  Returns:
      The event carried by the frame, or None when the frame is well formed but carries
      nothing the session acts on (unknown events, results without a payload).

  Raises:
      ProtocolError: The frame is not valid UTF-8, not JSON, or not a JSON object of the
          expected shape.
  """
  if isinstance(frame, (bytes, bytearray, memoryview)):
    try:
      frame = bytes(frame).decode("utf-8")
    except UnicodeDecodeError as e:
      raise ProtocolError(f"Inbound frame is not valid UTF-8: {e}") from e

  try:
    inbound = InboundFrame.model_validate_json(frame)
  except ValidationError as e:
    raise ProtocolError(f"Malformed inbound frame: {e.error_count()} validation error(s)") from e

  # A non-zero code wins over whatever event the frame claims to be
  if inbound.code != 0:
    return ServiceErrorEvent(code=inbound.code, message=inbound.message or "unknown")

  match inbound.event:
    case InboundEventType.RESULT:
      if inbound.result is None:
        return None
      return PartialEvent(text=inbound.result.text)
    case InboundEventType.FINISH:
      return FinalEvent()
    case _:
      return None
