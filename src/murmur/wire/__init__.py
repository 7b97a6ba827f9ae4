"""
murmur wire protocol package.

Message types exchanged with the streaming transcription service.
"""

from .codec import ProtocolError, parse_event, serialize_message
from .messages import (
  FinalEvent,
  FinishMessage,
  InboundEventType,
  InboundFrame,
  PartialEvent,
  ResultPayload,
  ServiceErrorEvent,
  TranscriptEvent,
)

__all__ = [
  "FinalEvent",
  "FinishMessage",
  "InboundEventType",
  "InboundFrame",
  "PartialEvent",
  "ProtocolError",
  "ResultPayload",
  "ServiceErrorEvent",
  "TranscriptEvent",
  "parse_event",
  "serialize_message",
]
