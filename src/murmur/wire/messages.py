"""
Pydantic models for the streaming transcription wire protocol.

Inbound frames are JSON text objects shaped like
``{"event": "result" | "finish" | "", "result": {"Text": str}, "code": int, "message": str}``.
They are validated into an :class:`InboundFrame` and then narrowed to one of the
:data:`TranscriptEvent` variants. The only outbound text frame is :class:`FinishMessage`.
"""

from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class InboundEventType(StrEnum):
  """Recognized values of the inbound ``event`` field."""

  RESULT = "result"
  FINISH = "finish"
  STATUS = ""


class ResultPayload(BaseModel):
  """Recognition result attached to ``result`` events."""

  model_config = ConfigDict(extra="ignore", populate_by_name=True)

  text: str = Field(default="", alias="Text")
  """The current best transcript of the utterance, revised as more audio arrives."""


class InboundFrame(BaseModel):
  """Raw shape of every inbound text frame. Unknown keys are ignored."""

  model_config = ConfigDict(extra="ignore")

  event: str = ""
  result: ResultPayload | None = None
  code: int = 0
  """Service status code. Anything other than zero is a service-side failure."""

  message: str = ""


class PartialEvent(BaseModel):
  """An in-progress transcript that replaces the previous one."""

  model_config = ConfigDict(frozen=True)

  kind: Literal["partial"] = "partial"
  text: str


class FinalEvent(BaseModel):
  """The service finished the utterance; the last partial is the final transcript."""

  model_config = ConfigDict(frozen=True)

  kind: Literal["final"] = "final"


class ServiceErrorEvent(BaseModel):
  """The service rejected the session, typically because the credential went stale."""

  model_config = ConfigDict(frozen=True)

  kind: Literal["service_error"] = "service_error"
  code: int
  message: str


type TranscriptEvent = PartialEvent | FinalEvent | ServiceErrorEvent


class FinishMessage(BaseModel):
  """Control frame telling the service no more audio follows."""

  event: Literal["finish"] = "finish"
