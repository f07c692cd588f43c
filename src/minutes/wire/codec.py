"""
Message codec for wire protocol serialization and deserialization.

Hides the pydantic details of turning frames into message objects and back.
"""

from pydantic import BaseModel, Field, ValidationError

from minutes.errors import ProtocolError

from .messages import BaseMessage, InboundMessage


class _MessageCodec(BaseModel):
  """Private wrapper for deserializing the discriminated union of inbound events."""

  message: InboundMessage = Field(discriminator="type")


def serialize_message(message: BaseMessage) -> str:
  """
  Serialize an outbound message to a JSON frame.

  Fields are emitted under their camelCase names and unset optional fields are dropped.
  """
  return message.model_dump_json(by_alias=True, exclude_none=True)


def deserialize_message(frame: str | bytes) -> InboundMessage:
  """
  Deserialize a JSON frame into an inbound message.

  :raises ProtocolError: the frame is not JSON, names an unknown event, or has invalid fields.
  """
  if isinstance(frame, bytes):
    try:
      frame = frame.decode("utf-8")
    except UnicodeDecodeError as e:
      raise ProtocolError("Binary frames are not supported") from e

  try:
    return _MessageCodec.model_validate_json(f'{{"message": {frame}}}').message
  except ValidationError as e:
    raise ProtocolError(_describe(e)) from e


def _describe(error: ValidationError) -> str:
  first = error.errors()[0]
  location = ".".join(str(part) for part in first["loc"][1:]) or "frame"
  return f"Invalid message ({location}): {first['msg']}"
