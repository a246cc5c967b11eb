"""
Pydantic models for real-time event payloads and HTTP requests/responses
"""
from __future__ import annotations

from typing import Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import InvalidRequest
from .rooms.models import Language


class EventPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")


class CreateRoomPayload(EventPayload):
    name: Optional[str] = None


class JoinRoomPayload(EventPayload):
    room: str = Field(min_length=1)
    name: Optional[str] = None


class LeaveRoomPayload(EventPayload):
    pass


class CodeChangePayload(EventPayload):
    room: str = Field(min_length=1)
    code: str
    language: Language


class TypingPayload(EventPayload):
    room: str = Field(min_length=1)
    name: Optional[str] = None
    isTyping: bool


class RunRequestedPayload(EventPayload):
    # language is checked against the scheduler, so an unknown one is
    # reported as unsupported rather than malformed
    language: str = Field(min_length=1)
    code: str
    room: Optional[str] = None


class RunRequest(RunRequestedPayload):
    """Body of POST /api/run"""


class HealthResponse(BaseModel):
    status: str
    version: str = "0.1.0"
    rooms: int = 0
    activeJobs: int = 0


PayloadT = TypeVar("PayloadT", bound=BaseModel)


def parse_payload(model: Type[PayloadT], data: object) -> PayloadT:
    """
    Validate an inbound payload against its event model

    Raises:
        InvalidRequest: on any shape mismatch
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise InvalidRequest("Invalid request: payload must be an object")
    try:
        return model.model_validate(data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or 'payload'}: {err['msg']}"
            for err in e.errors()
        )
        raise InvalidRequest(f"Invalid request: {problems}") from e
