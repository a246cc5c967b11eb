"""
Room state: document snapshot, members and typing flags
"""
from __future__ import annotations

import asyncio
import time
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict


class Language(str, Enum):
    JAVASCRIPT = "javascript"
    PYTHON = "python"
    CPP = "cpp"


class Document(BaseModel):
    """Full text plus language; always replaced as a pair"""
    model_config = ConfigDict(frozen=True)

    content: str
    language: Language

    def to_payload(self) -> dict:
        return {"code": self.content, "language": self.language.value}


class Member(BaseModel):
    model_config = ConfigDict(frozen=True)

    connection_id: str
    name: str


class RoomSnapshot(BaseModel):
    """Read-only view of a room at the last completed mutation"""
    model_config = ConfigDict(frozen=True)

    code: str
    document: Document
    members: List[Member]

    def users(self) -> List[dict]:
        return [{"name": member.name} for member in self.members]


class Room:
    """
    Mutable per-room state. Only RoomRegistry mutates it, and only while
    holding `lock`.
    """

    def __init__(self, code: str, document: Document, now: Optional[float] = None):
        self.code = code
        self.document = document
        self.members: Dict[str, Member] = {}
        self.typing: Dict[str, bool] = {}
        self.lock = asyncio.Lock()
        self.created_at = now if now is not None else time.monotonic()
        self.empty_since: Optional[float] = self.created_at
        # Set by the reaper; a closed room must not be mutated again
        self.closed = False

    def snapshot(self) -> RoomSnapshot:
        return RoomSnapshot(
            code=self.code,
            document=self.document,
            members=list(self.members.values()),
        )
