"""
In-memory room registry: the single owner of room, document and member state
"""
import asyncio
import logging
import time
import uuid
from typing import Callable, Dict, List, Optional, Tuple

from ..errors import RoomNotFound
from .models import Document, Language, Member, Room, RoomSnapshot
from .templates import DEFAULT_LANGUAGE, get_default_template

logger = logging.getLogger(__name__)


def generate_room_code() -> str:
    """Short opaque room code (8 hex characters)"""
    return uuid.uuid4().hex[:8]


class RoomRegistry:
    """
    Holds every live room.

    Mutations of one room are serialized by that room's lock; the registry
    lock only guards the code -> room map, so traffic for different rooms
    never contends. Reads (`snapshot`) take no lock and see the last
    completed mutation.
    """

    def __init__(
        self,
        idle_ttl: Optional[float] = 300.0,
        code_factory: Callable[[], str] = generate_room_code,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.idle_ttl = idle_ttl
        self._code_factory = code_factory
        self._clock = clock
        self._rooms: Dict[str, Room] = {}
        self._lock = asyncio.Lock()
        self._reaper_task: Optional[asyncio.Task] = None

    # ---------- room lifecycle ----------

    async def create_room(self, connection_id: str, name: str) -> Tuple[str, Document]:
        """
        Create a room seeded with the default template and register the caller

        Returns:
            Tuple of (room code, initial document)
        """
        document = Document(
            content=get_default_template(DEFAULT_LANGUAGE),
            language=DEFAULT_LANGUAGE,
        )
        async with self._lock:
            code = self._code_factory()
            while code in self._rooms:
                logger.warning(f"Room code collision on {code}, regenerating")
                code = self._code_factory()
            room = Room(code, document, now=self._clock())
            # Not yet visible to anyone else, so no room lock needed
            self._add_member(room, connection_id, name)
            self._rooms[code] = room

        logger.info(f"[{code}] Room created by {name!r} ({connection_id})")
        return code, document

    async def join_room(self, code: str, connection_id: str, name: str) -> Document:
        """
        Add a member to an existing room

        Raises:
            RoomNotFound: if no live room has this code (no state change)
        """
        room = self._rooms.get(code)
        if room is None:
            raise RoomNotFound(code)

        async with room.lock:
            if room.closed:
                raise RoomNotFound(code)
            self._add_member(room, connection_id, name)
            document = room.document

        logger.info(f"[{code}] {name!r} joined ({len(room.members)} members)")
        return document

    async def leave_room(self, code: str, connection_id: str) -> Optional[Member]:
        """Remove a member; removing an unknown member is a no-op"""
        room = self._rooms.get(code)
        if room is None:
            return None

        async with room.lock:
            if room.closed:
                return None
            member = room.members.pop(connection_id, None)
            room.typing.pop(connection_id, None)
            if member is not None and not room.members:
                room.empty_since = self._clock()

        if member is not None:
            logger.info(f"[{code}] {member.name!r} left ({len(room.members)} members)")
        return member

    async def update_document(self, code: str, content: str, language: Language) -> Document:
        """
        Replace the room's document wholesale (last write wins).

        A stray update for an unknown room creates it with this content.
        """
        document = Document(content=content, language=language)
        while True:
            room = await self._get_or_create(code, document)
            async with room.lock:
                if room.closed:
                    # Reaped between lookup and lock; retry against a fresh room
                    continue
                room.document = document
                return document

    async def set_typing(self, code: str, connection_id: str, is_typing: bool) -> Optional[Member]:
        """Record a member's typing flag; returns the member, or None if not in the room"""
        room = self._rooms.get(code)
        if room is None:
            return None

        async with room.lock:
            member = room.members.get(connection_id)
            if member is None or room.closed:
                return None
            if is_typing:
                room.typing[connection_id] = True
            else:
                room.typing.pop(connection_id, None)
            return member

    # ---------- reads ----------

    def snapshot(self, code: str) -> RoomSnapshot:
        room = self._rooms.get(code)
        if room is None:
            raise RoomNotFound(code)
        return room.snapshot()

    def get(self, code: str) -> Optional[RoomSnapshot]:
        room = self._rooms.get(code)
        return room.snapshot() if room is not None else None

    def typing_members(self, code: str) -> List[Member]:
        room = self._rooms.get(code)
        if room is None:
            return []
        return [room.members[cid] for cid in room.typing if cid in room.members]

    def has_room(self, code: str) -> bool:
        return code in self._rooms

    def room_count(self) -> int:
        return len(self._rooms)

    # ---------- idle room reaping ----------

    async def reap_idle_rooms(self) -> List[str]:
        """Remove rooms that have had no members for longer than idle_ttl"""
        if self.idle_ttl is None:
            return []

        now = self._clock()
        reaped = []
        async with self._lock:
            for code, room in list(self._rooms.items()):
                if room.members or room.empty_since is None:
                    continue
                if now - room.empty_since < self.idle_ttl:
                    continue
                async with room.lock:
                    # Re-check under the room lock; a join may have landed
                    if room.members:
                        continue
                    room.closed = True
                    del self._rooms[code]
                    reaped.append(code)

        if reaped:
            logger.info(f"Reaped {len(reaped)} idle rooms: {', '.join(reaped)}")
        return reaped

    async def start_reaper(self, interval_seconds: float = 60.0) -> None:
        """Start periodic idle-room reaping"""
        if self.idle_ttl is None:
            logger.info("Room reaper disabled (no idle TTL)")
            return

        async def reaper_loop():
            while True:
                await asyncio.sleep(interval_seconds)
                try:
                    await self.reap_idle_rooms()
                except Exception as e:
                    logger.error(f"Error reaping rooms: {e}", exc_info=True)

        self._reaper_task = asyncio.create_task(reaper_loop())
        logger.info(f"Started room reaper (ttl={self.idle_ttl}s, every {interval_seconds}s)")

    async def stop_reaper(self) -> None:
        if self._reaper_task and not self._reaper_task.done():
            self._reaper_task.cancel()
            try:
                await self._reaper_task
            except asyncio.CancelledError:
                pass
        self._reaper_task = None
        logger.info("Stopped room reaper")

    # ---------- helpers ----------

    async def _get_or_create(self, code: str, document: Document) -> Room:
        room = self._rooms.get(code)
        if room is not None:
            return room
        async with self._lock:
            room = self._rooms.get(code)
            if room is None:
                room = Room(code, document, now=self._clock())
                self._rooms[code] = room
                logger.warning(f"[{code}] Room implicitly created by a document update")
            return room

    def _add_member(self, room: Room, connection_id: str, name: str) -> None:
        room.members[connection_id] = Member(connection_id=connection_id, name=name)
        room.empty_since = None
