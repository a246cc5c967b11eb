"""
Presence tracking: full-roster broadcasts and typing relays
"""
import logging
from typing import List, Optional

from .broadcast import Broadcast
from .registry import RoomRegistry

logger = logging.getLogger(__name__)


class PresenceTracker:
    """
    Turns membership and typing changes into room broadcasts.

    Every membership change sends the *full* roster, so a client that missed
    an earlier update converges on the next one.
    """

    def __init__(self, registry: RoomRegistry):
        self.registry = registry

    def roster(self, code: str) -> List[dict]:
        snapshot = self.registry.get(code)
        return snapshot.users() if snapshot is not None else []

    def arrived(self, code: str, name: str) -> List[Broadcast]:
        """Broadcasts for a member who just created or joined the room"""
        return [
            Broadcast(code, "roomUsers", {"users": self.roster(code)}),
            Broadcast(code, "userJoined", {"name": name}),
        ]

    async def depart(self, code: str, connection_id: str) -> List[Broadcast]:
        """
        Remove a member and describe the change. Explicit leave and
        disconnect both come through here.
        """
        member = await self.registry.leave_room(code, connection_id)
        if member is None:
            return []
        return [
            Broadcast(code, "roomUsers", {"users": self.roster(code)}),
            Broadcast(code, "userLeft", {"name": member.name}),
        ]

    async def typing(
        self,
        code: str,
        connection_id: str,
        is_typing: bool,
        name: Optional[str] = None,
    ) -> Broadcast:
        """
        Record and relay a typing flag to the rest of the room. No timeout is
        inferred here; the sender is responsible for sending isTyping=false.
        """
        member = await self.registry.set_typing(code, connection_id, is_typing)
        if name is None and member is not None:
            name = member.name
        return Broadcast(
            code,
            "typing",
            {"name": name, "isTyping": is_typing},
            exclude=connection_id,
        )

    def typing_names(self, code: str) -> List[str]:
        return [member.name for member in self.registry.typing_members(code)]
