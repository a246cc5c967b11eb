"""
Document sync: full-snapshot, last-write-wins propagation
"""
import logging

from .broadcast import Broadcast
from .models import Language
from .registry import RoomRegistry

logger = logging.getLogger(__name__)


class DocumentSync:
    """
    Persists each incoming snapshot and relays it to everyone but the sender.

    There is no merging: the newest write observed by the registry wins, and
    a member who stops typing converges on the registry's latest value.
    """

    def __init__(self, registry: RoomRegistry):
        self.registry = registry

    async def apply_change(
        self,
        code: str,
        sender_id: str,
        content: str,
        language: Language,
    ) -> Broadcast:
        document = await self.registry.update_document(code, content, language)
        logger.debug(f"[{code}] Document updated by {sender_id} ({len(content)} chars)")
        # Never echoed back to the sender
        return Broadcast(
            code,
            "remoteCodeChange",
            {"code": document.content, "language": document.language.value, "from": sender_id},
            exclude=sender_id,
        )
