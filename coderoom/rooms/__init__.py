"""
Room state, presence and document synchronization
"""

from .broadcast import Broadcast
from .models import Document, Language, Member, RoomSnapshot
from .presence import PresenceTracker
from .registry import RoomRegistry
from .sync import DocumentSync
from .templates import DEFAULT_TEMPLATES, get_default_template

__all__ = [
    'Broadcast',
    'Document',
    'DocumentSync',
    'Language',
    'Member',
    'PresenceTracker',
    'RoomRegistry',
    'RoomSnapshot',
    'DEFAULT_TEMPLATES',
    'get_default_template',
]
