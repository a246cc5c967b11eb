"""
Outbound room messages produced by the presence and sync components
"""
from typing import NamedTuple, Optional


class Broadcast(NamedTuple):
    """An event for every current member of `room`, minus `exclude`"""
    room: str
    event: str
    data: dict
    exclude: Optional[str] = None
