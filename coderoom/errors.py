"""
Error taxonomy shared by the registry, scheduler and gateway
"""


class CodeRoomError(Exception):
    """Base class for request-scoped and infrastructure errors"""
    message = "Server error"

    def __init__(self, message=None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class RoomNotFound(CodeRoomError):
    message = "Room not found"

    def __init__(self, room: str):
        self.room = room
        super().__init__()


class UnsupportedLanguage(CodeRoomError):
    message = "unsupported language"

    def __init__(self, language: str):
        self.language = language
        super().__init__()


class InvalidRequest(CodeRoomError):
    message = "language and code required"


class WorkspaceFailure(CodeRoomError):
    """Job workspace could not be created or populated"""
    message = "Failed to prepare workspace"


class SpawnFailure(CodeRoomError):
    """Compiler or program process could not be started"""
    message = "Failed to start process"
