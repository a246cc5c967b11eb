"""
Execution job lifecycle state machine
"""
import logging
import time
import uuid
from typing import Optional

from .models import TERMINAL_STATES, JobState

logger = logging.getLogger(__name__)


class ExecutionJob:
    """
    One compile/run request. Never persisted.

    Created -> (Compiling) -> Running -> Completed, with Killed reachable
    from Compiling/Running and Failed reachable from any live state.
    """

    VALID_TRANSITIONS = {
        JobState.CREATED: [
            JobState.COMPILING,
            JobState.RUNNING,
            JobState.FAILED,
        ],
        JobState.COMPILING: [
            JobState.RUNNING,
            JobState.COMPLETED,  # compiler rejected the program
            JobState.KILLED,
            JobState.FAILED,
        ],
        JobState.RUNNING: [
            JobState.COMPLETED,
            JobState.KILLED,
            JobState.FAILED,
        ],
    }

    def __init__(self, language: str, source: str, room: Optional[str] = None):
        self.job_id = uuid.uuid4().hex
        self.language = language
        self.source = source
        self.room = room
        self.created_at = time.monotonic()
        self.state = JobState.CREATED
        self.workspace: Optional[str] = None

    @property
    def label(self) -> str:
        return f"[job {self.job_id[:8]}]"

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES

    def transition_to(self, new_state: JobState) -> bool:
        """
        Move to a new state

        Returns:
            True if the transition was valid and applied
        """
        if new_state not in self.VALID_TRANSITIONS.get(self.state, []):
            logger.warning(
                f"{self.label} Invalid transition: {self.state.value} -> {new_state.value}"
            )
            return False

        logger.debug(f"{self.label} {self.state.value} -> {new_state.value}")
        self.state = new_state
        return True

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.created_at) * 1000)

    def to_dict(self) -> dict:
        return {
            "job_id": self.job_id,
            "language": self.language,
            "room": self.room,
            "state": self.state.value,
            "elapsed_ms": self.elapsed_ms(),
        }
