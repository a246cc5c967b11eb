"""
Pydantic models for code execution
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class JobState(str, Enum):
    CREATED = "created"
    COMPILING = "compiling"
    RUNNING = "running"
    COMPLETED = "completed"
    KILLED = "killed"
    FAILED = "failed"


TERMINAL_STATES = {JobState.COMPLETED, JobState.KILLED, JobState.FAILED}


class KillReason(str, Enum):
    TIMEOUT = "timeout"
    OUTPUT_LIMIT = "output_limit"


class LanguagePolicy(BaseModel):
    """
    How one language is built and run.

    Command templates are argv lists; `{source}`, `{artifact}` and
    `{workspace}` are substituted per job.
    """
    model_config = ConfigDict(frozen=True)

    language: str
    extension: str
    run_command: List[str]
    compile_command: Optional[List[str]] = None
    compile_timeout: Optional[float] = None
    run_timeout: float = 5.0
    output_limit: int = 20000  # characters, per stream

    @property
    def needs_compile(self) -> bool:
        return self.compile_command is not None

    @property
    def source_name(self) -> str:
        return f"code{self.extension}"

    def build_compile(self, source: str, artifact: str, workspace: str) -> List[str]:
        return _format_argv(self.compile_command or [], source, artifact, workspace)

    def build_run(self, source: str, artifact: str, workspace: str) -> List[str]:
        return _format_argv(self.run_command, source, artifact, workspace)


def _format_argv(template: List[str], source: str, artifact: str, workspace: str) -> List[str]:
    return [
        part.format(source=source, artifact=artifact, workspace=workspace)
        for part in template
    ]


class ExecutionResult(BaseModel):
    """Outcome of one execution job; immutable once produced"""
    model_config = ConfigDict(frozen=True)

    ok: bool
    stdout: str = ""
    stderr: str = ""
    exitCode: Optional[int] = None
    status: JobState
    killReason: Optional[KillReason] = None
    error: Optional[str] = None
    time: int = 0  # milliseconds

    def to_payload(self) -> dict:
        return self.model_dump(mode="json")
