"""
Workspace and process utilities for running untrusted code

Containment is limited to a wall-clock timeout and a per-stream output cap.
Submitted programs run as ordinary child processes of the server, with the
server's user, filesystem and network access, and may use CPU and memory up
to OS limits until their timeout fires. Deploy behind real isolation
(container, VM, dedicated unprivileged user) before exposing this publicly.
"""

import asyncio
import codecs
import logging
import os
import shutil
import signal
import tempfile
from typing import List, Optional, Tuple

from ..errors import SpawnFailure, WorkspaceFailure
from .models import KillReason

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 4096


def create_workspace(filename: str, content: str, root: Optional[str] = None) -> Tuple[str, str]:
    """
    Create a job-exclusive temporary directory holding one source file

    Args:
        filename: Name of the source file inside the workspace
        content: Source text
        root: Parent directory (defaults to the system temp dir)

    Returns:
        Tuple of (workspace directory, source file path)

    Raises:
        WorkspaceFailure: If the directory or file cannot be created
    """
    try:
        workspace = tempfile.mkdtemp(prefix='coderoom-', dir=root)
    except OSError as e:
        raise WorkspaceFailure(f"Failed to create workspace: {e}") from e

    source_path = os.path.join(workspace, filename)
    try:
        with open(source_path, 'w', encoding='utf-8') as f:
            f.write(content)
    except OSError as e:
        cleanup_workspace(workspace)
        raise WorkspaceFailure(f"Failed to write source file: {e}") from e

    return workspace, source_path


def cleanup_workspace(workspace: str) -> None:
    """Remove a job workspace and everything in it"""
    try:
        shutil.rmtree(workspace)
    except FileNotFoundError:
        pass
    except Exception as e:
        logger.warning(f"Failed to cleanup workspace {workspace}: {e}")


def kill_process_tree(proc: asyncio.subprocess.Process) -> None:
    """
    SIGKILL the process group started for `proc`. The group outlives its
    leader if the program left children behind, so this is attempted even
    after the leader has exited.
    """
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
    except OSError:
        if proc.returncode is None:
            try:
                proc.kill()
            except ProcessLookupError:
                pass


class OutputBuffer:
    """Accumulates decoded output up to `limit` characters"""

    def __init__(self, limit: int):
        self.limit = limit
        self.overflowed = False
        self._decoder = codecs.getincrementaldecoder('utf-8')(errors='replace')
        self._parts: List[str] = []
        self._size = 0

    def feed(self, chunk: bytes, final: bool = False) -> bool:
        """Add a chunk; returns False once the limit has been exceeded"""
        text = self._decoder.decode(chunk, final=final)
        room = self.limit - self._size
        if len(text) > room:
            text = text[:room]
            self.overflowed = True
        if text:
            self._parts.append(text)
            self._size += len(text)
        return not self.overflowed

    def close(self) -> None:
        if not self.overflowed:
            self.feed(b'', final=True)

    @property
    def text(self) -> str:
        return ''.join(self._parts)


class PhaseOutcome:
    """Result of one compile or run phase"""

    def __init__(
        self,
        exit_code: Optional[int],
        stdout: str,
        stderr: str,
        kill_reason: Optional[KillReason] = None
    ):
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr
        self.kill_reason = kill_reason

    @property
    def killed(self) -> bool:
        return self.kill_reason is not None


async def run_phase(
    argv: List[str],
    cwd: str,
    timeout_seconds: float,
    output_limit: int,
    label: str = 'run'
) -> PhaseOutcome:
    """
    Run one process to completion under a wall-clock timeout and output cap

    Output is read incrementally; crossing the cap on either stream or
    exceeding the timeout kills the whole process group immediately. The
    process is always reaped before this returns.

    Raises:
        SpawnFailure: If the process cannot be started
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            cwd=cwd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=True,
        )
    except OSError as e:
        raise SpawnFailure(f"Failed to start {label} process ({argv[0]}): {e}") from e

    stdout = OutputBuffer(output_limit)
    stderr = OutputBuffer(output_limit)
    kill_reason: Optional[KillReason] = None

    def kill(reason: KillReason) -> None:
        nonlocal kill_reason
        if kill_reason is None:
            kill_reason = reason
        kill_process_tree(proc)

    async def pump(stream: asyncio.StreamReader, buffer: OutputBuffer) -> None:
        while True:
            chunk = await stream.read(READ_CHUNK_SIZE)
            if not chunk:
                buffer.close()
                return
            if not buffer.feed(chunk):
                kill(KillReason.OUTPUT_LIMIT)
                return

    try:
        await asyncio.wait_for(
            asyncio.gather(
                pump(proc.stdout, stdout),
                pump(proc.stderr, stderr),
                proc.wait(),
            ),
            timeout=timeout_seconds,
        )
    except asyncio.TimeoutError:
        kill(KillReason.TIMEOUT)
    finally:
        # Also reached on cancellation: never leave a live child behind
        kill_process_tree(proc)
        await proc.wait()

    exit_code = proc.returncode
    if kill_reason is not None or (exit_code is not None and exit_code < 0):
        # Terminated by a signal: there is no exit status
        exit_code = None

    logger.debug(
        f"{label} phase finished: argv={argv[0]} exit={exit_code} "
        f"kill={kill_reason.value if kill_reason else None}"
    )
    return PhaseOutcome(exit_code, stdout.text, stderr.text, kill_reason)
