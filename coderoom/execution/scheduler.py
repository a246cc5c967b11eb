"""
Execution scheduler: runs jobs concurrently, one workspace and process tree each
"""

import asyncio
import logging
import os
from typing import Dict, Optional

from ..errors import CodeRoomError, UnsupportedLanguage
from .job import ExecutionJob
from .languages import default_policies
from .models import ExecutionResult, JobState, LanguagePolicy
from .sandbox import cleanup_workspace, create_workspace, run_phase

logger = logging.getLogger(__name__)

ARTIFACT_NAME = 'a.out'
QUEUE_FULL_ERROR = 'Execution queue is full, try again later'


class ExecutionScheduler:
    """
    Turns (language, source) into exactly one ExecutionResult.

    `submit` never blocks: the job runs as its own task and completion is
    observed by awaiting the returned task. At most `max_concurrent_jobs`
    jobs hold a process at once; the rest wait up to `admission_timeout`
    for a slot and then fail without touching the filesystem.
    """

    def __init__(
        self,
        policies: Optional[Dict[str, LanguagePolicy]] = None,
        max_concurrent_jobs: int = 4,
        admission_timeout: Optional[float] = 10.0,
        workspace_root: Optional[str] = None
    ):
        self.policies = policies if policies is not None else default_policies()
        self.max_concurrent_jobs = max_concurrent_jobs
        self.admission_timeout = admission_timeout
        self.workspace_root = workspace_root
        self._slots = asyncio.Semaphore(max_concurrent_jobs) if max_concurrent_jobs > 0 else None
        self._jobs: Dict[str, ExecutionJob] = {}

    @classmethod
    def from_settings(cls, settings) -> "ExecutionScheduler":
        return cls(
            policies=default_policies(settings),
            max_concurrent_jobs=settings.max_concurrent_jobs,
            admission_timeout=settings.admission_timeout,
            workspace_root=settings.workspace_root,
        )

    # ---------- public API ----------

    def supports(self, language: str) -> bool:
        return language in self.policies

    def policy_for(self, language: str) -> LanguagePolicy:
        policy = self.policies.get(language)
        if policy is None:
            raise UnsupportedLanguage(language)
        return policy

    def submit(self, language: str, source: str, room: Optional[str] = None) -> "asyncio.Task[ExecutionResult]":
        """
        Start a job and return immediately

        Raises:
            UnsupportedLanguage: before any job is created
        """
        policy = self.policy_for(language)
        job = ExecutionJob(language, source, room)
        logger.info(f"{job.label} Submitted {language} job ({len(source)} chars, room={room})")
        return asyncio.create_task(self._execute(job, policy), name=f"execution-{job.job_id}")

    async def run(self, language: str, source: str, room: Optional[str] = None) -> ExecutionResult:
        """Submit a job and wait for its result"""
        return await self.submit(language, source, room)

    def active_jobs(self) -> list:
        return [job.to_dict() for job in self._jobs.values()]

    # ---------- job execution ----------

    async def _execute(self, job: ExecutionJob, policy: LanguagePolicy) -> ExecutionResult:
        # Registered by the task itself so the finally below always unregisters it
        self._jobs[job.job_id] = job
        try:
            if not await self._acquire_slot(job):
                job.transition_to(JobState.FAILED)
                return self._failure(job, QUEUE_FULL_ERROR)
            try:
                return await self._run_job(job, policy)
            finally:
                if self._slots is not None:
                    self._slots.release()
        except CodeRoomError as e:
            logger.warning(f"{job.label} Failed: {e.message}")
            job.transition_to(JobState.FAILED)
            return self._failure(job, e.message)
        except Exception as e:
            logger.error(f"{job.label} Unexpected execution error: {e}", exc_info=True)
            job.transition_to(JobState.FAILED)
            return self._failure(job, f"Internal execution error: {e}")
        finally:
            self._jobs.pop(job.job_id, None)

    async def _acquire_slot(self, job: ExecutionJob) -> bool:
        if self._slots is None:
            return True
        try:
            await asyncio.wait_for(self._slots.acquire(), timeout=self.admission_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{job.label} No execution slot within {self.admission_timeout}s")
            return False
        return True

    async def _run_job(self, job: ExecutionJob, policy: LanguagePolicy) -> ExecutionResult:
        workspace, source_path = create_workspace(
            policy.source_name, job.source, root=self.workspace_root
        )
        job.workspace = workspace
        artifact = os.path.join(workspace, ARTIFACT_NAME)

        try:
            if policy.needs_compile:
                job.transition_to(JobState.COMPILING)
                compiled = await run_phase(
                    policy.build_compile(source_path, artifact, workspace),
                    cwd=workspace,
                    timeout_seconds=policy.compile_timeout,
                    output_limit=policy.output_limit,
                    label='compile',
                )
                if compiled.killed:
                    job.transition_to(JobState.KILLED)
                    logger.info(f"{job.label} Compile killed ({compiled.kill_reason.value})")
                    return self._result(job, '', compiled.stderr, None, kill_reason=compiled.kill_reason)
                if compiled.exit_code != 0:
                    # Compile errors are a valid outcome; the run phase is skipped
                    job.transition_to(JobState.COMPLETED)
                    logger.info(f"{job.label} Compile failed (exit {compiled.exit_code})")
                    return self._result(job, '', compiled.stderr, compiled.exit_code)

            job.transition_to(JobState.RUNNING)
            outcome = await run_phase(
                policy.build_run(source_path, artifact, workspace),
                cwd=workspace,
                timeout_seconds=policy.run_timeout,
                output_limit=policy.output_limit,
                label='run',
            )
            if outcome.killed:
                job.transition_to(JobState.KILLED)
                logger.info(f"{job.label} Run killed ({outcome.kill_reason.value})")
                return self._result(
                    job, outcome.stdout, outcome.stderr, None, kill_reason=outcome.kill_reason
                )

            job.transition_to(JobState.COMPLETED)
            logger.info(f"{job.label} Completed with exit code {outcome.exit_code} in {job.elapsed_ms()}ms")
            return self._result(job, outcome.stdout, outcome.stderr, outcome.exit_code)
        finally:
            # run_phase reaps its process before returning, so nothing still holds these files
            cleanup_workspace(workspace)
            job.workspace = None

    # ---------- result builders ----------

    def _result(self, job, stdout, stderr, exit_code, kill_reason=None) -> ExecutionResult:
        return ExecutionResult(
            ok=True,
            stdout=stdout,
            stderr=stderr,
            exitCode=exit_code,
            status=job.state,
            killReason=kill_reason,
            time=job.elapsed_ms(),
        )

    def _failure(self, job: ExecutionJob, error: str) -> ExecutionResult:
        return ExecutionResult(
            ok=False,
            stdout='',
            stderr='',
            exitCode=None,
            status=JobState.FAILED,
            error=error,
            time=job.elapsed_ms(),
        )
