import asyncio
import os
import shutil
import sys
import time

import pytest

from coderoom.errors import UnsupportedLanguage
from coderoom.execution import ExecutionScheduler, JobState, KillReason, LanguagePolicy
from coderoom.execution.languages import cpp_policy, javascript_policy, python_policy
from coderoom.execution.scheduler import QUEUE_FULL_ERROR

requires_gxx = pytest.mark.skipif(shutil.which("g++") is None, reason="g++ not installed")
requires_node = pytest.mark.skipif(shutil.which("node") is None, reason="node not installed")

COPY_SOURCE = "import shutil, sys; shutil.copy(sys.argv[1], sys.argv[2])"


def make_scheduler(tmp_path, run_timeout=5.0, output_limit=20000, **kwargs):
    policies = {
        "python": python_policy(
            python_bin=sys.executable, run_timeout=run_timeout, output_limit=output_limit
        )
    }
    return ExecutionScheduler(policies=policies, workspace_root=str(tmp_path), **kwargs)


def fake_compiled_policy(compile_script, compile_timeout=5.0):
    """A 'compiled' language whose compiler is a Python one-liner"""
    return LanguagePolicy(
        language="fake",
        extension=".py",
        compile_command=[sys.executable, "-c", compile_script, "{source}", "{artifact}"],
        compile_timeout=compile_timeout,
        run_command=[sys.executable, "{artifact}"],
        run_timeout=5.0,
    )


@pytest.mark.asyncio
async def test_python_print(tmp_path):
    scheduler = make_scheduler(tmp_path)

    result = await scheduler.run("python", "print(1+1)")

    assert result.ok
    assert result.stdout == "2\n"
    assert result.stderr == ""
    assert result.exitCode == 0
    assert result.status == JobState.COMPLETED
    assert os.listdir(tmp_path) == []


@pytest.mark.asyncio
async def test_nonzero_exit_is_a_successful_result(tmp_path):
    scheduler = make_scheduler(tmp_path)

    result = await scheduler.run("python", "import sys\nprint('bye')\nsys.exit(3)")

    assert result.ok
    assert result.exitCode == 3
    assert result.stdout == "bye\n"
    assert result.error is None


@pytest.mark.asyncio
async def test_runtime_error_lands_in_stderr(tmp_path):
    scheduler = make_scheduler(tmp_path)

    result = await scheduler.run("python", "1/0")

    assert result.ok
    assert result.exitCode == 1
    assert "ZeroDivisionError" in result.stderr


@pytest.mark.asyncio
async def test_deterministic_source_gives_same_output(tmp_path):
    scheduler = make_scheduler(tmp_path)
    source = "print(sum(range(10)))\nprint('done')"

    first = await scheduler.run("python", source)
    second = await scheduler.run("python", source)

    assert (first.stdout, first.exitCode) == (second.stdout, second.exitCode)


@pytest.mark.asyncio
async def test_hung_program_is_killed_and_workspace_removed(tmp_path):
    scheduler = make_scheduler(tmp_path, run_timeout=0.5)

    started = time.monotonic()
    result = await scheduler.run("python", "while True:\n    pass\n")
    elapsed = time.monotonic() - started

    assert result.ok
    assert result.status == JobState.KILLED
    assert result.killReason == KillReason.TIMEOUT
    assert result.exitCode is None
    assert elapsed < 0.5 + 3
    assert os.listdir(tmp_path) == []


@pytest.mark.asyncio
async def test_output_flood_is_killed_at_cap(tmp_path):
    scheduler = make_scheduler(tmp_path, output_limit=1000)

    result = await scheduler.run("python", "while True:\n    print('x' * 80)\n")

    assert result.status == JobState.KILLED
    assert result.killReason == KillReason.OUTPUT_LIMIT
    assert len(result.stdout) == 1000
    assert os.listdir(tmp_path) == []


@pytest.mark.asyncio
async def test_stderr_flood_is_killed_at_cap(tmp_path):
    scheduler = make_scheduler(tmp_path, output_limit=1000)

    result = await scheduler.run("python", "import sys\nwhile True:\n    sys.stderr.write('e' * 80)\n")

    assert result.killReason == KillReason.OUTPUT_LIMIT
    assert len(result.stderr) == 1000


def test_unsupported_language_raises_before_scheduling(tmp_path):
    scheduler = make_scheduler(tmp_path)

    with pytest.raises(UnsupportedLanguage):
        scheduler.submit("brainfuck", "+++")
    assert scheduler.active_jobs() == []


@pytest.mark.asyncio
async def test_spawn_failure_becomes_failed_result(tmp_path):
    policy = LanguagePolicy(
        language="ghost",
        extension=".txt",
        run_command=[str(tmp_path / "missing-interpreter"), "{source}"],
    )
    workspaces = tmp_path / "workspaces"
    workspaces.mkdir()
    scheduler = ExecutionScheduler(policies={"ghost": policy}, workspace_root=str(workspaces))

    result = await scheduler.run("ghost", "hello")

    assert not result.ok
    assert result.status == JobState.FAILED
    assert "Failed to start" in result.error
    assert os.listdir(workspaces) == []


@pytest.mark.asyncio
async def test_workspace_failure_becomes_failed_result(tmp_path):
    scheduler = make_scheduler(tmp_path / "missing-root")

    result = await scheduler.run("python", "print(1)")

    assert not result.ok
    assert result.status == JobState.FAILED
    assert "workspace" in result.error


@pytest.mark.asyncio
async def test_compile_failure_skips_run_phase(tmp_path):
    policy = fake_compiled_policy("import sys; sys.stderr.write('error: expected ;'); sys.exit(1)")
    scheduler = ExecutionScheduler(policies={"fake": policy}, workspace_root=str(tmp_path))

    result = await scheduler.run("fake", "print('never runs')")

    assert result.ok
    assert result.status == JobState.COMPLETED
    assert result.exitCode == 1
    assert result.stdout == ""
    assert result.stderr == "error: expected ;"
    assert os.listdir(tmp_path) == []


@pytest.mark.asyncio
async def test_compile_success_runs_artifact(tmp_path):
    scheduler = ExecutionScheduler(
        policies={"fake": fake_compiled_policy(COPY_SOURCE)}, workspace_root=str(tmp_path)
    )

    result = await scheduler.run("fake", "print('built and ran')")

    assert result.ok
    assert result.exitCode == 0
    assert result.stdout == "built and ran\n"


@pytest.mark.asyncio
async def test_compile_timeout_kills_compiler(tmp_path):
    policy = fake_compiled_policy("import time; time.sleep(30)", compile_timeout=0.5)
    scheduler = ExecutionScheduler(policies={"fake": policy}, workspace_root=str(tmp_path))

    result = await scheduler.run("fake", "print('never runs')")

    assert result.status == JobState.KILLED
    assert result.killReason == KillReason.TIMEOUT
    assert result.stdout == ""
    assert os.listdir(tmp_path) == []


@pytest.mark.asyncio
async def test_submit_returns_before_job_finishes(tmp_path):
    scheduler = make_scheduler(tmp_path)

    task = scheduler.submit("python", "import time\ntime.sleep(0.3)\nprint('late')")

    assert not task.done()
    await asyncio.sleep(0.05)
    assert len(scheduler.active_jobs()) == 1
    result = await task
    assert result.stdout == "late\n"
    assert scheduler.active_jobs() == []


@pytest.mark.asyncio
async def test_job_cancelled_before_start_is_not_tracked(tmp_path):
    scheduler = make_scheduler(tmp_path)

    task = scheduler.submit("python", "print(1)")
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert scheduler.active_jobs() == []
    assert os.listdir(tmp_path) == []


@pytest.mark.asyncio
async def test_job_cancelled_while_running_is_untracked(tmp_path):
    scheduler = make_scheduler(tmp_path)

    task = scheduler.submit("python", "import time\ntime.sleep(30)")
    await asyncio.sleep(0.3)
    assert len(scheduler.active_jobs()) == 1
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert scheduler.active_jobs() == []
    assert os.listdir(tmp_path) == []


@pytest.mark.asyncio
async def test_admission_queue_full(tmp_path):
    scheduler = make_scheduler(tmp_path, max_concurrent_jobs=1, admission_timeout=0.2)

    slow = scheduler.submit("python", "import time\ntime.sleep(1.5)")
    await asyncio.sleep(0.05)
    rejected = await scheduler.run("python", "print('queued')")

    assert not rejected.ok
    assert rejected.error == QUEUE_FULL_ERROR
    assert (await slow).ok


@pytest.mark.asyncio
async def test_admission_waits_for_free_slot(tmp_path):
    scheduler = make_scheduler(tmp_path, max_concurrent_jobs=1, admission_timeout=10)

    first = scheduler.submit("python", "import time\ntime.sleep(0.3)\nprint(1)")
    second = scheduler.submit("python", "print(2)")

    results = await asyncio.gather(first, second)
    assert [r.stdout for r in results] == ["1\n", "2\n"]


@pytest.mark.asyncio
async def test_unbounded_scheduler_runs_jobs_in_parallel(tmp_path):
    scheduler = make_scheduler(tmp_path, max_concurrent_jobs=0)
    source = "import time\ntime.sleep(1)\nprint('ok')"

    started = time.monotonic()
    results = await asyncio.gather(*[scheduler.run("python", source) for _ in range(4)])

    assert all(r.stdout == "ok\n" for r in results)
    assert time.monotonic() - started < 3.5


@requires_gxx
@pytest.mark.asyncio
async def test_cpp_compiles_and_runs(tmp_path):
    scheduler = ExecutionScheduler(policies={"cpp": cpp_policy()}, workspace_root=str(tmp_path))

    result = await scheduler.run(
        "cpp", '#include <iostream>\nint main(){ std::cout << 6*7 << "\\n"; return 0; }\n'
    )

    assert result.ok
    assert result.stdout == "42\n"
    assert result.exitCode == 0
    assert os.listdir(tmp_path) == []


@requires_gxx
@pytest.mark.asyncio
async def test_cpp_compile_error(tmp_path):
    scheduler = ExecutionScheduler(policies={"cpp": cpp_policy()}, workspace_root=str(tmp_path))

    result = await scheduler.run("cpp", "int main( { return 0 }")

    assert result.ok
    assert result.exitCode != 0
    assert result.stdout == ""
    assert result.stderr != ""
    assert result.status == JobState.COMPLETED


@requires_node
@pytest.mark.asyncio
async def test_javascript_runs(tmp_path):
    scheduler = ExecutionScheduler(
        policies={"javascript": javascript_policy()}, workspace_root=str(tmp_path)
    )

    result = await scheduler.run("javascript", "console.log([1, 2, 3].map(x => x * 2).join(','))")

    assert result.stdout == "2,4,6\n"
    assert result.exitCode == 0
