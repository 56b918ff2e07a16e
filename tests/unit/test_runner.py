import asyncio
import os
import signal
import time

import pytest

from svcpanel.control import runner as runner_module
from svcpanel.control.models import CommandResult, ServiceOperation
from svcpanel.control.runner import SystemctlRunner
from svcpanel.control.util import constant_time_equals, run_command, truncate
from svcpanel.exceptions import CommandError, CommandTimeoutError


class RecordingRunCommand:
    def __init__(self, result: CommandResult):
        self.result = result
        self.commands = []

    async def __call__(self, command, timeout, limit):
        self.commands.append((command, timeout, limit))
        return self.result


def _result(exit_code=0, stdout="", stderr=""):
    return CommandResult(
        exit_code=exit_code,
        stdout=stdout,
        stderr=stderr,
        stdout_truncated=False,
        stderr_truncated=False,
    )


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "operation, subcommand",
    [
        (ServiceOperation.STATUS, "is-active"),
        (ServiceOperation.START, "start"),
        (ServiceOperation.STOP, "stop"),
    ],
)
async def test_command_is_user_scoped(monkeypatch, operation, subcommand):
    recorder = RecordingRunCommand(_result(stdout="active\n"))
    monkeypatch.setattr(runner_module, "run_command", recorder)

    runner = SystemctlRunner(timeout=12, limit=100)
    output = await runner.execute(operation, "jellyfin.service")

    assert output == "active"
    assert recorder.commands == [(["systemctl", "--user", subcommand, "jellyfin.service"], 12, 100)]


@pytest.mark.asyncio
async def test_inactive_unit_is_a_successful_query(monkeypatch):
    monkeypatch.setattr(runner_module, "run_command", RecordingRunCommand(_result(3, "inactive\n")))

    assert await SystemctlRunner().execute(ServiceOperation.STATUS, "a.service") == "inactive"


@pytest.mark.asyncio
async def test_exit_three_is_a_failure_for_start(monkeypatch):
    monkeypatch.setattr(runner_module, "run_command", RecordingRunCommand(_result(3, "inactive\n")))

    with pytest.raises(CommandError):
        await SystemctlRunner().execute(ServiceOperation.START, "a.service")


@pytest.mark.asyncio
async def test_non_zero_exit_carries_stderr(monkeypatch):
    monkeypatch.setattr(
        runner_module,
        "run_command",
        RecordingRunCommand(_result(1, "", "Failed to connect to bus: No medium found")),
    )

    with pytest.raises(CommandError) as excinfo:
        await SystemctlRunner().execute(ServiceOperation.STOP, "a.service")

    assert excinfo.value.exit_code == 1
    assert "Failed to connect to bus" in excinfo.value.stderr


@pytest.mark.asyncio
async def test_run_command_captures_streams_separately():
    result = await run_command(["sh", "-c", "echo out; echo err >&2; exit 4"], timeout=5, limit=1024)

    assert result.exit_code == 4
    assert result.stdout == "out\n"
    assert result.stderr == "err\n"


@pytest.mark.asyncio
async def test_run_command_truncates_output():
    result = await run_command(["sh", "-c", "printf 'abcdefghij'"], timeout=5, limit=4)

    assert result.stdout == "abcd"
    assert result.stdout_truncated is True
    assert result.stderr_truncated is False


@pytest.mark.asyncio
async def test_run_command_timeout_kills_process():
    started = time.monotonic()
    with pytest.raises(CommandTimeoutError):
        await run_command(["sleep", "10"], timeout=0.2, limit=1024)
    assert time.monotonic() - started < 5


@pytest.mark.asyncio
async def test_run_command_cancellation_kills_and_reaps_child(monkeypatch):
    processes = []
    create_subprocess_exec = asyncio.create_subprocess_exec

    async def recording_exec(*args, **kwargs):
        process = await create_subprocess_exec(*args, **kwargs)
        processes.append(process)
        return process

    monkeypatch.setattr(asyncio, "create_subprocess_exec", recording_exec)

    task = asyncio.create_task(run_command(["sleep", "10"], timeout=30, limit=1024))
    while not processes:
        await asyncio.sleep(0.01)
    started = time.monotonic()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task

    process = processes[0]
    assert time.monotonic() - started < 5
    assert process.returncode == -signal.SIGKILL
    with pytest.raises(ProcessLookupError):
        os.kill(process.pid, 0)


@pytest.mark.asyncio
async def test_run_command_missing_binary():
    with pytest.raises(CommandError) as excinfo:
        await run_command(["definitely-not-a-real-binary-xyz"], timeout=1, limit=10)
    assert not isinstance(excinfo.value, CommandTimeoutError)


def test_truncate():
    assert truncate("abc", 5) == ("abc", False)
    assert truncate("abcdef", 3) == ("abc", True)


def test_constant_time_equals():
    assert constant_time_equals("admin", "admin")
    assert not constant_time_equals("admin", "Admin")
    assert not constant_time_equals("admin", "admin ")
    assert constant_time_equals("pässwörd", "pässwörd")
