"""Tests for system commands.

A ``SystemCommand`` is spawned lazily, inherits the shell's cwd,
environment and umask, runs at most once, and can be signalled while it
runs.
"""

import signal
from pathlib import Path
from threading import Thread

import pytest

from py_shell.command import CommandState
from py_shell.env import Environment
from py_shell.errors import CommandNotFoundError, KilledBySignalError, SpawnFailedError
from py_shell.jobs import ExitStatus, JobStatus
from py_shell.logging import LogLevel
from py_shell.shell import Shell


def _script(directory: Path, name: str, body: str) -> Path:
    """Write an executable shell script into *directory*."""
    directory.mkdir(exist_ok=True)
    path = directory / name
    path.write_text(f"#!/bin/sh\n{body}\n")
    path.chmod(0o755)
    return path


# -- Cycle 1: Laziness and state ---------------------------------------------------


class TestLifecycle:
    """Verify the command state machine."""

    def test_building_does_not_spawn(self, tmp_path: Path) -> None:
        """A freshly built command has no job yet."""
        with Shell(cwd=tmp_path) as sh:
            cmd = sh.system("true")
            assert cmd.state is CommandState.NOT_STARTED
            assert cmd.job is None
            assert sh.jobs == []

    def test_start_makes_it_active(self, tmp_path: Path) -> None:
        """Starting resolves the path and spawns the process."""
        with Shell(cwd=tmp_path) as sh:
            cmd = sh.system("sleep", "5")
            job = cmd.start()
            assert cmd.state is CommandState.ACTIVE
            assert cmd.pid is not None
            assert cmd.path is not None
            assert cmd.path.endswith("sleep")
            assert job.status is JobStatus.ACTIVE
            cmd.kill()

    def test_start_is_idempotent(self, tmp_path: Path) -> None:
        """A second start returns the same job."""
        with Shell(cwd=tmp_path) as sh:
            cmd = sh.system("true")
            assert cmd.start() is cmd.start()

    def test_terminated_after_output_ends(self, tmp_path: Path) -> None:
        """Reading to the end reaps the process."""
        with Shell(cwd=tmp_path) as sh:
            cmd = sh.system("echo", "hi")
            assert cmd.to_list() == ["hi"]
            assert cmd.state is CommandState.TERMINATED
            assert cmd.exit_status is not None
            assert cmd.exit_status.success

    def test_cannot_drive_twice(self, tmp_path: Path) -> None:
        """A process cannot be re-run by iterating again."""
        with Shell(cwd=tmp_path) as sh:
            cmd = sh.system("echo", "once")
            cmd.drain()
            with pytest.raises(RuntimeError, match="already been driven"):
                cmd.drain()

    def test_cannot_attach_after_start(self, tmp_path: Path) -> None:
        """Input must be attached before the process exists."""
        with Shell(cwd=tmp_path) as sh:
            cmd = sh.system("true")
            cmd.start()
            with pytest.raises(RuntimeError, match="Cannot attach"):
                cmd.attach_input(sh.echo("late"))

    def test_str_is_quoted_command_line(self, tmp_path: Path) -> None:
        """The string form is the shell-quoted command line."""
        with Shell(cwd=tmp_path) as sh:
            assert str(sh.system("echo", "a b")) == "echo 'a b'"


# -- Cycle 2: Inherited state ------------------------------------------------------


class TestInheritance:
    """Verify cwd, environment and umask reach the child."""

    def test_runs_in_shell_cwd(self, tmp_path: Path) -> None:
        """The child starts in the shell's working directory."""
        with Shell(cwd=tmp_path) as sh:
            assert sh.system("pwd").read().strip() == str(tmp_path.resolve())

    def test_sees_environment(self, tmp_path: Path) -> None:
        """Variables set on the shell are visible to the child."""
        env = Environment.from_process()
        env.set("PY_SHELL_GREETING", "hello")
        with Shell(cwd=tmp_path, environment=env) as sh:
            output = sh.system("sh", "-c", "echo $PY_SHELL_GREETING").to_list()
        assert output == ["hello"]

    def test_environment_snapshot_at_start(self, tmp_path: Path) -> None:
        """Changes made before the command starts are seen."""
        with Shell(cwd=tmp_path) as sh:
            cmd = sh.system("sh", "-c", "echo $LATE_VAR")
            sh.context.environment.set("LATE_VAR", "set")
            assert cmd.to_list() == ["set"]

    def test_umask(self, tmp_path: Path) -> None:
        """The shell's umask applies to the child."""
        with Shell(cwd=tmp_path, umask=0o077) as sh:
            assert sh.system("sh", "-c", "umask").to_list() == ["0077"]

    def test_exit_code(self, tmp_path: Path) -> None:
        """A failing command reports its exit code."""
        with Shell(cwd=tmp_path) as sh:
            status = sh.system("false").wait()
        assert status.code == 1
        assert not status.success


# -- Cycle 3: Resolution -------------------------------------------------------------


class TestResolution:
    """Verify executable lookup."""

    def test_not_found(self, tmp_path: Path) -> None:
        """An unknown name raises CommandNotFoundError when driven."""
        with Shell(cwd=tmp_path) as sh:
            cmd = sh.system("no-such-command-anywhere")
            with pytest.raises(CommandNotFoundError):
                cmd.to_list()
            assert cmd.state is CommandState.NOT_STARTED

    def test_script_on_search_path(self, tmp_path: Path) -> None:
        """An executable added to the search path can be run by name."""
        bin_dir = tmp_path / "bin"
        _script(bin_dir, "greet", 'echo "hi $1"')
        with Shell(cwd=tmp_path) as sh:
            sh.context.search_path = [str(bin_dir), *sh.context.search_path]
            assert sh.system("greet", "there").to_list() == ["hi there"]

    def test_relative_path(self, tmp_path: Path) -> None:
        """A name with a separator is resolved against cwd."""
        _script(tmp_path / "local", "tool", "echo local")
        with Shell(cwd=tmp_path) as sh:
            assert sh.system("./local/tool").to_list() == ["local"]

    def test_spawn_failure_can_retry(self, tmp_path: Path) -> None:
        """After a failed spawn the command can be started again."""
        bad = tmp_path / "flaky"
        bad.write_bytes(b"\x00\x01\x02\x03")
        bad.chmod(0o755)
        with Shell(cwd=tmp_path) as sh:
            cmd = sh.system("./flaky")
            with pytest.raises(SpawnFailedError):
                cmd.start()
            assert cmd.state is CommandState.NOT_STARTED
            bad.write_text("#!/bin/sh\necho recovered\n")
            assert cmd.to_list() == ["recovered"]
            assert len(sh.jobs) == 1


# -- Cycle 4: Signals ------------------------------------------------------------------


class TestSignals:
    """Verify terminating and killing running commands."""

    def test_kill(self, tmp_path: Path) -> None:
        """Killing ends the process with SIGKILL."""
        with Shell(cwd=tmp_path) as sh:
            cmd = sh.system("sleep", "30")
            cmd.start()
            cmd.kill()
            status = cmd.wait()
        assert status.signal is signal.SIGKILL
        with pytest.raises(KilledBySignalError):
            status.raise_for_status()

    def test_kill_with_other_signal(self, tmp_path: Path) -> None:
        """Any signal can be sent through kill."""
        with Shell(cwd=tmp_path) as sh:
            cmd = sh.system("sleep", "30")
            cmd.start()
            cmd.kill("USR1")
            assert cmd.wait().signal is signal.SIGUSR1

    def test_terminate_with_input_pump(self, tmp_path: Path) -> None:
        """Terminating a reader stops its pump with a broken pipe, quietly."""
        with Shell(cwd=tmp_path) as sh:
            cmd = sh.system("yes") | sh.system("sleep", "30")
            cmd.start()
            cmd.terminate()
            assert cmd.read() == ""
            assert cmd.exit_status is not None
            assert cmd.exit_status.signal is signal.SIGTERM
            assert cmd.broken_pipe is not None

    def test_terminate_never_started(self, tmp_path: Path) -> None:
        """Terminating a command that never ran only logs a warning."""
        with Shell(cwd=tmp_path) as sh:
            cmd = sh.system("true")
            assert cmd.terminate() is None
            warnings = sh.context.logger.filter(min_level=LogLevel.WARNING)
            assert any("never started" in e.message for e in warnings)


# -- Cycle 5: Streaming --------------------------------------------------------------


class TestStreaming:
    """Verify output arrives lazily."""

    def test_first_record_before_exit(self, tmp_path: Path) -> None:
        """Records are available while the command is still running."""
        with Shell(cwd=tmp_path) as sh:
            cmd = sh.system("sh", "-c", "echo first; sleep 30")
            records = cmd.lines()
            assert next(records) == "first"
            assert cmd.state is CommandState.ACTIVE
            cmd.kill()
            records.close()

    def test_abandoned_output_is_reaped_later(self, tmp_path: Path) -> None:
        """Stopping early leaves the job for wait_all instead of blocking."""
        with Shell(cwd=tmp_path) as sh:
            cmd = sh.system("printf", "a\\nb\\nc\\n")
            records = cmd.lines()
            assert next(records) == "a"
            records.close()
            results = sh.wait_all()
        assert cmd.job is not None
        assert cmd.job.job_id in results

    def test_started_but_unread_does_not_block_wait_all(self, tmp_path: Path) -> None:
        """wait_all reaps a chatty command whose output nobody read."""
        with Shell(cwd=tmp_path) as sh:
            cmd = sh.system("head", "-c", "200000", "/dev/zero")
            job = cmd.start()
            results: dict[int, ExitStatus] = {}
            waiter = Thread(target=lambda: results.update(sh.wait_all()), daemon=True)
            waiter.start()
            waiter.join(timeout=10)
            assert not waiter.is_alive()
        assert results[job.job_id].success

    def test_discarded_output_cannot_be_read(self, tmp_path: Path) -> None:
        """Once wait_all has thrown the output away, reading it is an error."""
        with Shell(cwd=tmp_path) as sh:
            cmd = sh.system("echo", "lost")
            cmd.start()
            sh.wait_all()
            with pytest.raises(RuntimeError, match="already claimed"):
                cmd.read()
