import logging
import subprocess
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from attrs import field, frozen

logger = logging.getLogger(__name__)


class SubprocessError(Exception):
    """Exception raised when subprocess execution fails."""

    pass


class SubprocessCrashError(SubprocessError):
    """Exception raised when subprocess exits with non-zero exit code.

    This is a subclass of SubprocessError that specifically indicates the
    subprocess ran but exited with a non-zero return code, as opposed to
    failing to launch at all.

    Attributes:
        return_code: The non-zero exit code from the subprocess
        stderr: The stderr output from the subprocess
        stdout: The stdout output from the subprocess
    """

    def __init__(self, message: str, return_code: int, stderr: bytes = b"", stdout: bytes = b""):
        super().__init__(message)
        self.return_code = return_code
        self.stderr = stderr
        self.stdout = stdout


@frozen
class ProcessOutcome:
    """What happened when an external command was run.

    Attributes:
        cmd: The command line that was run
        cwd: Working directory of the process, None for the current one
        return_code: Exit code, None if the process could not be started
        stdout: Captured standard output
        stderr: Captured standard error
        launch_error: The error raised while starting the process, if any
    """

    cmd: tuple[str, ...] = field(converter=tuple)
    cwd: Path | None = None
    return_code: int | None = None
    stdout: bytes = b""
    stderr: bytes = b""
    launch_error: OSError | None = None

    @property
    def launched(self) -> bool:
        return self.launch_error is None

    @property
    def succeeded(self) -> bool:
        return self.launched and self.return_code == 0

    @property
    def command_line(self) -> str:
        return " ".join(self.cmd)

    def describe(self) -> str:
        """Short human-readable description of a failed outcome."""
        if not self.launched:
            return f"could not run {self.cmd[0]}: {self.launch_error}"
        if self.return_code != 0:
            stderr = self.stderr.decode(errors="replace").strip()
            message = f"{self.cmd[0]} exited with code {self.return_code}"
            if stderr:
                message += f": {stderr[:500]}"
            return message
        return f"{self.cmd[0]} succeeded"

    def check(self) -> "ProcessOutcome":
        """Raise if the process could not be launched or did not succeed.

        Raises:
            SubprocessError: If the command could not be started
            SubprocessCrashError: If the command exited with non-zero code
        """
        if not self.launched:
            raise SubprocessError(
                f"Command failed to start: {self.launch_error}\nCommand: {self.command_line}"
            ) from self.launch_error
        if self.return_code != 0:
            assert self.return_code is not None
            raise SubprocessCrashError(
                f"Command exited with code {self.return_code}\n"
                f"Command: {self.command_line}\n"
                f"Stderr: {self.stderr.decode(errors='replace')[:1000]}",
                return_code=self.return_code,
                stderr=self.stderr,
                stdout=self.stdout,
            )
        return self


class ProcessRunner(Protocol):
    """Capability to run an external command and report its outcome."""

    def __call__(self, cmd: Sequence[str], cwd: Path | None = None) -> ProcessOutcome: ...


def run_subprocess(cmd: Sequence[str], cwd: Path | None = None) -> ProcessOutcome:
    """Run a command to completion and capture its output.

    The call blocks the current thread until the process exits; there is no
    timeout and no retry. Failures are reported in the returned outcome, never
    raised.

    Args:
        cmd: Command and arguments to execute
        cwd: Working directory for the process. If None, inherits the
            current working directory.

    Returns:
        ProcessOutcome describing the run
    """
    cmd = [str(arg) for arg in cmd]
    logger.debug(f"Running {' '.join(cmd)} in {cwd or Path.cwd()}")
    try:
        completed = subprocess.run(cmd, cwd=cwd, capture_output=True, check=False)
    except OSError as e:
        # FileNotFoundError, PermissionError, NotADirectoryError for a bad cwd, ...
        logger.debug(f"Failed to launch {cmd[0]}: {e}")
        return ProcessOutcome(cmd=cmd, cwd=cwd, launch_error=e)

    logger.debug(f"{cmd[0]}: return code {completed.returncode}")
    return ProcessOutcome(
        cmd=cmd,
        cwd=cwd,
        return_code=completed.returncode,
        stdout=completed.stdout,
        stderr=completed.stderr,
    )
