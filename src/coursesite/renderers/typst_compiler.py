import logging
from pathlib import Path

from coursesite.infrastructure.services.subprocess_tools import (
    ProcessOutcome,
    ProcessRunner,
    SubprocessError,
    run_subprocess,
)

logger = logging.getLogger(__name__)

TYPST_EXECUTABLE = "typst"


class SyllabusBuildError(SubprocessError):
    """The syllabus could not be compiled. This aborts the whole build."""

    def __init__(self, message: str, outcome: ProcessOutcome | None = None):
        super().__init__(message)
        self.outcome = outcome


def compile_syllabus(
    source: Path,
    output: Path,
    *,
    runner: ProcessRunner = run_subprocess,
    executable: str = TYPST_EXECUTABLE,
) -> ProcessOutcome:
    """Compile the Typst syllabus `source` to `output`.

    Raises:
        SyllabusBuildError: If the compiler cannot be started or fails
    """
    cmd = [executable, "compile", str(source), str(output)]
    outcome = runner(cmd)
    try:
        outcome.check()
    except SubprocessError as e:
        logger.error(f"Syllabus compilation failed: {outcome.describe()}")
        raise SyllabusBuildError(
            f"Failed to compile syllabus {source}: {outcome.describe()}", outcome
        ) from e
    logger.info(f"Compiled syllabus to {output}")
    return outcome
