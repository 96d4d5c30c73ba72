import logging
from collections.abc import Iterator
from contextlib import contextmanager
from enum import StrEnum
from pathlib import Path

from attrs import frozen

from coursesite.core.build_unit import BuildUnit
from coursesite.infrastructure.services.subprocess_tools import (
    ProcessOutcome,
    ProcessRunner,
    run_subprocess,
)

logger = logging.getLogger(__name__)

MARP_EXECUTABLE = "marp"
DARK_THEME_DIRECTIVE = "class: invert"
LIGHT_THEME_DIRECTIVE = "# class: invert"


class RenderStatus(StrEnum):
    SUCCESS = "success"
    PROCESS_ERROR = "process error"
    LAUNCH_ERROR = "launch error"


@frozen
class RenderResult:
    """Result of rendering a single deck.

    Attributes:
        status: Whether the renderer succeeded, failed, or could not be started
        output: The file the renderer was asked to write
        outcome: The underlying process outcome, with exit code and stderr
    """

    status: RenderStatus
    output: Path
    outcome: ProcessOutcome

    @property
    def ok(self) -> bool:
        return self.status == RenderStatus.SUCCESS

    @classmethod
    def from_outcome(cls, output: Path, outcome: ProcessOutcome) -> "RenderResult":
        if not outcome.launched:
            status = RenderStatus.LAUNCH_ERROR
        elif outcome.return_code != 0:
            status = RenderStatus.PROCESS_ERROR
        else:
            status = RenderStatus.SUCCESS
        return cls(status, output, outcome)

    def describe(self) -> str:
        if self.ok:
            return f"Rendered {self.output.name}"
        return f"Failed to render {self.output.name}: {self.outcome.describe()}"


def render_marp(
    input_path: Path,
    output_path: Path,
    config_path: Path,
    working_dir: Path,
    *,
    runner: ProcessRunner = run_subprocess,
    executable: str = MARP_EXECUTABLE,
) -> RenderResult:
    """Render a Markdown deck to `output_path`.

    The renderer runs inside `working_dir` and receives the input by file
    name, so that relative asset references in the deck resolve.

    Never raises for renderer failures; inspect the returned result.
    """
    cmd = [
        executable,
        input_path.name,
        "-c",
        str(config_path),
        "-o",
        str(output_path),
    ]
    outcome = runner(cmd, cwd=working_dir)
    result = RenderResult.from_outcome(output_path, outcome)
    if result.ok:
        logger.debug(f"Rendered {input_path} to {output_path}")
    else:
        logger.warning(result.describe())
    return result


@contextmanager
def themed_copy(source: Path, temp_path: Path, directive: str, replacement: str) -> Iterator[Path]:
    """Provide a copy of `source` with a styling directive replaced.

    The copy is written to `temp_path` and removed when the block exits,
    whether it succeeded or not. A failure to remove it is ignored.
    """
    content = source.read_text(encoding="utf-8")
    temp_path.write_text(content.replace(directive, replacement), encoding="utf-8")
    try:
        yield temp_path
    finally:
        try:
            temp_path.unlink(missing_ok=True)
        except OSError as e:
            logger.debug(f"Could not remove temporary file {temp_path}: {e}")


def light_temp_path(unit: BuildUnit) -> Path:
    # Named after the topic so that concurrently rendered lectures never collide
    return unit.source_dir / f"{unit.slug}-light-temp.md"


def render_lecture(
    unit: BuildUnit,
    config_path: Path,
    *,
    runner: ProcessRunner = run_subprocess,
    executable: str = MARP_EXECUTABLE,
    dark_directive: str = DARK_THEME_DIRECTIVE,
    light_directive: str = LIGHT_THEME_DIRECTIVE,
) -> list[RenderResult]:
    """Render the dark and the light deck of a lecture.

    The dark deck is rendered from the source as it is. The light deck is
    rendered from a temporary copy with the dark theme directive disabled.
    If the dark deck fails, the light one is not attempted.

    Returns:
        The results of the renders that were attempted
    """
    dark_pdf, light_pdf = unit.outputs
    results = [
        render_marp(
            unit.source_path,
            dark_pdf,
            config_path,
            unit.source_dir,
            runner=runner,
            executable=executable,
        )
    ]
    if not results[0].ok:
        return results

    with themed_copy(
        unit.source_path, light_temp_path(unit), dark_directive, light_directive
    ) as light_source:
        results.append(
            render_marp(
                light_source,
                light_pdf,
                config_path,
                unit.source_dir,
                runner=runner,
                executable=executable,
            )
        )
    return results
