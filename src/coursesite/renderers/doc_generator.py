import logging
from pathlib import Path

from coursesite.infrastructure.services.subprocess_tools import (
    ProcessOutcome,
    ProcessRunner,
    run_subprocess,
)

logger = logging.getLogger(__name__)

CARGO_EXECUTABLE = "cargo"
MANIFEST_NAME = "Cargo.toml"


def generate_docs(
    manifest_path: Path,
    target_dir: Path,
    *,
    runner: ProcessRunner = run_subprocess,
    executable: str = CARGO_EXECUTABLE,
) -> ProcessOutcome:
    """Generate API documentation for the crate at `manifest_path`.

    The documentation ends up in `target_dir/doc`. Failures are logged and
    returned, never raised.
    """
    cmd = [
        executable,
        "doc",
        "--no-deps",
        "--manifest-path",
        str(manifest_path),
        "--target-dir",
        str(target_dir),
    ]
    outcome = runner(cmd)
    if outcome.succeeded:
        logger.debug(f"Generated docs for {manifest_path} in {target_dir}")
    else:
        logger.warning(f"Documentation generation failed for {manifest_path}: {outcome.describe()}")
    return outcome


def write_stamp(stamp_path: Path, outcome: ProcessOutcome) -> Path:
    """Record a successful documentation run, dated by the stamp's mtime."""
    stamp_path.write_text(f"{outcome.command_line}\n", encoding="utf-8")
    return stamp_path
