"""Parallel fan-out over independent build units.

Every unit is processed by its own task. Units never share output paths, so
the tasks need no synchronization; the scheduler only waits for all of them
and collects what each reports. A failure in one unit is logged as a warning
and never reaches its siblings.
"""

import logging
import os
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from enum import StrEnum

from attrs import Factory, field, frozen

from coursesite.core.build_unit import BuildUnit

logger = logging.getLogger(__name__)


class UnitStatus(StrEnum):
    BUILT = "built"
    UP_TO_DATE = "up to date"
    SKIPPED = "skipped"
    FAILED = "failed"


@frozen
class UnitOutcome:
    """What happened to a single unit during a run.

    A unit can be BUILT and still carry warnings, e.g. a homework whose
    archive was created but whose documentation failed.
    """

    unit: BuildUnit
    status: UnitStatus
    warnings: tuple[str, ...] = field(converter=tuple, default=Factory(tuple))

    @property
    def slug(self) -> str:
        return self.unit.slug

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)


UnitWork = Callable[[BuildUnit], "UnitOutcome | None"]


def max_workers(configured: int | None = None) -> int:
    if configured is not None:
        return max(configured, 1)
    return os.cpu_count() or 4


def create_executor(num_workers: int | None = None) -> ThreadPoolExecutor:
    return ThreadPoolExecutor(max_workers=max_workers(num_workers))


def run_unit(unit: BuildUnit, work: UnitWork) -> UnitOutcome:
    """Run `work` for a single unit, converting every failure into an outcome."""
    if not unit.source_path.exists():
        message = f"{unit.kind.value.capitalize()} not found: {unit.source_path}"
        logger.warning(f"{unit.slug}: {message}")
        return UnitOutcome(unit, UnitStatus.SKIPPED, [message])

    try:
        outcome = work(unit)
    except Exception as e:
        logger.warning(f"{unit.slug}: build failed: {e}", exc_info=True)
        return UnitOutcome(unit, UnitStatus.FAILED, [f"Build failed: {e}"])
    return outcome if outcome is not None else UnitOutcome(unit, UnitStatus.BUILT)


def schedule_all(
    units: Sequence[BuildUnit],
    work: UnitWork,
    *,
    num_workers: int | None = None,
    job_name: str = "",
) -> list[UnitOutcome]:
    """Process every unit with `work`, in parallel and without ordering.

    Units whose source does not exist are skipped with a warning. Returns only
    after every task has finished.

    Args:
        units: The units to process
        work: Called once per unit in a worker thread. It may return a
            UnitOutcome; None means the unit was built.
        num_workers: Size of the thread pool (default: number of CPUs)
        job_name: Label used in log messages

    Returns:
        One outcome per unit, in the order of `units`
    """
    if not units:
        return []
    label = job_name or "units"
    logger.debug(f"Scheduling {len(units)} {label}")

    with create_executor(num_workers) as executor:
        futures = [executor.submit(run_unit, unit, work) for unit in units]
        outcomes = [future.result() for future in futures]

    built = sum(1 for outcome in outcomes if outcome.status == UnitStatus.BUILT)
    logger.info(f"Finished {label}: {built}/{len(outcomes)} built")
    return outcomes
