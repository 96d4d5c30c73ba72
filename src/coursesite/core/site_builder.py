"""Top-level build of the course site artifacts.

Three jobs run side by side and share nothing but the read-only
configuration: the syllabus, the lecture decks and the homework packages.
Lectures and homeworks fan out further, one task per unit. Only a syllabus
failure is fatal; every other failure is reported as a warning for its unit.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from attrs import Factory, define

from coursesite.core.build_unit import (
    BuildUnit,
    archive_path,
    docs_stamp_path,
    homework_units,
    lecture_units,
)
from coursesite.core.scheduler import UnitOutcome, UnitStatus, schedule_all
from coursesite.core.staleness import is_stale
from coursesite.infrastructure.config import CoursesiteConfig
from coursesite.infrastructure.services.subprocess_tools import ProcessRunner, run_subprocess
from coursesite.infrastructure.utils.archive import ArchiveJob, pack
from coursesite.infrastructure.utils.path_utils import collect_watch_paths, ensure_dir
from coursesite.renderers.doc_generator import MANIFEST_NAME, generate_docs, write_stamp
from coursesite.renderers.marp_renderer import render_lecture
from coursesite.renderers.typst_compiler import SyllabusBuildError, compile_syllabus

logger = logging.getLogger(__name__)


@define
class SiteBuildResult:
    """Outcome of a complete run."""

    lectures: list[UnitOutcome] = Factory(list)
    homeworks: list[UnitOutcome] = Factory(list)
    syllabus_status: UnitStatus | None = None
    syllabus_error: SyllabusBuildError | None = None
    watch_paths: list[Path] = Factory(list)

    @property
    def outcomes(self) -> list[UnitOutcome]:
        return self.lectures + self.homeworks

    @property
    def warnings(self) -> list[tuple[str, str]]:
        """All per-unit warnings as (slug, message) pairs."""
        return [(outcome.slug, w) for outcome in self.outcomes for w in outcome.warnings]

    @property
    def failed(self) -> bool:
        """True if the run must be reported as failed (non-zero exit)."""
        return self.syllabus_error is not None

    def count(self, status: UnitStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)


class SiteBuilder:
    """Builds every artifact of the course site below the output root.

    Args:
        config: Effective configuration
        project_root: Directory all configured paths are relative to
        runner: Capability used for every external tool invocation
        force: Rebuild everything, ignoring timestamps
        num_workers: Threads per fan-out, overrides the configuration
    """

    def __init__(
        self,
        config: CoursesiteConfig,
        project_root: Path,
        *,
        runner: ProcessRunner = run_subprocess,
        force: bool = False,
        num_workers: int | None = None,
    ):
        self.config = config
        # Tools run in unit directories, so every path handed to them is absolute
        self.project_root = project_root.resolve()
        self.runner = runner
        self.force = force
        self.num_workers = num_workers or config.pipeline.max_workers
        self.output_root = config.output_root(self.project_root)
        self.lecture_units = lecture_units(config, self.project_root)
        self.homework_units = homework_units(config, self.project_root)

    @property
    def tools(self):
        return self.config.external_tools

    @property
    def syllabus_source(self) -> Path:
        return self.project_root / self.config.paths.syllabus_source

    @property
    def syllabus_output(self) -> Path:
        return self.output_root / self.config.paths.syllabus_output

    @property
    def marp_config(self) -> Path:
        return self.project_root / self.config.paths.marp_config

    def watch_roots(self) -> list[Path]:
        return [
            self.project_root / self.config.paths.lectures_dir,
            self.project_root / self.config.paths.homeworks_dir,
            self.syllabus_source,
        ]

    def register_watch_paths(self) -> list[Path]:
        """Collect the source files whose change calls for another run."""
        paths = collect_watch_paths(self.watch_roots())
        logger.debug(f"Watching {len(paths)} source files")
        return paths

    def build_syllabus(self) -> UnitStatus:
        """Compile the syllabus if it is out of date.

        Raises:
            SyllabusBuildError: If the syllabus cannot be compiled
        """
        source, output = self.syllabus_source, self.syllabus_output
        if not source.exists():
            raise SyllabusBuildError(f"Syllabus source not found: {source}")
        if not self.force and not is_stale(source, [output]):
            logger.debug("Syllabus is up to date")
            return UnitStatus.UP_TO_DATE

        ensure_dir(output.parent)
        compile_syllabus(source, output, runner=self.runner, executable=self.tools.typst_executable)
        return UnitStatus.BUILT

    def build_lecture(self, unit: BuildUnit) -> UnitOutcome:
        ensure_dir(unit.output_dir)
        if not self.force and not is_stale(unit.source_path, unit.outputs):
            logger.debug(f"{unit.slug}: up to date")
            return UnitOutcome(unit, UnitStatus.UP_TO_DATE)

        results = render_lecture(
            unit,
            self.marp_config,
            runner=self.runner,
            executable=self.tools.marp_executable,
            dark_directive=self.config.pipeline.dark_theme_directive,
            light_directive=self.config.pipeline.light_theme_directive,
        )
        failures = [result.describe() for result in results if not result.ok]
        if failures:
            for failure in failures:
                logger.warning(f"{unit.slug}: {failure}")
            return UnitOutcome(unit, UnitStatus.FAILED, failures)

        logger.info(f"Rendered {unit.slug}")
        return UnitOutcome(unit, UnitStatus.BUILT)

    def build_homework(self, unit: BuildUnit) -> UnitOutcome:
        """Generate a homework's documentation and package its handout.

        Documentation runs first and the handout is checked for staleness
        only afterwards: cargo may write a lockfile into the project, which
        then ends up in the handout instead of outdating it.
        """
        ensure_dir(unit.output_dir)
        zip_path, stamp_path = archive_path(unit), docs_stamp_path(unit)
        warnings: list[str] = []
        attempted = 0

        needs_docs = self.force or is_stale(unit.source_path, [stamp_path])
        if needs_docs:
            attempted += 1
            outcome = generate_docs(
                unit.source_path / MANIFEST_NAME,
                unit.output_dir,
                runner=self.runner,
                executable=self.tools.cargo_executable,
            )
            if outcome.succeeded:
                write_stamp(stamp_path, outcome)
            else:
                warnings.append(f"Documentation generation failed: {outcome.describe()}")

        needs_zip = self.force or is_stale(unit.source_path, [zip_path])
        if needs_zip:
            attempted += 1
            try:
                pack(ArchiveJob(unit.source_path, zip_path, unit.slug))
            except OSError as e:
                warnings.append(f"Failed to zip: {e}")

        if not attempted:
            logger.debug(f"{unit.slug}: up to date")
            return UnitOutcome(unit, UnitStatus.UP_TO_DATE)

        for warning in warnings:
            logger.warning(f"{unit.slug}: {warning}")
        status = UnitStatus.FAILED if len(warnings) == attempted else UnitStatus.BUILT
        return UnitOutcome(unit, status, warnings)

    def build_lectures(self) -> list[UnitOutcome]:
        return schedule_all(
            self.lecture_units, self.build_lecture, num_workers=self.num_workers, job_name="lectures"
        )

    def build_homeworks(self) -> list[UnitOutcome]:
        return schedule_all(
            self.homework_units,
            self.build_homework,
            num_workers=self.num_workers,
            job_name="homeworks",
        )

    def build(self, raise_on_fatal: bool = True) -> SiteBuildResult:
        """Run the syllabus, lecture and homework jobs in parallel.

        All three jobs always run to completion. A syllabus failure is
        raised afterwards (or recorded, if `raise_on_fatal` is False).

        Raises:
            SyllabusBuildError: If the syllabus failed and `raise_on_fatal`
        """
        ensure_dir(self.output_root)
        result = SiteBuildResult(watch_paths=self.register_watch_paths())

        with ThreadPoolExecutor(max_workers=3) as executor:
            syllabus_future = executor.submit(self.build_syllabus)
            lectures_future = executor.submit(self.build_lectures)
            homeworks_future = executor.submit(self.build_homeworks)

            result.lectures = lectures_future.result()
            result.homeworks = homeworks_future.result()
            try:
                result.syllabus_status = syllabus_future.result()
            except SyllabusBuildError as e:
                result.syllabus_status = UnitStatus.FAILED
                result.syllabus_error = e

        if result.syllabus_error is not None and raise_on_fatal:
            raise result.syllabus_error
        return result


def build_site(
    config: CoursesiteConfig,
    project_root: Path,
    *,
    runner: ProcessRunner = run_subprocess,
    force: bool = False,
    num_workers: int | None = None,
    raise_on_fatal: bool = True,
) -> SiteBuildResult:
    """Build all site artifacts below the configured output directory."""
    builder = SiteBuilder(
        config, project_root, runner=runner, force=force, num_workers=num_workers
    )
    return builder.build(raise_on_fatal=raise_on_fatal)
