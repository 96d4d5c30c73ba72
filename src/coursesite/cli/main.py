import asyncio
import logging
import signal
from logging.handlers import RotatingFileHandler
from pathlib import Path
from time import time

import click
import tomli_w
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from watchdog.observers import Observer

from coursesite.__version__ import __version__
from coursesite.cli.build_reporter import OUTPUT_MODES, BuildReporter
from coursesite.cli.file_event_handler import FileEventHandler
from coursesite.core.site_builder import SiteBuilder
from coursesite.core.staleness import is_stale
from coursesite.infrastructure.config import (
    CoursesiteConfig,
    find_config_files,
    get_config,
    get_config_file_locations,
    write_example_config,
)
from coursesite.infrastructure.logging.log_paths import get_main_log_path as get_log_file_path
from coursesite.infrastructure.utils.archive import ArchiveJob, pack

# Shared console for CLI output - uses stderr to avoid mixing with JSON output
cli_console = Console(stderr=True)


LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 3
LOG_FORMAT = "%(asctime)s %(levelname)-8s %(threadName)s %(name)s: %(message)s"


def setup_logging(log_level_name: str, console_logging: bool = False):
    """Send coursesite's log records to the rotating log file.

    With `console_logging` the records at or above the level also go to
    stderr through rich, next to the build report.
    """
    log_level = logging.getLevelName(log_level_name.upper())

    file_handler = RotatingFileHandler(
        get_log_file_path(),
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8",
    )
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    handlers: list[logging.Handler] = [file_handler]

    if console_logging:
        console_handler = RichHandler(console=cli_console, rich_tracebacks=True, show_path=False)
        console_handler.setLevel(log_level)
        handlers.append(console_handler)

    # The root logger passes everything; the coursesite logger sets the level
    logging.basicConfig(level=logging.DEBUG, handlers=handlers, force=True)
    logging.getLogger("coursesite").setLevel(log_level)


logger = logging.getLogger(__name__)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def load_config(output_dir: Path | None = None) -> CoursesiteConfig:
    """Load the effective configuration, applying command line overrides."""
    cfg = get_config(reload=True)
    if output_dir is not None:
        paths = cfg.paths.model_copy(update={"output_dir": str(output_dir)})
        cfg = cfg.model_copy(update={"paths": paths})
    return cfg


def observed_directories(builder: SiteBuilder) -> list[tuple[Path, bool]]:
    """Directories to observe, with whether to observe them recursively."""
    lectures_dir, homeworks_dir, syllabus_source = builder.watch_roots()
    directories = [(lectures_dir, True), (homeworks_dir, True), (syllabus_source.parent, False)]
    return [(directory, recursive) for directory, recursive in directories if directory.is_dir()]


async def watch_and_rebuild(builder: SiteBuilder, reporter: BuildReporter, debounce: float):
    """Watch the sources and rebuild the site when they change.

    Args:
        builder: Builder for the site to keep up to date
        reporter: Reporter that receives the result of every rebuild
        debounce: Delay in seconds during which further changes are collected
    """
    logger.info(f"Watch mode enabled, debounce delay: {debounce}s")
    loop = asyncio.get_running_loop()
    started = time()

    def report(result):
        nonlocal started
        reporter.report(result, time() - started)
        started = time()

    event_handler = FileEventHandler(
        builder=builder,
        loop=loop,
        debounce_delay=debounce,
        on_rebuilt=report,
        patterns=["*"],
    )

    observer = Observer()
    for directory, recursive in observed_directories(builder):
        observer.schedule(event_handler, str(directory), recursive=recursive)
        logger.debug(f"Observing {directory} (recursive={recursive})")
    observer.start()
    cli_console.print("[bold]Watching for changes[/bold] (press Ctrl+C to stop)")

    shut_down = False

    def shutdown_handler(sig, frame):
        # NOTE: Do not log here - signal handlers can interrupt logging
        nonlocal shut_down
        shut_down = True

    signal.signal(signal.SIGINT, shutdown_handler)
    signal.signal(signal.SIGTERM, shutdown_handler)

    try:
        while not shut_down:
            if event_handler.error_count >= event_handler.max_errors:
                raise click.ClickException(
                    f"Too many errors in watch mode ({event_handler.error_count}), stopping"
                )
            await asyncio.sleep(1)
    finally:
        logger.info("Stopping file observer")
        observer.stop()
        observer.join()


@click.group()
@click.version_option(__version__, prog_name="coursesite")
def cli():
    """Build the course website: lecture decks, homework handouts and the syllabus."""


@cli.command()
@click.option(
    "--project-root",
    "-p",
    type=click.Path(exists=True, file_okay=False, dir_okay=True, path_type=Path),
    default=Path("."),
    help="Directory all configured source paths are relative to.",
)
@click.option(
    "--output-dir",
    "-o",
    type=click.Path(file_okay=False, dir_okay=True, path_type=Path),
    help="Output directory (overrides config).",
)
@click.option(
    "--force",
    "-f",
    is_flag=True,
    help="Rebuild every artifact, ignoring timestamps.",
)
@click.option(
    "--jobs",
    "-j",
    type=click.IntRange(min=1),
    help="Worker threads per job (overrides config, default: number of CPUs).",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    help="Set the logging level (overrides config).",
)
@click.option(
    "--verbose-logging",
    is_flag=True,
    help="Show log messages in console (by default logs go to file only).",
)
@click.option(
    "--output-mode",
    "-O",
    type=click.Choice(OUTPUT_MODES, case_sensitive=False),
    default="default",
    help="Output mode for the build summary.",
)
@click.option(
    "--watch",
    "-w",
    is_flag=True,
    help="Watch for file changes and automatically rebuild.",
)
@click.option(
    "--debounce",
    type=float,
    default=0.3,
    help="Debounce delay for file changes in watch mode (seconds).",
)
def build(
    project_root,
    output_dir,
    force,
    jobs,
    log_level,
    verbose_logging,
    output_mode,
    watch,
    debounce,
):
    """Build every stale artifact of the course site.

    Lectures and homeworks that fail are reported as warnings. A syllabus
    that cannot be compiled fails the build.

    Examples:
        coursesite build
        coursesite build --force --jobs 4
        coursesite build --watch --verbose-logging
    """
    cfg = load_config(output_dir)
    setup_logging(log_level or cfg.logging.log_level, console_logging=verbose_logging)

    builder = SiteBuilder(cfg, project_root, force=force, num_workers=jobs)
    reporter = BuildReporter(output_mode=output_mode, console=cli_console)
    reporter.show_build_start(
        str(builder.project_root), len(builder.lecture_units) + len(builder.homework_units)
    )

    start_time = time()
    result = builder.build(raise_on_fatal=False)
    reporter.report(result, time() - start_time)

    if watch:
        # Later runs must only pick up what changed
        builder.force = False
        asyncio.run(watch_and_rebuild(builder, reporter, debounce))
    elif result.syllabus_error is not None:
        raise click.ClickException(str(result.syllabus_error))


@cli.command(name="units")
@click.option(
    "--project-root",
    "-p",
    type=click.Path(exists=True, file_okay=False, dir_okay=True, path_type=Path),
    default=Path("."),
    help="Directory all configured source paths are relative to.",
)
def list_units(project_root):
    """List the lecture and homework units and whether they need a rebuild.

    Examples:
        coursesite units
        coursesite units --project-root ../course
    """
    builder = SiteBuilder(load_config(), project_root)

    table = Table(title="Build units", show_header=True, header_style="bold")
    table.add_column("Kind")
    table.add_column("Slug")
    table.add_column("Source")
    table.add_column("State")

    for unit in builder.lecture_units + builder.homework_units:
        if not unit.source_path.exists():
            state = "[yellow]missing[/yellow]"
        elif is_stale(unit.source_path, unit.outputs):
            state = "[cyan]stale[/cyan]"
        else:
            state = "[green]up to date[/green]"
        try:
            source = unit.source_path.relative_to(builder.project_root)
        except ValueError:
            source = unit.source_path
        table.add_row(unit.kind.value, unit.slug, str(source), state)

    Console().print(table)


@cli.command(name="zip")
@click.argument(
    "source-dir",
    type=click.Path(exists=True, file_okay=False, dir_okay=True, path_type=Path),
)
@click.argument(
    "archive",
    type=click.Path(dir_okay=False, path_type=Path),
)
@click.option(
    "--root-name",
    "-n",
    help="Name of the top-level directory in the archive (default: name of SOURCE_DIR).",
)
def zip_command(source_dir, archive, root_name):
    """Package a directory as a ZIP archive.

    Build scratch directories (target) and hidden entries are left out.

    Examples:
        coursesite zip homeworks/week1/primerlab primerlab.zip
        coursesite zip ./lab3 out/lab.zip --root-name mylab
    """
    job = ArchiveJob(source_dir, archive, root_name or source_dir.resolve().name)
    try:
        created = pack(job)
    except OSError as e:
        raise click.ClickException(f"Failed to create archive: {e}") from e
    click.echo(f"✓ Created {created}")


@cli.group()
def config():
    """Manage coursesite configuration files."""
    pass


@config.command(name="init")
@click.option(
    "--location",
    type=click.Choice(["user", "project"], case_sensitive=False),
    default="user",
    help="Create the file in the user config directory or in ./.coursesite/.",
)
@click.option("--force", is_flag=True, help="Replace an existing file.")
def config_init(location, force):
    """Write a commented example configuration file."""
    location = location.lower()
    config_path = get_config_file_locations()[location]
    if config_path.exists() and not force:
        click.echo(f"Configuration file already exists at {config_path}\nUse --force to overwrite.")
        return

    try:
        created_path = write_example_config(location=location)
    except OSError as e:
        raise click.ClickException(f"Cannot write {config_path}: {e}") from e
    click.echo(f"✓ Created configuration file: {created_path}")


@config.command(name="show")
def config_show():
    """Print the effective configuration as TOML.

    Values from every config file and environment variable are merged, so the
    output can be saved as a project config file.
    """
    cfg = get_config(reload=True)
    click.echo(tomli_w.dumps(cfg.model_dump(mode="json", exclude_none=True)))


@config.command(name="locate")
def config_locate():
    """List the configuration files coursesite reads."""
    locations = get_config_file_locations()
    existing = find_config_files()

    for kind in ("project", "user", "system"):
        path = existing[kind] or locations[kind]
        status = "found" if existing[kind] else "not found"
        click.echo(f"{kind:<8} {path} ({status})")
    click.echo(
        "\nPriority order: environment variables, project, user, system, built-in defaults"
    )


if __name__ == "__main__":
    cli()
