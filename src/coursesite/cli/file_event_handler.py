import asyncio
import logging
import re
from pathlib import Path

from watchdog.events import PatternMatchingEventHandler

from coursesite.core.site_builder import SiteBuilder, SiteBuildResult
from coursesite.infrastructure.utils.path_utils import is_ignored_path

logger = logging.getLogger(__name__)

# Editor lock files, and the files the build itself writes into the sources:
# light-theme copies of decks and the lockfiles cargo creates
IGNORED_FILE_REGEX = re.compile(r"(\.~.*|.*-light-temp\.md|Cargo\.lock)$")


def is_ignored_file(path: Path) -> bool:
    return re.match(IGNORED_FILE_REGEX, path.name) is not None


class FileEventHandler(PatternMatchingEventHandler):
    """Rebuilds the site when a watched source changes.

    Events arrive on the observer thread and are handed to the event loop,
    where bursts of events are collapsed into a single rebuild. At most one
    build runs at a time; changes made while it runs queue exactly one more.
    """

    def __init__(
        self,
        builder: SiteBuilder,
        loop: asyncio.AbstractEventLoop,
        debounce_delay: float = 0.3,
        on_rebuilt=None,
        *args,
        **kwargs,
    ):
        super().__init__(*args, **kwargs)
        self.builder = builder
        self.loop = loop
        self.on_rebuilt = on_rebuilt
        self.error_count = 0
        self.max_errors = 10
        self.debounce_delay = debounce_delay
        self.rebuild_count = 0
        self._pending_task: asyncio.Task | None = None
        self._build_lock = asyncio.Lock()
        self._roots = builder.watch_roots()

    def should_ignore(self, path: Path) -> bool:
        return is_ignored_file(path) or is_ignored_path(path, self._roots)

    def on_any_event(self, event):
        # Directory events only echo changes to their entries
        if event.is_directory:
            return
        if event.event_type not in ("created", "modified", "deleted", "moved"):
            return
        src_path = Path(event.src_path)
        if self.should_ignore(src_path):
            return
        logger.info(f"⟳ {event.event_type.capitalize()}: {src_path.name}")
        self.loop.call_soon_threadsafe(self.schedule_rebuild, src_path)

    def schedule_rebuild(self, path: Path):
        """Schedule a debounced rebuild, replacing a pending one.

        A rebuild stays pending until it holds the build lock, so a build
        that is already running is never cancelled. Must be called from the
        event loop thread.
        """
        if self._pending_task is not None and not self._pending_task.done():
            self._pending_task.cancel()
            logger.debug(f"Cancelled pending rebuild, triggered again by {path}")

        async def debounced_rebuild():
            try:
                await asyncio.sleep(self.debounce_delay)
                await self.handle_rebuild()
            except asyncio.CancelledError:
                logger.debug("Debounced rebuild cancelled")
                raise

        self._pending_task = self.loop.create_task(debounced_rebuild())

    async def rebuild(self) -> SiteBuildResult:
        result = await asyncio.to_thread(self.builder.build, False)
        self.rebuild_count += 1
        if result.syllabus_error is not None:
            logger.error(f"Syllabus build failed: {result.syllabus_error}")
        if self.on_rebuilt is not None:
            self.on_rebuilt(result)
        return result

    async def handle_rebuild(self):
        """Run a rebuild with error tracking, after any running build finished.

        Raises:
            Exception: Re-raises after max_errors threshold is reached
        """
        async with self._build_lock:
            if self._pending_task is asyncio.current_task():
                self._pending_task = None
            try:
                await self.rebuild()
            except Exception as e:
                self.error_count += 1
                logger.error(
                    f"Error during rebuild ({self.error_count}/{self.max_errors}): {e}",
                    exc_info=True,
                )

                if self.error_count >= self.max_errors:
                    logger.error(f"Too many errors in watch mode ({self.error_count}), stopping")
                    raise
