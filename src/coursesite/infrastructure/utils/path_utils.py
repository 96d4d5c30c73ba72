import logging
import os
from collections.abc import Iterable, Iterator
from pathlib import Path

logger = logging.getLogger(__name__)

BUILD_SCRATCH_DIR = "target"
HIDDEN_FILE_MARKER = "."


def is_excluded_name(name: str) -> bool:
    """Return True if an entry with this name must never be packaged or watched.

    The rule applies to files and directories alike: an excluded directory is
    pruned together with everything below it.

    >>> is_excluded_name("target")
    True
    >>> is_excluded_name(".git")
    True
    >>> is_excluded_name("targets")
    False
    >>> is_excluded_name("src")
    False
    """
    return name == BUILD_SCRATCH_DIR or name.startswith(HIDDEN_FILE_MARKER)


def sorted_entries(directory: Path) -> list[os.DirEntry]:
    """List the non-excluded entries of a directory, sorted by name."""
    with os.scandir(directory) as it:
        entries = [entry for entry in it if not is_excluded_name(entry.name)]
    return sorted(entries, key=lambda entry: entry.name)


def log_walk_error(error: OSError) -> None:
    logger.warning(f"Skipping unreadable directory {error.filename}: {error.strerror}")


def raise_walk_error(error: OSError) -> None:
    raise error


def iter_included_files(root: Path, onerror=log_walk_error) -> Iterator[Path]:
    """Yield every file below `root` that is not hidden by an excluded entry.

    Unreadable directories are passed to `onerror`, which by default logs
    and skips them.
    """
    for dirpath, dirnames, filenames in os.walk(root, onerror=onerror):
        # Pruning in place keeps os.walk out of excluded directories
        dirnames[:] = sorted(d for d in dirnames if not is_excluded_name(d))
        for filename in sorted(filenames):
            if not is_excluded_name(filename):
                yield Path(dirpath) / filename


def iter_included_paths(root: Path, onerror=log_walk_error) -> Iterator[Path]:
    """Like `iter_included_files`, but also yields the directories."""
    for dirpath, dirnames, filenames in os.walk(root, onerror=onerror):
        dirnames[:] = sorted(d for d in dirnames if not is_excluded_name(d))
        for dirname in dirnames:
            yield Path(dirpath) / dirname
        for filename in sorted(filenames):
            if not is_excluded_name(filename):
                yield Path(dirpath) / filename


def collect_watch_paths(roots: Iterable[Path]) -> list[Path]:
    """Collect the source files whose change should trigger a rebuild.

    Roots that are files are returned as they are; missing roots are ignored.
    """
    paths: list[Path] = []
    for root in roots:
        if root.is_file():
            paths.append(root)
        elif root.is_dir():
            paths.extend(iter_included_files(root))
        else:
            logger.debug(f"Watch root does not exist: {root}")
    return paths


def is_ignored_path(path: Path, roots: Iterable[Path] = ()) -> bool:
    """Check whether `path` lies in an excluded entry.

    Only the components below the matching root count. A path outside every
    root, such as a file next to a watched file root, is judged by its name.
    """
    parts: tuple[str, ...] = (path.name,)
    for root in roots:
        try:
            parts = path.relative_to(root).parts
            break
        except ValueError:
            continue
    return any(is_excluded_name(part) for part in parts)


def ensure_dir(path: Path) -> Path:
    """Create a directory (and its parents), ignoring that it already exists."""
    path.mkdir(parents=True, exist_ok=True)
    return path
