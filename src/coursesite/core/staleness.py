"""Decide whether a source artifact has to be regenerated.

A source is up to date only if every expected output exists and is at least
as new as the source. Whenever the answer is uncertain (the source cannot be
read, an output is missing or cannot be stat'ed) the source is reported as
stale, so a rebuild is the safe default.

Directory sources, such as homework projects, are dated by their newest
included entry. Entries that are never packaged (`target/`, dot-files) do not
count, so building a project in place does not make its handout stale.
"""

import logging
import os
from collections.abc import Iterable
from pathlib import Path

from coursesite.infrastructure.utils.path_utils import iter_included_paths, raise_walk_error

logger = logging.getLogger(__name__)


def source_mtime(path: Path) -> float:
    """Return the modification time that represents `path` as a source.

    Raises:
        OSError: If `path` (or an entry below it) cannot be stat'ed.
    """
    mtime = path.stat().st_mtime
    if path.is_dir():
        for entry in iter_included_paths(path, onerror=raise_walk_error):
            mtime = max(mtime, entry.stat().st_mtime)
    return mtime


def is_stale(source_path: Path, outputs: Iterable[Path]) -> bool:
    """Return True if `source_path` must be rebuilt to produce `outputs`.

    Args:
        source_path: The authoritative source, a file or a directory. It does
            not have to exist.
        outputs: The artifacts derived from the source.

    Returns:
        True if the source is unreadable, if any output is missing or
        unreadable, or if any output is strictly older than the source;
        False otherwise.
    """
    try:
        src_mtime = source_mtime(source_path)
    except OSError as e:
        logger.debug(f"Cannot read source {source_path}: {e}")
        return True

    for output in outputs:
        try:
            out_mtime = os.stat(output).st_mtime
        except OSError:
            logger.debug(f"Output {output} is missing or unreadable")
            return True
        if out_mtime < src_mtime:
            logger.debug(f"Output {output} is older than {source_path}")
            return True
    return False
