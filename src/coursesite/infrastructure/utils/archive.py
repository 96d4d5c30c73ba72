"""ZIP packaging of homework source trees.

The archive presents the packaged directory under a chosen top-level name,
independent of where the source lives on disk. Build scratch directories
(`target`) and hidden entries are left out at every depth.
"""

import logging
import zipfile
from pathlib import Path

from attrs import frozen

from coursesite.infrastructure.utils.path_utils import sorted_entries

logger = logging.getLogger(__name__)

# Fixed entry metadata so that identical trees produce identical archives
_ENTRY_DATE_TIME = (1980, 1, 1, 0, 0, 0)
_FILE_ATTRS = 0o100644 << 16
_DIR_ATTRS = (0o040755 << 16) | 0x10  # 0x10: MS-DOS directory flag


@frozen
class ArchiveJob:
    """A request to package `root_dir` into `archive_path`.

    Attributes:
        root_dir: Directory to walk
        archive_path: Where the ZIP file is written
        root_name: Name of the top-level directory inside the archive
    """

    root_dir: Path
    archive_path: Path
    root_name: str


def pack(job: ArchiveJob) -> Path:
    """Create the archive described by `job`.

    Directories get explicit entries, files are stored deflated. Entries are
    written in sorted order.

    Returns:
        Path to the created archive

    Raises:
        OSError: If a source entry cannot be read or the archive cannot be
            written. The partially written archive is removed.
    """
    if not job.root_dir.is_dir():
        raise NotADirectoryError(f"Not a directory: {job.root_dir}")

    job.archive_path.parent.mkdir(parents=True, exist_ok=True)
    try:
        with zipfile.ZipFile(job.archive_path, mode="w", compression=zipfile.ZIP_DEFLATED) as zf:
            _add_dir_to_zip(zf, job.root_dir, job.root_name)
    except OSError:
        job.archive_path.unlink(missing_ok=True)
        raise

    logger.info(f"Created archive: {job.archive_path}")
    return job.archive_path


def _add_dir_to_zip(zf: zipfile.ZipFile, directory: Path, prefix: str) -> None:
    for entry in sorted_entries(directory):
        # Archive names always use forward slashes, whatever the host platform
        arcname = f"{prefix}/{entry.name}"
        path = Path(entry.path)
        if entry.is_dir():
            zf.writestr(_dir_info(arcname), b"")
            _add_dir_to_zip(zf, path, arcname)
        else:
            zf.writestr(_file_info(arcname), path.read_bytes())


def _file_info(arcname: str) -> zipfile.ZipInfo:
    info = zipfile.ZipInfo(arcname, date_time=_ENTRY_DATE_TIME)
    info.compress_type = zipfile.ZIP_DEFLATED
    info.external_attr = _FILE_ATTRS
    return info


def _dir_info(arcname: str) -> zipfile.ZipInfo:
    info = zipfile.ZipInfo(f"{arcname}/", date_time=_ENTRY_DATE_TIME)
    info.compress_type = zipfile.ZIP_STORED
    info.external_attr = _DIR_ATTRS
    return info
