from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING

from attrs import field, frozen

if TYPE_CHECKING:
    from coursesite.infrastructure.config import CoursesiteConfig


LECTURES_OUTPUT_SUBDIR = "lectures"
HOMEWORKS_OUTPUT_SUBDIR = "hw"
DOCS_STAMP_SUFFIX = ".docs.stamp"


class UnitKind(StrEnum):
    LECTURE = "lecture"
    HOMEWORK = "homework"


@frozen
class BuildUnit:
    """A statically declared unit of work.

    Attributes:
        kind: Lecture deck or homework package
        slug: Short identifier that names all derived outputs
        source_path: The authoritative source (a file or a directory)
        output_dir: Directory owned by this unit alone
        outputs: Artifacts that must exist and be fresh for the unit to be
            up to date
    """

    kind: UnitKind
    slug: str
    source_path: Path
    output_dir: Path
    outputs: tuple[Path, ...] = field(converter=tuple, default=())

    @property
    def source_dir(self) -> Path:
        """The directory external tools should run in."""
        return self.source_path if self.kind == UnitKind.HOMEWORK else self.source_path.parent

    def output(self, name: str) -> Path:
        return self.output_dir / name


def lecture_unit(lectures_dir: Path, output_root: Path, directory: str, topic: str) -> BuildUnit:
    """Create the unit for the deck `lectures/<directory>/<topic>.md`.

    Its outputs are the dark and the light rendering of the deck, placed in an
    output directory mirroring the lecture directory.
    """
    output_dir = output_root / LECTURES_OUTPUT_SUBDIR / directory
    return BuildUnit(
        kind=UnitKind.LECTURE,
        slug=topic,
        source_path=lectures_dir / directory / f"{topic}.md",
        output_dir=output_dir,
        outputs=(output_dir / f"{topic}-dark.pdf", output_dir / f"{topic}-light.pdf"),
    )


def homework_unit(project_root: Path, output_root: Path, path: str, slug: str) -> BuildUnit:
    """Create the unit for the homework project at `path`.

    Its outputs are the handout archive and the stamp written after the
    documentation was generated.
    """
    output_dir = output_root / HOMEWORKS_OUTPUT_SUBDIR / slug
    return BuildUnit(
        kind=UnitKind.HOMEWORK,
        slug=slug,
        source_path=project_root / path,
        output_dir=output_dir,
        outputs=(output_dir / f"{slug}.zip", output_dir / f"{slug}{DOCS_STAMP_SUFFIX}"),
    )


def archive_path(unit: BuildUnit) -> Path:
    return unit.output(f"{unit.slug}.zip")


def docs_stamp_path(unit: BuildUnit) -> Path:
    return unit.output(f"{unit.slug}{DOCS_STAMP_SUFFIX}")


def lecture_units(config: "CoursesiteConfig", project_root: Path) -> list[BuildUnit]:
    lectures_dir = project_root / config.paths.lectures_dir
    output_root = config.output_root(project_root)
    return [
        lecture_unit(lectures_dir, output_root, entry.directory, entry.topic)
        for entry in config.units.lectures
    ]


def homework_units(config: "CoursesiteConfig", project_root: Path) -> list[BuildUnit]:
    output_root = config.output_root(project_root)
    return [
        homework_unit(project_root, output_root, entry.path, entry.slug)
        for entry in config.units.homeworks
    ]
