"""Pytest configuration and fixtures.

Logging Configuration:
---------------------
Tests with the 'integration' marker automatically get live logging enabled.

To enable logging for any test:
1. Use the marker: @pytest.mark.integration
2. Explicitly use the fixture: def test_something(configure_test_logging): ...
3. Set environment variable: COURSESITE_ENABLE_TEST_LOGGING=1
4. Use pytest option: pytest --log-cli

Environment variables:
- COURSESITE_TEST_LOG_LEVEL: Set log level (DEBUG, INFO, WARNING, ERROR) - default: INFO
- COURSESITE_ENABLE_TEST_LOGGING: Enable logging for all tests (set to any value)
"""

import logging
import os
import shutil
from pathlib import Path

import pytest

from coursesite.infrastructure.config import (
    CoursesiteConfig,
    HomeworkEntry,
    LectureEntry,
    UnitsConfig,
)
from tests.fixtures.fake_tools import FakeProcessRunner

# ====================================================================
# Tool Availability Detection
# ====================================================================

_TOOL_EXECUTABLES = {
    "marp": ("MARP_EXECUTABLE", "marp"),
    "typst": ("TYPST_EXECUTABLE", "typst"),
    "cargo": ("CARGO", "cargo"),
}

_TOOL_AVAILABILITY: dict[str, bool] | None = None


def _is_tool_available(env_var: str, default: str) -> bool:
    executable = os.environ.get(env_var) or default
    return shutil.which(executable) is not None


def get_tool_availability() -> dict[str, bool]:
    """Get cached tool availability status."""
    global _TOOL_AVAILABILITY

    if _TOOL_AVAILABILITY is None:
        _TOOL_AVAILABILITY = {
            tool: _is_tool_available(env_var, default)
            for tool, (env_var, default) in _TOOL_EXECUTABLES.items()
        }
    return _TOOL_AVAILABILITY


def pytest_configure(config):
    """Configure pytest and set default log levels.

    By default, suppress application logs during tests unless explicitly enabled.
    """
    if os.environ.get("COURSESITE_ENABLE_TEST_LOGGING"):
        config.option.log_cli = True
        config.option.log_cli_level = os.environ.get("COURSESITE_TEST_LOG_LEVEL", "INFO")
        config.option.log_cli_format = "[%(asctime)s] %(levelname)-8s %(name)s - %(message)s"
        config.option.log_cli_date_format = "%H:%M:%S"
    else:
        config.option.log_cli = False

    # Set the application logger to WARNING to suppress INFO logs during tests
    logging.getLogger("coursesite").setLevel(logging.WARNING)


def pytest_collection_modifyitems(config, items):
    """Auto-skip tests based on tool availability."""
    tool_status = get_tool_availability()

    for item in items:
        markers = [marker.name for marker in item.iter_markers()]
        for tool in _TOOL_EXECUTABLES:
            if f"requires_{tool}" in markers and not tool_status[tool]:
                item.add_marker(pytest.mark.skip(reason=f"{tool} not available on PATH"))


@pytest.fixture(scope="function")
def configure_test_logging(request):
    """Configure logging for individual tests.

    This fixture can be used explicitly in tests that need logging,
    and is automatically applied to tests with the integration marker.
    """
    log_level_name = os.environ.get("COURSESITE_TEST_LOG_LEVEL", "INFO").upper()
    log_level = getattr(logging, log_level_name, logging.INFO)

    request.config.option.log_cli = True
    request.config.option.log_cli_level = log_level_name
    if not request.config.option.log_cli_format:
        request.config.option.log_cli_format = (
            "[%(asctime)s] %(levelname)-8s %(name)s - %(message)s"
        )
    if not request.config.option.log_cli_date_format:
        request.config.option.log_cli_date_format = "%H:%M:%S"

    app_logger = logging.getLogger("coursesite")
    original_level = app_logger.level
    app_logger.setLevel(log_level)

    yield

    app_logger.setLevel(original_level)
    if not os.environ.get("COURSESITE_ENABLE_TEST_LOGGING"):
        request.config.option.log_cli = False


@pytest.fixture(scope="function", autouse=True)
def auto_configure_logging_for_marked_tests(request):
    """Automatically configure logging for integration tests."""
    markers = [marker.name for marker in request.node.iter_markers()]
    if "integration" in markers:
        request.getfixturevalue("configure_test_logging")


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep configuration from the developer's environment out of the tests."""
    for name in list(os.environ):
        if name.upper().startswith("COURSESITE_") and "TEST_LOG" not in name.upper():
            monkeypatch.delenv(name, raising=False)
    for env_var, _ in _TOOL_EXECUTABLES.values():
        monkeypatch.delenv(env_var, raising=False)


# ====================================================================
# Course project fixtures
# ====================================================================

LECTURE_DECK = """---
marp: true
class: invert
---

# {title}

Some slides about {title}.
"""

CARGO_MANIFEST = """[package]
name = "{name}"
version = "0.1.0"
edition = "2021"
"""


def write_lecture(lectures_dir: Path, directory: str, topic: str) -> Path:
    deck = lectures_dir / directory / f"{topic}.md"
    deck.parent.mkdir(parents=True, exist_ok=True)
    deck.write_text(LECTURE_DECK.format(title=topic), encoding="utf-8")
    return deck


def write_homework(homework_dir: Path) -> Path:
    (homework_dir / "src").mkdir(parents=True, exist_ok=True)
    (homework_dir / "Cargo.toml").write_text(
        CARGO_MANIFEST.format(name=homework_dir.name), encoding="utf-8"
    )
    (homework_dir / "src" / "lib.rs").write_text("pub fn answer() -> u32 { 42 }\n")
    # Entries that never end up in a handout
    (homework_dir / "target" / "debug").mkdir(parents=True, exist_ok=True)
    (homework_dir / "target" / "debug" / "libjunk.rlib").write_bytes(b"\x00" * 16)
    (homework_dir / ".gitignore").write_text("target\n")
    return homework_dir


@pytest.fixture
def course_project(tmp_path: Path) -> Path:
    """A small course: two lectures, two homeworks and a syllabus."""
    root = tmp_path / "course"
    lectures_dir = root / "lectures"
    write_lecture(lectures_dir, "01_intro", "intro")
    write_lecture(lectures_dir, "02_types", "types")
    (lectures_dir / "marp_config.json").write_text('{"allowLocalFiles": true}\n')

    write_homework(root / "homeworks" / "week1" / "primerlab")
    write_homework(root / "homeworks" / "week2" / "typeslab")

    (root / "src").mkdir(parents=True)
    (root / "src" / "syllabus.typ").write_text("= Syllabus\n")
    return root.resolve()


@pytest.fixture
def course_units() -> UnitsConfig:
    return UnitsConfig(
        lectures=[
            LectureEntry(directory="01_intro", topic="intro"),
            LectureEntry(directory="02_types", topic="types"),
        ],
        homeworks=[
            HomeworkEntry(path="homeworks/week1/primerlab", slug="primerlab"),
            HomeworkEntry(path="homeworks/week2/typeslab", slug="typeslab"),
        ],
    )


@pytest.fixture
def course_config(course_units: UnitsConfig) -> CoursesiteConfig:
    return CoursesiteConfig(units=course_units)


@pytest.fixture
def fake_runner() -> FakeProcessRunner:
    return FakeProcessRunner()


@pytest.fixture
def unreadable_dirs(monkeypatch) -> set[str]:
    """Directories (added as strings) whose listing fails with PermissionError.

    Works regardless of the user running the tests, unlike chmod.
    """
    blocked: set[str] = set()
    real_scandir = os.scandir

    def scandir(path="."):
        if isinstance(path, (str, os.PathLike)) and os.fspath(path) in blocked:
            raise PermissionError(13, "Permission denied", os.fspath(path))
        return real_scandir(path)

    monkeypatch.setattr(os, "scandir", scandir)
    return blocked
