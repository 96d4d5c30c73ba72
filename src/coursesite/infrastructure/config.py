"""Configuration management for coursesite.

This module provides a unified configuration system that supports:
- Configuration files in TOML format
- Environment variables
- Multiple configuration file locations (project, user, system)
- Type-safe configuration using Pydantic

Configuration Priority (highest to lowest):
1. Environment variables
2. Project configuration file (.coursesite/config.toml or coursesite.toml)
3. User configuration file (~/.config/coursesite/config.toml)
4. System configuration file (/etc/coursesite/config.toml)
5. Default values

Environment Variable Naming:
- Nested fields: COURSESITE_<SECTION>__<FIELD> (e.g., COURSESITE_LOGGING__LOG_LEVEL)
- External tools: <TOOL_NAME> (e.g., MARP_EXECUTABLE, TYPST_EXECUTABLE, CARGO)
"""

import logging
import os
from pathlib import Path
from typing import Any

import platformdirs
from pydantic import BaseModel, Field, field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

from coursesite.core.catalog import HOMEWORKS, LECTURES

logger = logging.getLogger(__name__)

APP_NAME = "coursesite"


class LegacyEnvSettingsSource(PydanticBaseSettingsSource):
    """Custom settings source to handle tool environment variables.

    This source handles environment variables that don't follow the
    COURSESITE_ prefix convention, such as MARP_EXECUTABLE or CARGO.
    """

    LEGACY_ENV_VARS = {
        ("external_tools", "marp_executable"): "MARP_EXECUTABLE",
        ("external_tools", "typst_executable"): "TYPST_EXECUTABLE",
        ("external_tools", "cargo_executable"): "CARGO",
    }

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        raise ValueError(f"Field {field_name} not found in legacy environment")

    def __call__(self) -> dict[str, Any]:
        data: dict[str, Any] = {}

        for (section, key), env_var in self.LEGACY_ENV_VARS.items():
            env_value = os.getenv(env_var)
            if env_value:
                data.setdefault(section, {})[key] = env_value

        return data


class PathsConfig(BaseModel):
    """Source and output locations, relative to the project root."""

    lectures_dir: str = Field(
        default="lectures",
        description="Directory containing one subdirectory per lecture",
    )

    homeworks_dir: str = Field(
        default="homeworks",
        description="Directory containing the homework projects",
    )

    output_dir: str = Field(
        default="public",
        description="Root of the generated site artifacts",
    )

    syllabus_source: str = Field(
        default="src/syllabus.typ",
        description="Typst source of the syllabus",
    )

    syllabus_output: str = Field(
        default="syllabus.pdf",
        description="Syllabus PDF, relative to the output directory",
    )

    marp_config: str = Field(
        default="lectures/marp_config.json",
        description="Marp configuration shared by all lecture decks",
    )


class ExternalToolsConfig(BaseModel):
    """External tool paths configuration."""

    marp_executable: str = Field(
        default="marp",
        description="Marp CLI used to render lecture decks",
    )

    typst_executable: str = Field(
        default="typst",
        description="Typst compiler used for the syllabus",
    )

    cargo_executable: str = Field(
        default="cargo",
        description="Cargo executable used to generate homework documentation",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}, got {v}")
        return v_upper


class PipelineConfig(BaseModel):
    """Build pipeline configuration."""

    max_workers: int | None = Field(
        default=None,
        ge=1,
        le=64,
        description="Worker threads per fan-out (default: number of CPUs)",
    )

    dark_theme_directive: str = Field(
        default="class: invert",
        description="Marp directive that selects the dark theme",
    )

    light_theme_directive: str = Field(
        default="# class: invert",
        description="Replacement for the dark directive in the light deck",
    )


class LectureEntry(BaseModel):
    directory: str
    topic: str


class HomeworkEntry(BaseModel):
    path: str
    slug: str


class UnitsConfig(BaseModel):
    """The lecture and homework tables."""

    lectures: list[LectureEntry] = Field(
        default_factory=lambda: [LectureEntry(directory=d, topic=t) for d, t in LECTURES],
        description="Lecture decks as (directory, topic) entries",
    )

    homeworks: list[HomeworkEntry] = Field(
        default_factory=lambda: [HomeworkEntry(path=p, slug=s) for p, s in HOMEWORKS],
        description="Homework projects as (path, slug) entries",
    )

    @field_validator("homeworks")
    @classmethod
    def validate_unique_slugs(cls, v: list[HomeworkEntry]) -> list[HomeworkEntry]:
        """Homework slugs name output directories and must not collide."""
        slugs = [entry.slug for entry in v]
        duplicates = sorted({slug for slug in slugs if slugs.count(slug) > 1})
        if duplicates:
            raise ValueError(f"Duplicate homework slugs: {duplicates}")
        return v


class CoursesiteConfig(BaseSettings):
    """Main coursesite configuration.

    This class manages all configuration for coursesite, loading from
    multiple sources in priority order: environment variables > project
    config > user config > system config > defaults.

    Environment Variables:
        - COURSESITE_PATHS__OUTPUT_DIR: Output directory
        - COURSESITE_LOGGING__LOG_LEVEL: Logging level
        - COURSESITE_PIPELINE__MAX_WORKERS: Worker threads per fan-out
        - MARP_EXECUTABLE, TYPST_EXECUTABLE, CARGO: tool paths (no prefix)
    """

    model_config = SettingsConfigDict(
        env_prefix="COURSESITE_",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    paths: PathsConfig = Field(
        default_factory=PathsConfig,
        description="Source and output locations",
    )

    external_tools: ExternalToolsConfig = Field(
        default_factory=ExternalToolsConfig,
        description="External tool paths",
    )

    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging configuration",
    )

    pipeline: PipelineConfig = Field(
        default_factory=PipelineConfig,
        description="Build pipeline configuration",
    )

    units: UnitsConfig = Field(
        default_factory=UnitsConfig,
        description="Lecture and homework tables",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize the sources and their priority for settings.

        Priority order (highest to lowest):
        1. Environment variables (both COURSESITE_ prefixed and tool variables)
        2. Project configuration file
        3. User configuration file
        4. System configuration file
        5. Init settings (programmatic)
        """
        config_files = find_config_files()

        # pydantic-settings gives sources on the left priority, so the files
        # are collected lowest priority first and reversed below
        toml_sources = []
        for kind in ("system", "user", "project"):
            config_file = config_files[kind]
            if config_file:
                toml_sources.append(TomlConfigSettingsSource(settings_cls, toml_file=config_file))
                logger.debug(f"Loaded {kind} config: {config_file}")

        return (
            env_settings,
            LegacyEnvSettingsSource(settings_cls),
            *reversed(toml_sources),
            init_settings,
        )

    def output_root(self, project_root: Path) -> Path:
        return project_root / self.paths.output_dir


def find_config_files() -> dict[str, Path | None]:
    """Find configuration files in standard locations.

    Returns:
        Dictionary with keys 'system', 'user', 'project', each containing
        a Path to the config file if it exists, or None otherwise.
    """
    config_files: dict[str, Path | None] = {
        "system": None,
        "user": None,
        "project": None,
    }

    system_config = Path("/etc") / APP_NAME / "config.toml"
    if system_config.exists():
        config_files["system"] = system_config

    user_config = Path(platformdirs.user_config_dir(APP_NAME, appauthor=False)) / "config.toml"
    if user_config.exists():
        config_files["user"] = user_config

    # .coursesite/config.toml takes precedence over coursesite.toml
    cwd = Path.cwd()
    for project_config in (cwd / f".{APP_NAME}" / "config.toml", cwd / f"{APP_NAME}.toml"):
        if project_config.exists():
            config_files["project"] = project_config
            break

    return config_files


def get_config_file_locations() -> dict[str, Path]:
    """Get the standard configuration file locations.

    Returns:
        Dictionary with keys 'system', 'user', 'project', each containing
        the Path where the config file should be located (may not exist).
    """
    return {
        "system": Path("/etc") / APP_NAME / "config.toml",
        "user": Path(platformdirs.user_config_dir(APP_NAME, appauthor=False)) / "config.toml",
        "project": Path.cwd() / f".{APP_NAME}" / "config.toml",
    }


_config: CoursesiteConfig | None = None


def get_config(reload: bool = False) -> CoursesiteConfig:
    """Get the global configuration instance.

    Args:
        reload: If True, reload the configuration from files and environment.
    """
    global _config

    if _config is None or reload:
        _config = CoursesiteConfig()

    return _config


def create_example_config() -> str:
    """Create an example configuration file content.

    Returns:
        String containing an example TOML configuration with the available
        options documented.
    """
    return """# coursesite configuration file
#
# Configuration files are loaded from (in priority order):
#   1. .coursesite/config.toml or coursesite.toml (project directory)
#   2. ~/.config/coursesite/config.toml (user directory)
#   3. /etc/coursesite/config.toml (system directory, Linux/Unix only)
#
# Environment variables can override any setting (highest priority).
# Nested settings use double underscores: COURSESITE_<SECTION>__<KEY>
#
# Examples:
#   COURSESITE_PATHS__OUTPUT_DIR=dist
#   COURSESITE_LOGGING__LOG_LEVEL=DEBUG
#   MARP_EXECUTABLE=/usr/local/bin/marp

[paths]
# All paths are relative to the project root
lectures_dir = "lectures"
homeworks_dir = "homeworks"
output_dir = "public"
syllabus_source = "src/syllabus.typ"
# Relative to output_dir
syllabus_output = "syllabus.pdf"
marp_config = "lectures/marp_config.json"

[external_tools]
# Environment variable: MARP_EXECUTABLE (no COURSESITE_ prefix)
marp_executable = "marp"
# Environment variable: TYPST_EXECUTABLE (no COURSESITE_ prefix)
typst_executable = "typst"
# Environment variable: CARGO (no COURSESITE_ prefix)
cargo_executable = "cargo"

[logging]
# Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL
log_level = "INFO"

[pipeline]
# Worker threads per fan-out; defaults to the number of CPUs
# max_workers = 8
dark_theme_directive = "class: invert"
light_theme_directive = "# class: invert"

# The unit tables replace the built-in lists when given.
#
# [[units.lectures]]
# directory = "01_introduction"
# topic = "introduction"
#
# [[units.homeworks]]
# path = "homeworks/week1/primerlab"
# slug = "primerlab"
"""


def write_example_config(location: str = "user") -> Path:
    """Write an example configuration file.

    Args:
        location: Where to write the file ('user' or 'project')

    Returns:
        Path to the created configuration file

    Raises:
        ValueError: If location is invalid
    """
    locations = get_config_file_locations()
    if location not in ("user", "project"):
        raise ValueError(f"Invalid location: {location}. Must be 'user' or 'project'")

    config_path = locations[location]
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(create_example_config(), encoding="utf-8")
    logger.info(f"Created example configuration file: {config_path}")
    return config_path
