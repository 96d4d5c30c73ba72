"""Data classes for build reporting.

This module defines the data structures used for summarizing a site build:
per-unit warnings, the fatal syllabus error, and the counts per status.
"""

import json
from dataclasses import asdict, dataclass, field
from typing import Literal

from coursesite.core.scheduler import UnitOutcome, UnitStatus
from coursesite.core.site_builder import SiteBuildResult


@dataclass
class BuildWarning:
    """Represents a build warning for one unit.

    Attributes:
        slug: Identifier of the unit (topic or homework slug)
        category: Kind of unit the warning belongs to (lecture, homework)
        message: Warning message
        severity: Warning priority level
    """

    slug: str
    category: str
    message: str
    severity: Literal["high", "medium", "low"] = "medium"

    def __str__(self) -> str:
        return f"[{self.category}:{self.slug}] {self.message}"

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_outcome(cls, outcome: UnitOutcome) -> list["BuildWarning"]:
        severity: Literal["high", "medium", "low"] = (
            "high" if outcome.status == UnitStatus.FAILED else "medium"
        )
        return [
            cls(
                slug=outcome.slug,
                category=outcome.unit.kind.value,
                message=message,
                severity=severity,
            )
            for message in outcome.warnings
        ]


@dataclass
class BuildError:
    """A fatal build error. Only the syllabus can produce one."""

    category: str
    message: str

    def __str__(self) -> str:
        return f"[Fatal] {self.category}: {self.message}"


@dataclass
class BuildSummary:
    """Summary of a build execution.

    Attributes:
        duration: Build duration in seconds
        counts: Number of units per status
        warnings: Warnings collected from all units
        errors: Fatal errors
        syllabus_status: What happened to the syllabus
    """

    duration: float
    counts: dict[str, int] = field(default_factory=dict)
    warnings: list[BuildWarning] = field(default_factory=list)
    errors: list[BuildError] = field(default_factory=list)
    syllabus_status: str | None = None

    @classmethod
    def from_result(cls, result: SiteBuildResult, duration: float) -> "BuildSummary":
        warnings = [w for outcome in result.outcomes for w in BuildWarning.from_outcome(outcome)]
        errors = []
        if result.syllabus_error is not None:
            errors.append(BuildError(category="syllabus", message=str(result.syllabus_error)))
        return cls(
            duration=duration,
            counts={status.value: result.count(status) for status in UnitStatus},
            warnings=warnings,
            errors=errors,
            syllabus_status=result.syllabus_status.value if result.syllabus_status else None,
        )

    @property
    def total_units(self) -> int:
        return sum(self.counts.values())

    def has_errors(self) -> bool:
        return bool(self.errors)

    def __str__(self) -> str:
        status = "✗" if self.has_errors() else "✓"
        status_text = "with errors" if self.has_errors() else "successfully"

        parts = [f"{status} Build completed {status_text} in {self.duration:.1f}s"]
        parts.append("")
        parts.append("Summary:")
        for name, count in self.counts.items():
            parts.append(f"  {count} {name}")
        if self.syllabus_status:
            parts.append(f"  syllabus: {self.syllabus_status}")
        parts.append(f"  {len(self.warnings)} warnings")

        if self.errors:
            parts.append("")
            parts.append("Errors:")
            for error in self.errors:
                parts.append(f"  {error}")

        if self.warnings:
            parts.append("")
            parts.append("Warnings:")
            for warning in self.warnings:
                parts.append(f"  {warning}")

        return "\n".join(parts)
