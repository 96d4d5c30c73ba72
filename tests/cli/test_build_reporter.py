import io
import json
from pathlib import Path

import pytest
from rich.console import Console

from coursesite.cli.build_data_classes import BuildError, BuildSummary, BuildWarning
from coursesite.cli.build_reporter import BuildReporter
from coursesite.core.build_unit import homework_unit, lecture_unit
from coursesite.core.scheduler import UnitOutcome, UnitStatus
from coursesite.core.site_builder import SiteBuildResult
from coursesite.renderers.typst_compiler import SyllabusBuildError


@pytest.fixture
def result(tmp_path: Path) -> SiteBuildResult:
    intro = lecture_unit(tmp_path / "lectures", tmp_path / "public", "01_intro", "intro")
    types = lecture_unit(tmp_path / "lectures", tmp_path / "public", "02_types", "types")
    lab = homework_unit(tmp_path, tmp_path / "public", "homeworks/lab", "lab")
    return SiteBuildResult(
        lectures=[
            UnitOutcome(intro, UnitStatus.BUILT),
            UnitOutcome(types, UnitStatus.FAILED, ["Failed to render types-dark.pdf"]),
        ],
        homeworks=[
            UnitOutcome(lab, UnitStatus.BUILT, ["Documentation generation failed: cargo"]),
        ],
        syllabus_status=UnitStatus.UP_TO_DATE,
    )


def make_reporter(output_mode: str = "default") -> tuple[BuildReporter, io.StringIO]:
    stream = io.StringIO()
    console = Console(file=stream, width=200, color_system=None)
    return BuildReporter(output_mode=output_mode, console=console), stream


class TestBuildSummary:
    def test_from_result(self, result):
        summary = BuildSummary.from_result(result, 1.5)

        assert summary.counts == {"built": 2, "up to date": 0, "skipped": 0, "failed": 1}
        assert summary.total_units == 3
        assert summary.syllabus_status == "up to date"
        assert not summary.has_errors()
        assert [str(w) for w in summary.warnings] == [
            "[lecture:types] Failed to render types-dark.pdf",
            "[homework:lab] Documentation generation failed: cargo",
        ]

    def test_failed_units_have_high_severity(self, result):
        summary = BuildSummary.from_result(result, 1.5)

        assert [w.severity for w in summary.warnings] == ["high", "medium"]

    def test_syllabus_error_is_a_build_error(self, result):
        result.syllabus_status = UnitStatus.FAILED
        result.syllabus_error = SyllabusBuildError("typst exited with code 1")

        summary = BuildSummary.from_result(result, 0.2)

        assert summary.has_errors()
        assert str(summary.errors[0]) == "[Fatal] syllabus: typst exited with code 1"

    def test_str(self, result):
        text = str(BuildSummary.from_result(result, 2.0))

        assert text.startswith("✓ Build completed successfully in 2.0s")
        assert "  1 failed" in text
        assert "Warnings:" in text

    def test_warning_json(self):
        warning = BuildWarning(slug="lab", category="homework", message="oops")

        assert json.loads(warning.to_json()) == {
            "slug": "lab",
            "category": "homework",
            "message": "oops",
            "severity": "medium",
        }

    def test_build_error_str(self):
        assert str(BuildError(category="syllabus", message="boom")) == "[Fatal] syllabus: boom"


class TestBuildReporter:
    def test_default_output(self, result):
        reporter, stream = make_reporter()

        reporter.report(result, 3.0)

        output = stream.getvalue()
        assert "✓ Build completed successfully in 3.0s" in output
        assert "2 built" in output
        assert "syllabus: up to date" in output
        assert "[lecture:types] Failed to render types-dark.pdf" in output
        assert "[homework:lab] Documentation generation failed" in output

    def test_outcome_table_lists_changed_units(self, result):
        reporter, stream = make_reporter()

        reporter.show_outcomes(result.outcomes)

        output = stream.getvalue()
        assert "intro" in output
        assert "failed" in output

    def test_up_to_date_units_print_no_table(self, tmp_path):
        unit = lecture_unit(tmp_path, tmp_path / "public", "01_intro", "intro")
        reporter, stream = make_reporter()

        reporter.show_outcomes([UnitOutcome(unit, UnitStatus.UP_TO_DATE)])

        assert stream.getvalue() == ""

    def test_errors_are_shown(self, result):
        result.syllabus_error = SyllabusBuildError("typst exited with code 1")
        reporter, stream = make_reporter()

        summary = reporter.report(result, 1.0)

        assert summary.has_errors()
        assert "✗ Build completed with errors" in stream.getvalue()
        assert "[Fatal] syllabus: typst exited with code 1" in stream.getvalue()

    def test_quiet_mode_shows_only_problems(self, result):
        reporter, stream = make_reporter("quiet")

        reporter.report(result, 1.0)

        output = stream.getvalue()
        assert "Build completed" not in output
        assert "[lecture:types]" in output

    def test_json_mode_prints_to_stdout(self, result, capsys):
        reporter, stream = make_reporter("json")

        reporter.report(result, 1.0)

        data = json.loads(capsys.readouterr().out)
        assert data["counts"]["failed"] == 1
        assert data["warnings"][0]["slug"] == "types"
        assert stream.getvalue() == ""

    def test_build_start_only_in_default_mode(self):
        reporter, stream = make_reporter("quiet")
        reporter.show_build_start("/course", 25)
        assert stream.getvalue() == ""

        reporter, stream = make_reporter()
        reporter.show_build_start("/course", 25)
        assert "25 units" in stream.getvalue()

    def test_summaries_are_kept(self, result):
        reporter, _ = make_reporter()

        reporter.report(result, 1.0)
        reporter.report(result, 2.0)

        assert [s.duration for s in reporter.summaries] == [1.0, 2.0]
