"""Tests for report formatting"""

from xcode_diag_mcp_server import config
from xcode_diag_mcp_server.models import (
    BuildError,
    BuildWarning,
    CodeCoverage,
    FailedTest,
    LinkerError,
    assemble_build_result,
)
from xcode_diag_mcp_server.utils.formatting import (
    build_headline,
    format_build_result,
    format_location,
    format_test_result,
    partition_warnings,
    pluralize,
)
from xcode_diag_mcp_server.utils import formatting


class TestHelpers:

    def test_pluralize(self):
        assert pluralize(1, "error") == "1 error"
        assert pluralize(2, "error") == "2 errors"
        assert pluralize(0, "warning") == "0 warnings"

    def test_format_location(self):
        assert format_location("a.swift", 3, 4) == "a.swift:3:4 — "
        assert format_location("a.swift", 3, None) == "a.swift:3 — "
        assert format_location("a.swift", None, None) == "a.swift — "
        assert format_location(None, 3, 4) == ""

    def test_partition_warnings(self):
        warnings = [
            BuildWarning("local", "/proj/A.swift", 1),
            BuildWarning("dependency", "/proj-other/Pods/B.swift", 2),
            BuildWarning("unlocated"),
        ]
        local, external = partition_warnings(warnings, "/proj")
        assert [w.message for w in local] == ["local", "unlocated"]
        assert external == 1


class TestHeadlines:

    def test_build_succeeded_plain(self):
        assert build_headline(assemble_build_result()) == "Build succeeded"

    def test_build_failed_with_counts(self):
        result = assemble_build_result(
            errors=[BuildError("a"), BuildError("b")],
            warnings=[BuildWarning("w")],
            linker_errors=[LinkerError(symbol="_x")],
            build_time="12.4s",
        )
        assert build_headline(result) == "Build failed (2 errors, 1 linker error, 1 warning, 12.4s)"

    def test_tests_failed(self):
        result = assemble_build_result(
            failed_tests=[FailedTest("A.b", "x"), FailedTest("A.c", "y")],
            passed_tests=40,
            test_time="3.200s",
        )
        assert formatting.test_headline(result) == "Tests failed (2 failed, 40 passed, 3.200s)"

    def test_tests_passed(self):
        result = assemble_build_result(passed_tests=5, test_time="0.100s")
        assert formatting.test_headline(result) == "Tests passed (5 passed, 0.100s)"

    def test_nothing_ran(self):
        assert formatting.test_headline(assemble_build_result()) == "Test run completed"


class TestFormatBuildResult:

    def test_sections(self):
        result = assemble_build_result(
            errors=[BuildError("cannot convert 'Int' to 'String'", "Sources/Foo.swift", 42, 10),
                    BuildError("no such module 'Bar'")],
            linker_errors=[LinkerError(symbol="_foo", architecture="arm64", referenced_from="main.o")],
            warnings=[BuildWarning("unused variable", "Sources/Foo.swift", 3)],
        )
        assert format_build_result(result) == "\n".join([
            "Build failed (2 errors, 1 linker error, 1 warning)",
            "",
            "Errors:",
            "  Sources/Foo.swift:42:10 — cannot convert 'Int' to 'String'",
            "  no such module 'Bar'",
            "",
            "Linker errors:",
            "  Undefined symbol '_foo' (arm64) referenced from main.o",
            "",
            "Warnings:",
            "  Sources/Foo.swift:3 — unused variable",
        ])

    def test_duplicate_and_message_linker_errors(self):
        result = assemble_build_result(linker_errors=[
            LinkerError(symbol="_dup", architecture="arm64", conflicting_files=("a.o", "b.o")),
            LinkerError(message="framework not found Alamofire"),
        ])
        text = format_build_result(result)
        assert "  Undefined symbol '_dup' (arm64) — duplicate in: a.o, b.o" in text
        assert "  framework not found Alamofire" in text

    def test_long_sections_truncated(self):
        result = assemble_build_result(errors=[BuildError(f"error {i}") for i in range(30)])
        text = format_build_result(result)
        assert "  error 24" in text
        assert "  error 25" not in text
        assert "(+5 more errors not shown)" in text

    def test_warnings_disabled_by_parameter(self):
        result = assemble_build_result(warnings=[BuildWarning("unused")])
        text = format_build_result(result, include_warnings=False)
        assert "Warnings:" not in text
        assert text == "Build succeeded (1 warning)"

    def test_forced_setting_beats_parameter(self):
        config.set_build_warnings_enabled(False, forced=True)
        result = assemble_build_result(warnings=[BuildWarning("unused")])
        assert "Warnings:" not in format_build_result(result, include_warnings=True)

    def test_project_root_success_lists_no_warnings(self):
        result = assemble_build_result(warnings=[BuildWarning("unused", "/proj/A.swift", 1)])
        assert "Warnings:" not in format_build_result(result, project_root="/proj")

    def test_project_root_failure_hides_dependency_warnings(self):
        result = assemble_build_result(
            errors=[BuildError("bad", "/proj/A.swift", 2)],
            warnings=[
                BuildWarning("mine", "/proj/A.swift", 1),
                BuildWarning("theirs", "/deps/Lib/B.swift", 1),
                BuildWarning("theirs too", "/deps/Lib/C.swift", 1),
            ],
        )
        text = format_build_result(result, project_root="/proj")
        assert "  /proj/A.swift:1 — mine" in text
        assert "theirs" not in text
        assert "(+2 warnings from dependencies hidden)" in text


class TestFormatTestResult:

    def test_failures_coverage_and_output(self):
        result = assemble_build_result(
            failed_tests=[
                FailedTest("MyTests.testLogin", "Expected true, got false", "MyTests.swift", 55),
                FailedTest("MyTests.testLogout", "Timed out"),
            ],
            passed_tests=40,
            test_time="3.200s",
            coverage=CodeCoverage(85.54),
            test_output="hello from the test\n",
        )
        assert format_test_result(result) == "\n".join([
            "Tests failed (2 failed, 40 passed, 3.200s)",
            "",
            "Failures:",
            "  MyTests.testLogin — Expected true, got false (MyTests.swift:55)",
            "  MyTests.testLogout — Timed out",
            "",
            "Coverage: 85.5%",
            "",
            "Test output:",
            "hello from the test",
        ])

    def test_build_errors_in_test_report(self):
        result = assemble_build_result(errors=[BuildError("cannot find 'x' in scope", "T.swift", 1, 2)])
        text = format_test_result(result)
        assert text.startswith("Test run completed")
        assert "Errors:\n  T.swift:1:2 — cannot find 'x' in scope" in text

    def test_file_without_line(self):
        result = assemble_build_result(failed_tests=[FailedTest("A.b", "boom", "A.swift")])
        assert "  A.b — boom (A.swift)" in format_test_result(result)
