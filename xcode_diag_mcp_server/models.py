#!/usr/bin/env python3
"""Structured diagnostic model shared by every parser and formatter

All types are frozen dataclasses: a parse produces fresh values and nothing
is mutated afterwards.
"""

from dataclasses import dataclass
from typing import Optional, List, Tuple, Sequence

STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"

UNKNOWN_TEST = "Unknown test"


@dataclass(frozen=True)
class BuildError:
    message: str
    file: Optional[str] = None
    line: Optional[int] = None
    column: Optional[int] = None


@dataclass(frozen=True)
class BuildWarning:
    message: str
    file: Optional[str] = None
    line: Optional[int] = None
    column: Optional[int] = None
    kind: str = "compile"  # compile, runtime or swiftui


@dataclass(frozen=True)
class FailedTest:
    test_identifier: str
    message: str
    file: Optional[str] = None
    line: Optional[int] = None
    duration: Optional[float] = None


@dataclass(frozen=True)
class LinkerError:
    """
    A link-time failure.

    Undefined symbols carry symbol/architecture/referenced_from; duplicate
    symbols carry conflicting_files; anything else (framework or library
    not found, architecture mismatch) only has a message.
    """
    symbol: str = ""
    architecture: str = ""
    referenced_from: str = ""
    message: str = ""
    conflicting_files: Tuple[str, ...] = ()


@dataclass(frozen=True)
class FileCoverage:
    path: str
    line_coverage: float
    covered_lines: int = 0
    executable_lines: int = 0


@dataclass(frozen=True)
class CodeCoverage:
    line_coverage: float
    files: Tuple[FileCoverage, ...] = ()


@dataclass(frozen=True)
class BuildSummary:
    error_count: int
    warning_count: int
    failed_test_count: int
    linker_error_count: int = 0
    passed_test_count: Optional[int] = None
    build_time: Optional[str] = None
    test_time: Optional[str] = None
    coverage_percent: Optional[float] = None


@dataclass(frozen=True)
class BuildResult:
    """
    Outcome of one build or test invocation, whatever tool produced it.

    Use BuildResult.from_text() for console output and
    BuildResult.from_result_bundle() for .xcresult bundles.
    """
    status: str
    summary: BuildSummary
    errors: Tuple[BuildError, ...] = ()
    warnings: Tuple[BuildWarning, ...] = ()
    failed_tests: Tuple[FailedTest, ...] = ()
    linker_errors: Tuple[LinkerError, ...] = ()
    coverage: Optional[CodeCoverage] = None
    test_output: Optional[str] = None

    def __post_init__(self):
        if self.status not in (STATUS_SUCCESS, STATUS_FAILED):
            raise ValueError(f"Unknown build status: {self.status!r}")
        counts = (
            ("error_count", self.summary.error_count, len(self.errors)),
            ("warning_count", self.summary.warning_count, len(self.warnings)),
            ("failed_test_count", self.summary.failed_test_count, len(self.failed_tests)),
            ("linker_error_count", self.summary.linker_error_count, len(self.linker_errors)),
        )
        for name, declared, actual in counts:
            if declared != actual:
                raise ValueError(f"summary.{name} is {declared} but {actual} item(s) are present")

    @property
    def succeeded(self) -> bool:
        return self.status == STATUS_SUCCESS

    @property
    def executed_test_count(self) -> int:
        return (self.summary.passed_test_count or 0) + self.summary.failed_test_count

    @classmethod
    def from_text(cls, text: str, coverage: Optional[CodeCoverage] = None) -> "BuildResult":
        from xcode_diag_mcp_server.utils.build_output import parse_build_output
        return parse_build_output(text, coverage=coverage)

    @classmethod
    def from_result_bundle(cls, path: str) -> Optional["BuildResult"]:
        from xcode_diag_mcp_server.utils.xcresult import parse_result_bundle
        return parse_result_bundle(path)


def assemble_build_result(errors: Sequence[BuildError] = (),
                          warnings: Sequence[BuildWarning] = (),
                          failed_tests: Sequence[FailedTest] = (),
                          linker_errors: Sequence[LinkerError] = (),
                          passed_tests: Optional[int] = None,
                          reported_failures: Optional[int] = None,
                          build_time: Optional[str] = None,
                          test_time: Optional[str] = None,
                          coverage: Optional[CodeCoverage] = None,
                          test_output: Optional[str] = None) -> BuildResult:
    """
    Build a BuildResult whose summary agrees with its item lists.

    reported_failures is a failure count announced by a summary line or
    bundle metric. When it exceeds the failures actually recovered, the
    list is padded with placeholder entries so the counts stay consistent.

    Status is failed exactly when there are errors or failed tests.
    """
    failed_list: List[FailedTest] = list(failed_tests)
    if reported_failures is not None and reported_failures > len(failed_list):
        missing = reported_failures - len(failed_list)
        failed_list.extend(
            FailedTest(UNKNOWN_TEST, "Failure reported in the test summary (details not available in log)")
            for _ in range(missing)
        )

    summary = BuildSummary(
        error_count=len(errors),
        warning_count=len(warnings),
        failed_test_count=len(failed_list),
        linker_error_count=len(linker_errors),
        passed_test_count=passed_tests,
        build_time=build_time,
        test_time=test_time,
        coverage_percent=coverage.line_coverage if coverage else None,
    )
    status = STATUS_FAILED if (summary.error_count > 0 or summary.failed_test_count > 0) else STATUS_SUCCESS

    return BuildResult(
        status=status,
        summary=summary,
        errors=tuple(errors),
        warnings=tuple(warnings),
        failed_tests=tuple(failed_list),
        linker_errors=tuple(linker_errors),
        coverage=coverage,
        test_output=test_output,
    )


@dataclass(frozen=True)
class CrashSummary:
    process_name: Optional[str] = None
    bundle_id: Optional[str] = None
    capture_time: Optional[str] = None
    exception_type: Optional[str] = None
    signal: Optional[str] = None
    termination_namespace: Optional[str] = None
    termination_indicator: Optional[str] = None
    termination_reasons: Tuple[str, ...] = ()
    termination_details: Tuple[str, ...] = ()
    is_fatal_dyld_error: bool = False

    def formatted(self) -> str:
        """Render one line per present field; an empty summary renders as ''"""
        parts = []

        if self.process_name is not None:
            parts.append(f"Process: {self.process_name}")
        if self.bundle_id is not None:
            parts.append(f"Bundle ID: {self.bundle_id}")
        if self.capture_time is not None:
            parts.append(f"Time: {self.capture_time}")
        if self.exception_type is not None:
            parts.append(f"Exception: {self.exception_type}")
        if self.signal is not None:
            parts.append(f"Signal: {self.signal}")

        # Termination is usually the most actionable part
        if self.termination_indicator is not None:
            parts.append(f"Termination: {self.termination_namespace or ''} — {self.termination_indicator}")
        elif self.termination_namespace is not None:
            parts.append(f"Termination: {self.termination_namespace}")
        for reason in self.termination_reasons:
            parts.append(f"  {reason}")
        for detail in self.termination_details:
            parts.append(f"  {detail}")

        if self.is_fatal_dyld_error and self.termination_namespace != "DYLD":
            parts.append("Fatal dyld error (missing symbol or library)")

        return "\n".join(parts)


@dataclass(frozen=True)
class CrashReport:
    """A crash report file found on disk"""
    path: str
    summary: CrashSummary
    modified: float


@dataclass(frozen=True)
class PreviewBlock:
    name: Optional[str]
    body: str


@dataclass(frozen=True)
class TestAttachment:
    __test__ = False  # not a pytest class

    exported_file_name: str
    display_name: str
    test_identifier: Optional[str] = None
    is_associated_with_failure: bool = False
    timestamp: Optional[float] = None
