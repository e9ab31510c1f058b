#!/usr/bin/env python3
"""Parse xcodebuild / swift build / swift test console output into a BuildResult"""

import re
from dataclasses import replace
from typing import Optional, List, Dict, Set, Tuple

from xcode_diag_mcp_server.models import (
    BuildError,
    BuildWarning,
    BuildResult,
    CodeCoverage,
    FailedTest,
    LinkerError,
    assemble_build_result,
)

MAX_LINE_LENGTH = 5000

# "Test Case '-[MyTests.FooTests testBar]' failed (0.005 seconds)."
# "Test case 'FooTests.testBar()' passed on 'My Mac - xctest (123)' (0.001 seconds)"
TEST_CASE_RE = re.compile(
    r"^Test [Cc]ase '(?P<name>[^']+)' (?P<result>passed|failed)(?: on '[^']*')? \((?P<duration>[\d.]+) seconds\)")

# "/path/FooTests.swift:42: error: -[MyTests.FooTests testBar] : XCTAssertEqual failed: ..."
XCTEST_ASSERTION_RE = re.compile(
    r"^(?P<file>.+?):(?P<line>\d+): error: -\[(?P<name>[^\]]+)\] : (?P<message>.*)$")

# "Executed 42 tests, with 2 failures (0 unexpected) in 12.500 (12.501) seconds"
EXECUTED_RE = re.compile(
    r"Executed (?P<total>\d+) tests?, with (?P<failures>\d+) failures?"
    r"(?: \(\d+ unexpected\))? in (?P<time>\d+(?:\.\d+)?)(?: \([\d.]+\))? seconds")

# Swift Testing per-test lines, optionally prefixed by a status symbol:
# "✘ Test additionWorks() recorded an issue at MathTests.swift:12:5: Expectation failed"
# "✘ Test \"Addition works\" failed after 0.002 seconds with 1 issue."
# "✔ Test additionWorks() passed after 0.001 seconds."
SWIFT_TESTING_RE = re.compile(
    r'^(?:\S+\s+)?Test (?P<name>"[^"]*"|[^\s"][^"]*?\))'
    r" (?P<event>recorded an issue at|failed after|passed after) (?P<rest>.*)$")

# Swift Testing run summaries
SWIFT_TESTING_MIXED_RE = re.compile(
    r"Test run with (?P<failed>\d+) tests? failed, (?P<passed>\d+) tests? passed"
    r" after (?P<time>\d+(?:\.\d+)?) seconds")
SWIFT_TESTING_FAILED_RE = re.compile(
    r"Test run with (?P<total>\d+) tests?(?: in \d+ suites?)? failed"
    r" after (?P<time>\d+(?:\.\d+)?) seconds")
SWIFT_TESTING_PASSED_RE = re.compile(
    r"Test run with (?P<total>\d+) tests?(?: in \d+ suites?)? passed"
    r" after (?P<time>\d+(?:\.\d+)?) seconds")

# "[3/12] Testing MyTests.FooTests/testBar"
PARALLEL_TESTING_RE = re.compile(r"^\[\d+/(?P<total>\d+)\] Testing ")

# "** BUILD SUCCEEDED ** [12.345 sec]"
XCODEBUILD_STATUS_RE = re.compile(r"\*\* BUILD (?:SUCCEEDED|FAILED) \*\*(?: \[(?P<time>[^\]]+)\])?")
# "Build complete! (3.21s)"
SPM_BUILD_COMPLETE_RE = re.compile(r"^Build complete!(?: \((?P<time>[^)]+)\))?")

# "/path/ContentView.swift:42 Publishing changes from background threads is not allowed"
RUNTIME_WARNING_RE = re.compile(r"^(?P<file>/.+?\.swift):(?P<line>\d+) (?P<message>\S.*)$")

# A location on its own line following a failure: "FooTests.swift:42"
LOCATION_LINE_RE = re.compile(r"^(?P<file>[^\s:]+\.\w+):(?P<line>\d+)(?::\d+)?$")

SWIFTUI_RUNTIME_PHRASES = (
    "Accessing Environment",
    "Accessing StateObject",
    "StateObject's wrappedValue",
    "Publishing changes from background",
    "Publishing changes from within view",
    "Modifying state during view update",
    "will always read the default value",
)

PHASE_SCRIPT_FAILURE = "Command PhaseScriptExecution failed with a nonzero exit"


def _positive(value: Optional[str]) -> Optional[int]:
    """Parse a 1-based line/column number; 0 and garbage become None"""
    if value is None or not value.isdigit():
        return None
    number = int(value)
    return number if number >= 1 else None


def split_location(prefix: str) -> Tuple[Optional[str], Optional[int], Optional[int]]:
    """
    Split "path:line:column" (column optional) into its parts.

    A prefix without a line number is kept as the file only when it looks
    like a path; tool names such as "clang" or "ld" give no file.
    """
    parts = prefix.split(":")
    if len(parts) >= 3 and parts[-2].isdigit() and parts[-1].isdigit():
        return ":".join(parts[:-2]), _positive(parts[-2]), _positive(parts[-1])
    if len(parts) >= 2 and parts[-1].isdigit():
        return ":".join(parts[:-1]), _positive(parts[-1]), None
    if "/" in prefix:
        return prefix, None, None
    return None, None, None


def normalize_test_name(name: str) -> str:
    """
    Reduce the spellings of a test name to "Suite.test" form.

    "-[MyTests.FooTests testBar]" and "MyTests.FooTests testBar" both
    become "MyTests.FooTests.testBar".
    """
    if name.startswith("-[") and name.endswith("]"):
        name = name[2:-1]
    if " " in name and not name.startswith('"'):
        suite, _, test = name.partition(" ")
        if suite and test and " " not in test:
            name = f"{suite}.{test}"
    return name


def _is_json_like(line: str) -> bool:
    """Lines from JSON dumps mention 'error:' without being diagnostics"""
    stripped = line.strip()
    if stripped[:1] in ("{", "[", "}", "]"):
        return True
    if stripped.startswith('"') and ('" :' in stripped or '":' in stripped):
        return True
    if '\\"' in line and ":" in line:
        return True
    return False


def _is_visual_line(line: str) -> bool:
    """Swift's caret/pipe source excerpts under a diagnostic"""
    return line.startswith(" ") and ("|" in line or "`" in line)


class BuildOutputParser:
    """
    Line-oriented parser for build and test console output.

    Each call to parse() starts from a clean state, so one instance can be
    reused, but parse_build_output() is the simpler entry point.
    """

    def __init__(self):
        self._reset()

    def _reset(self):
        self.errors: List[BuildError] = []
        self.warnings: List[BuildWarning] = []
        self.failed_tests: List[FailedTest] = []
        self.linker_errors: List[LinkerError] = []

        self._seen_errors: Set[str] = set()
        self._seen_warnings: Set[str] = set()
        self._seen_linker_errors: Set[str] = set()
        self._failed_index: Dict[str, int] = {}
        self._passed_tests: Set[str] = set()
        self._swift_testing_failures: Set[str] = set()

        self.build_time: Optional[str] = None
        self._xctest_time: Optional[float] = None
        self._swift_testing_time: Optional[float] = None
        self._xctest_executed: Optional[int] = None
        self._xctest_failed: Optional[int] = None
        self._swift_testing_executed: Optional[int] = None
        self._swift_testing_failed: Optional[int] = None
        self._swift_testing_run_failed = False
        self._parallel_total: Optional[int] = None

        # Index of the last failed test still waiting for a location line
        self._awaiting_location: Optional[int] = None

        # Linker block state
        self._linker_architecture: Optional[str] = None
        self._pending_symbol: Optional[str] = None
        self._pending_duplicate: Optional[str] = None
        self._duplicate_files: List[str] = []

    def parse(self, text: str, coverage: Optional[CodeCoverage] = None) -> BuildResult:
        """
        Parse console output.

        Args:
            text: Combined or stdout-only output of a build or test command
            coverage: Coverage obtained elsewhere (e.g. from xccov) to attach

        Returns:
            A BuildResult; unrecognized lines are ignored
        """
        self._reset()
        lines = (text or "").split("\n")

        for index, line in enumerate(lines):
            self._parse_line(line.rstrip("\r"))

            if PHASE_SCRIPT_FAILURE in line:
                self._attach_script_context(lines, index, line.strip())

        return self._build_result(coverage)

    # -------------------------------------------------------------------
    # Line dispatch
    # -------------------------------------------------------------------

    def _parse_line(self, line: str):
        if not line.strip() or len(line) > MAX_LINE_LENGTH:
            return

        awaiting = self._awaiting_location
        self._awaiting_location = None
        if awaiting is not None:
            match = LOCATION_LINE_RE.match(line.strip())
            if match:
                self.failed_tests[awaiting] = replace(
                    self.failed_tests[awaiting],
                    file=match.group("file"),
                    line=_positive(match.group("line")))
                return

        if self._parse_linker_line(line):
            return

        match = PARALLEL_TESTING_RE.match(line)
        if match:
            if self._parallel_total is None:
                self._parallel_total = int(match.group("total"))
            return

        stripped = line.strip()

        if self._parse_test_line(stripped):
            return
        if self._parse_diagnostic(line, stripped):
            return
        self._parse_summary_line(stripped)

    # -------------------------------------------------------------------
    # Tests
    # -------------------------------------------------------------------

    def _parse_test_line(self, line: str) -> bool:
        # Pattern 1: XCTest assertion with location
        match = XCTEST_ASSERTION_RE.match(line)
        if match:
            self._record_failure(FailedTest(
                test_identifier=normalize_test_name(match.group("name")),
                message=match.group("message").strip(),
                file=match.group("file"),
                line=_positive(match.group("line"))))
            return True

        # Pattern 2: XCTest case result, standard or parallel
        match = TEST_CASE_RE.match(line)
        if match:
            name = normalize_test_name(match.group("name"))
            duration = float(match.group("duration"))
            if match.group("result") == "passed":
                self._passed_tests.add(name)
            else:
                self._record_failure(FailedTest(name, "Test failed", duration=duration))
            return True

        # Pattern 3: Swift Testing per-test events
        match = SWIFT_TESTING_RE.match(line)
        if match:
            name = match.group("name").strip('"')
            event = match.group("event")
            rest = match.group("rest")
            if event == "recorded an issue at":
                parts = rest.split(":", 3)
                if len(parts) == 4 and parts[1].isdigit():
                    failure = FailedTest(name, parts[3].strip(), file=parts[0], line=_positive(parts[1]))
                else:
                    failure = FailedTest(name, rest.strip())
                self._swift_testing_failures.add(name)
                self._record_failure(failure)
            elif event == "failed after":
                self._swift_testing_failures.add(name)
                self._record_failure(FailedTest(name, "Test failed", duration=_seconds(rest)))
            else:
                self._passed_tests.add(name)
            return True

        # Pattern 4: "❌ testName (message)"
        if line.startswith("❌ ") and " (" in line and line.endswith(")"):
            name, _, message = line[2:].partition(" (")
            self._record_failure(FailedTest(name.strip(), message[:-1]))
            return True

        return False

    def _record_failure(self, failure: FailedTest):
        """Append a failure, or merge it into an earlier record of the same test"""
        key = normalize_test_name(failure.test_identifier)
        index = self._failed_index.get(key)

        if index is None:
            self._failed_index[key] = len(self.failed_tests)
            self.failed_tests.append(failure)
            if failure.file is None:
                self._awaiting_location = len(self.failed_tests) - 1
            return

        existing = self.failed_tests[index]
        self.failed_tests[index] = FailedTest(
            test_identifier=existing.test_identifier,
            message=failure.message if failure.file is not None else existing.message,
            file=failure.file if failure.file is not None else existing.file,
            line=failure.line if failure.line is not None else existing.line,
            duration=failure.duration if failure.duration is not None else existing.duration,
        )

    # -------------------------------------------------------------------
    # Compiler diagnostics
    # -------------------------------------------------------------------

    def _parse_diagnostic(self, line: str, stripped: str) -> bool:
        if _is_json_like(line) or _is_visual_line(line):
            return False

        error = self._parse_error(stripped)
        if error is not None:
            key = f"{error.file or ''}:{error.line or 0}:{error.message}"
            if key not in self._seen_errors:
                self._seen_errors.add(key)
                self.errors.append(error)
            return True

        warning = self._parse_warning(stripped)
        if warning is not None:
            key = f"{warning.file or ''}:{warning.line or 0}:{warning.message}"
            if key not in self._seen_warnings:
                self._seen_warnings.add(key)
                self.warnings.append(warning)
            return True

        return False

    def _parse_error(self, line: str) -> Optional[BuildError]:
        # "path:line:column: error: message"
        if ": error: " in line:
            prefix, _, message = line.partition(": error: ")
            file, line_number, column = split_location(prefix)
            return BuildError(message.strip(), file, line_number, column)

        # "path:line: Fatal error: message" from Swift runtime traps
        if ": Fatal error: " in line:
            prefix, _, message = line.partition(": Fatal error: ")
            file, line_number, column = split_location(prefix)
            return BuildError(message.strip(), file, line_number, column)

        if line.endswith(": Fatal error") and " xctest[" not in line:
            file, line_number, column = split_location(line[:-len(": Fatal error")])
            if line_number is not None:
                return BuildError("Fatal error", file, line_number, column)

        if line.startswith("❌ "):
            return BuildError(line[2:].strip())

        if line.startswith("error: "):
            return BuildError(line[len("error: "):].strip())

        if PHASE_SCRIPT_FAILURE in line:
            return BuildError(line)

        return None

    def _parse_warning(self, line: str) -> Optional[BuildWarning]:
        if ": warning: " in line:
            prefix, _, message = line.partition(": warning: ")
            file, line_number, column = split_location(prefix)
            return BuildWarning(message.strip(), file, line_number, column)

        if line.startswith("warning: "):
            return BuildWarning(line[len("warning: "):].strip())

        # Runtime issues reported by the test host
        match = RUNTIME_WARNING_RE.match(line)
        if match and "|" not in line and "`-" not in line:
            message = match.group("message")
            kind = "swiftui" if any(p in message for p in SWIFTUI_RUNTIME_PHRASES) else "runtime"
            return BuildWarning(message, match.group("file"), _positive(match.group("line")), kind=kind)

        return None

    def _attach_script_context(self, lines: List[str], index: int, failure_line: str):
        """Prefix a run-script failure with the (up to three) lines explaining it"""
        if not self.errors or self.errors[-1].message != failure_line:
            return

        context = []
        for previous in lines[max(0, index - 3):index]:
            previous = previous.strip()
            if not previous or previous.startswith("Warning:") or previous.startswith("Run script build phase"):
                continue
            if ": warning:" in previous and "error:" not in previous:
                continue
            context.append(previous)

        if context:
            self.errors[-1] = BuildError(" ".join(context) + " " + failure_line)

    # -------------------------------------------------------------------
    # Linker
    # -------------------------------------------------------------------

    def _add_linker_error(self, error: LinkerError):
        key = f"{error.symbol}:{error.message}"
        if key not in self._seen_linker_errors:
            self._seen_linker_errors.add(key)
            self.linker_errors.append(error)

    def _parse_linker_line(self, line: str) -> bool:
        trimmed = line.strip()

        # Undefined symbols for architecture arm64:
        #   "_OBJC_CLASS_$_Foo", referenced from:
        #       objc-class-ref in AppDelegate.o
        if trimmed.startswith("Undefined symbols for architecture "):
            architecture = trimmed[len("Undefined symbols for architecture "):]
            self._linker_architecture = architecture.split(":", 1)[0]
            return True

        if trimmed.startswith('"') and '", referenced from:' in trimmed:
            self._pending_symbol = trimmed[1:trimmed.index('", referenced from:')]
            return True

        if (self._pending_symbol is not None and self._linker_architecture is not None
                and " in " in trimmed and trimmed.endswith((".o", ".a"))):
            referenced_from = trimmed.split(" in ", 1)[1]
            self._add_linker_error(LinkerError(
                symbol=self._pending_symbol,
                architecture=self._linker_architecture,
                referenced_from=referenced_from))
            self._pending_symbol = None
            return True

        if trimmed.startswith("ld: framework not found "):
            framework = trimmed[len("ld: framework not found "):]
            self._add_linker_error(LinkerError(message=f"framework not found {framework}"))
            return True

        if trimmed.startswith("ld: library not found for "):
            library = trimmed[len("ld: library not found for "):]
            self._add_linker_error(LinkerError(message=f"library not found for {library}"))
            return True

        # duplicate symbol '_foo' in:
        #     /path/A.o
        #     /path/B.o
        # ld: 1 duplicate symbol for architecture arm64
        for quote in ("'", '"'):
            opener = f"duplicate symbol {quote}"
            if trimmed.startswith(opener):
                remainder = trimmed[len(opener):]
                if quote in remainder:
                    self._pending_duplicate = remainder[:remainder.index(quote)]
                    self._duplicate_files = []
                return True

        if (self._pending_duplicate is not None and trimmed.endswith((".o", ".a"))
                and line.startswith(("    ", "\t"))):
            self._duplicate_files.append(trimmed)
            return True

        if trimmed.startswith("ld: building for ") and "but linking" in trimmed:
            self._add_linker_error(LinkerError(message=trimmed))
            return True

        if trimmed.startswith("ld: ") and "duplicate symbol" in trimmed:
            if self._pending_duplicate is not None:
                architecture = ""
                if "for architecture " in trimmed:
                    architecture = trimmed.split("for architecture ", 1)[1]
                self._add_linker_error(LinkerError(
                    symbol=self._pending_duplicate,
                    architecture=architecture,
                    conflicting_files=tuple(self._duplicate_files)))
                self._pending_duplicate = None
                self._duplicate_files = []
            return True

        if trimmed.startswith("ld: symbol(s) not found for architecture "):
            return True

        return False

    # -------------------------------------------------------------------
    # Summary and timing lines
    # -------------------------------------------------------------------

    def _parse_summary_line(self, line: str):
        match = XCODEBUILD_STATUS_RE.search(line)
        if match:
            if match.group("time"):
                self.build_time = match.group("time")
            return

        match = SPM_BUILD_COMPLETE_RE.match(line)
        if match:
            if match.group("time"):
                self.build_time = match.group("time")
            return

        if line.startswith("Build succeeded in "):
            self.build_time = line[len("Build succeeded in "):]
            return

        if line.startswith("Build failed after "):
            self.build_time = line[len("Build failed after "):]
            return

        # XCTest prints one of these per suite; the last one covers the whole run
        match = EXECUTED_RE.search(line)
        if match:
            self._xctest_executed = int(match.group("total"))
            self._xctest_failed = int(match.group("failures"))
            self._xctest_time = float(match.group("time"))
            return

        match = SWIFT_TESTING_MIXED_RE.search(line)
        if match:
            failed = int(match.group("failed"))
            self._swift_testing_failed = failed
            self._swift_testing_executed = failed + int(match.group("passed"))
            self._swift_testing_time = float(match.group("time"))
            return

        match = SWIFT_TESTING_FAILED_RE.search(line)
        if match:
            self._swift_testing_executed = int(match.group("total"))
            self._swift_testing_run_failed = True
            self._swift_testing_time = float(match.group("time"))
            return

        match = SWIFT_TESTING_PASSED_RE.search(line)
        if match:
            self._swift_testing_executed = int(match.group("total"))
            self._swift_testing_failed = 0
            self._swift_testing_time = float(match.group("time"))

    # -------------------------------------------------------------------
    # Aggregation
    # -------------------------------------------------------------------

    def _build_result(self, coverage: Optional[CodeCoverage]) -> BuildResult:
        executed = None
        if self._parallel_total is not None:
            executed = self._parallel_total + (self._xctest_executed or 0)
        elif self._xctest_executed is not None or self._swift_testing_executed is not None:
            executed = (self._xctest_executed or 0) + (self._swift_testing_executed or 0)

        swift_testing_failed = self._swift_testing_failed
        if swift_testing_failed is None and self._swift_testing_run_failed:
            # The summary counts issues, not tests; fall back to the tests seen failing
            swift_testing_failed = max(len(self._swift_testing_failures), 1)

        reported_failures = None
        if self._xctest_failed is not None or swift_testing_failed is not None:
            reported_failures = (self._xctest_failed or 0) + (swift_testing_failed or 0)

        failed_count = max(reported_failures or 0, len(self.failed_tests))
        if executed is not None:
            passed = max(executed - failed_count, 0)
        elif self._passed_tests:
            passed = len(self._passed_tests)
        else:
            passed = None

        times = [t for t in (self._xctest_time, self._swift_testing_time) if t is not None]
        test_time = f"{sum(times):.3f}s" if times and sum(times) > 0 else None

        return assemble_build_result(
            errors=self.errors,
            warnings=self.warnings,
            failed_tests=self.failed_tests,
            linker_errors=self.linker_errors,
            passed_tests=passed,
            reported_failures=reported_failures,
            build_time=self.build_time,
            test_time=test_time,
            coverage=coverage,
        )


def _seconds(text: str) -> Optional[float]:
    """Pull "N" out of "N seconds ..." """
    match = re.match(r"(\d+(?:\.\d+)?) seconds", text)
    return float(match.group(1)) if match else None


def parse_build_output(text: str, coverage: Optional[CodeCoverage] = None) -> BuildResult:
    """Parse build or test console output into a BuildResult"""
    return BuildOutputParser().parse(text, coverage=coverage)
