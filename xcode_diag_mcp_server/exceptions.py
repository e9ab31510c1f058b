#!/usr/bin/env python3
"""Exception types raised by the diagnostics server"""


class XCodeMCPError(Exception):
    def __init__(self, message, code=None):
        self.message = message
        self.code = code
        super().__init__(self.message)


class AccessDeniedError(XCodeMCPError):
    pass


class InvalidParameterError(XCodeMCPError):
    pass


class DiagnosticFailure(XCodeMCPError):
    """
    A build or test run that genuinely failed.

    The message carries the full formatted report (including any
    infrastructure warnings and scheme suggestions) so it can be shown
    to the caller as-is.
    """

    def __init__(self, message, details: str = "", result=None, code=None):
        self.details = details
        self.result = result
        super().__init__(message, code=code)


class BuildFailedError(DiagnosticFailure):
    pass


class TestRunError(DiagnosticFailure):
    __test__ = False  # not a pytest class
