"""Xcode Diagnostics MCP Server - structured build, test, crash and debugger diagnostics"""

__version__ = "1.0.0"
