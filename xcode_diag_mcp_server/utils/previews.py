#!/usr/bin/env python3
"""Extract or strip #Preview { ... } blocks in Swift source

Braces inside string literals and comments must not count, so the scan
runs a small lexer state machine instead of a regular expression.
"""

from typing import Optional, List, Iterator, Tuple, NamedTuple

from xcode_diag_mcp_server.models import PreviewBlock

DEFAULT_MARKER = "#Preview"

# Lexer states
CODE = "code"
LINE_COMMENT = "line_comment"
BLOCK_COMMENT = "block_comment"
STRING = "string"
MULTILINE_STRING = "multiline_string"

ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "0": "\0"}


class SwiftLexer:
    """
    Walk Swift source one step at a time, tracking what the cursor is in.

    step() consumes the next character (or delimiter such as '//' or
    '\"\"\"') and reports whether it was plain code. Block comments nest.
    """

    def __init__(self, source: str, pos: int = 0):
        self.source = source
        self.pos = pos
        self.state = CODE
        self.comment_depth = 0

    def at_end(self) -> bool:
        return self.pos >= len(self.source)

    def step(self) -> bool:
        source = self.source
        i = self.pos

        if self.state == CODE:
            if source.startswith('"""', i):
                self.state = MULTILINE_STRING
                self.pos += 3
                return False
            if source[i] == '"':
                self.state = STRING
                self.pos += 1
                return False
            if source.startswith("//", i):
                self.state = LINE_COMMENT
                self.pos += 2
                return False
            if source.startswith("/*", i):
                self.state = BLOCK_COMMENT
                self.comment_depth = 1
                self.pos += 2
                return False
            self.pos += 1
            return True

        if self.state == LINE_COMMENT:
            if source[i] == "\n":
                self.state = CODE
            self.pos += 1
            return False

        if self.state == BLOCK_COMMENT:
            if source.startswith("/*", i):
                self.comment_depth += 1
                self.pos += 2
            elif source.startswith("*/", i):
                self.comment_depth -= 1
                self.pos += 2
                if self.comment_depth == 0:
                    self.state = CODE
            else:
                self.pos += 1
            return False

        if self.state == STRING:
            if source[i] == "\\":
                self.pos += 2
            elif source[i] == '"' or source[i] == "\n":
                # A newline ends an unterminated literal
                self.state = CODE
                self.pos += 1
            else:
                self.pos += 1
            return False

        # MULTILINE_STRING
        if source[i] == "\\":
            self.pos += 2
        elif source.startswith('"""', i):
            self.state = CODE
            self.pos += 3
        else:
            self.pos += 1
        return False


class _Block(NamedTuple):
    start: int
    name: Optional[str]
    body_start: int
    body_end: int
    end: int


def _is_identifier_char(ch: str) -> bool:
    return ch.isalnum() or ch == "_"


def _marker_at(source: str, index: int, marker: str) -> bool:
    """The marker as a whole token: '#PreviewLayout' is not '#Preview'"""
    if not source.startswith(marker, index):
        return False
    after = index + len(marker)
    if after < len(source) and _is_identifier_char(source[after]):
        return False
    if index > 0 and _is_identifier_char(marker[0]) and _is_identifier_char(source[index - 1]):
        return False
    return True


def _skip_whitespace(source: str, index: int) -> int:
    while index < len(source) and source[index].isspace():
        index += 1
    return index


def _read_string_literal(source: str, index: int) -> Tuple[str, int]:
    """Decode the single-line literal opening at index; returns (text, index after it)"""
    chars = []
    i = index + 1
    while i < len(source) and source[i] != '"' and source[i] != "\n":
        if source[i] == "\\" and i + 1 < len(source):
            chars.append(ESCAPES.get(source[i + 1], source[i + 1]))
            i += 2
        else:
            chars.append(source[i])
            i += 1
    if i < len(source) and source[i] == '"':
        i += 1
    return "".join(chars), i


def _read_arguments(source: str, index: int) -> Tuple[Optional[str], int]:
    """
    Read the parenthesized arguments opening at index.

    Returns:
        (name, index after the closing parenthesis); name is the leading
        string literal, or None for any other argument form
    """
    name = None
    first = _skip_whitespace(source, index + 1)
    if first < len(source) and source[first] == '"' and not source.startswith('"""', first):
        name, _ = _read_string_literal(source, first)

    lexer = SwiftLexer(source, index + 1)
    depth = 1
    while not lexer.at_end():
        position = lexer.pos
        if lexer.step():
            if source[position] == "(":
                depth += 1
            elif source[position] == ")":
                depth -= 1
                if depth == 0:
                    return name, lexer.pos
    return name, len(source)


def _read_block(source: str, start: int, marker: str) -> Optional[_Block]:
    """Parse 'MARKER [(args)] { body }' at start; None if no balanced body follows"""
    i = _skip_whitespace(source, start + len(marker))

    name = None
    if i < len(source) and source[i] == "(":
        name, i = _read_arguments(source, i)
        i = _skip_whitespace(source, i)

    if i >= len(source) or source[i] != "{":
        return None

    body_start = i + 1
    lexer = SwiftLexer(source, body_start)
    depth = 1
    while not lexer.at_end():
        position = lexer.pos
        if lexer.step():
            if source[position] == "{":
                depth += 1
            elif source[position] == "}":
                depth -= 1
                if depth == 0:
                    return _Block(start, name, body_start, position, position + 1)
    return None


def _find_blocks(source: str, marker: str) -> Iterator[_Block]:
    lexer = SwiftLexer(source)
    while not lexer.at_end():
        position = lexer.pos
        if lexer.state == CODE and _marker_at(source, position, marker):
            block = _read_block(source, position, marker)
            if block is not None:
                yield block
                lexer.pos = block.end
            else:
                lexer.pos = position + len(marker)
            continue
        lexer.step()


def extract_preview_blocks(source: str, marker: str = DEFAULT_MARKER) -> List[PreviewBlock]:
    """
    Extract every marker block in source order.

    Args:
        source: Swift source text
        marker: Macro token to look for

    Returns:
        PreviewBlock per block with its trimmed body and optional name
    """
    if not source:
        return []
    return [PreviewBlock(block.name, source[block.body_start:block.body_end].strip())
            for block in _find_blocks(source, marker)]


def strip_preview_blocks(source: str, marker: str = DEFAULT_MARKER) -> str:
    """Return source with every marker block (and the newline after it) removed"""
    if not source:
        return source

    pieces = []
    last = 0
    for block in _find_blocks(source, marker):
        pieces.append(source[last:block.start])
        last = block.end
        if last < len(source) and source[last] == "\n":
            last += 1
    pieces.append(source[last:])
    return "".join(pieces)
