"""Minimal go.mod reader.

Only ``module`` and ``require`` matter for the dependency graph; every other
directive is recognised and skipped so that a valid go.mod never fails to
parse, while typos and broken blocks still do.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field

from depsync.errors import GoModParseError

KNOWN_DIRECTIVES = frozenset(
    {
        "module",
        "go",
        "toolchain",
        "godebug",
        "require",
        "exclude",
        "replace",
        "retract",
        "tool",
        "ignore",
    }
)

_TOKEN_RE = re.compile(
    r"(?P<comment>//.*)"
    r'|(?P<quoted>"(?:[^"\\]|\\.)*")'
    r"|(?P<raw>`[^`]*`)"
    r"|(?P<paren>[()])"
    r"|(?P<word>(?:[^\s\"`/()]|/(?!/))+)"
    r"|(?P<bad>[\"`])"
)


@dataclass
class Requirement:
    """A single ``require`` entry."""

    path: str
    version: str
    indirect: bool = False


@dataclass
class GoModFile:
    """The parts of a go.mod file depsync cares about."""

    module_path: str = ""
    requires: list[Requirement] = field(default_factory=list)


def _tokenize(line: str, filename: str, lineno: int) -> tuple[list[str], str]:
    """Split a line into tokens and its trailing comment."""
    tokens: list[str] = []
    comment = ""
    for match in _TOKEN_RE.finditer(line):
        kind = match.lastgroup
        text = match.group()
        if kind == "comment":
            comment = text
            break
        if kind == "bad":
            raise GoModParseError(filename, lineno, "unterminated quoted string")
        if kind == "quoted":
            try:
                text = json.loads(text)
            except ValueError as e:
                raise GoModParseError(filename, lineno, f"invalid quoted string {text}") from e
        elif kind == "raw":
            text = text[1:-1]
        tokens.append(text)
    return tokens, comment


def _is_indirect(comment: str) -> bool:
    body = comment[2:].strip() if comment.startswith("//") else ""
    return body == "indirect" or body.startswith("indirect;")


def _parse_require(
    args: list[str], comment: str, filename: str, lineno: int
) -> Requirement:
    if len(args) != 2:
        raise GoModParseError(filename, lineno, "usage: require module/path v1.2.3")
    path, version = args
    if not version.startswith("v"):
        raise GoModParseError(
            filename, lineno, f"invalid module version {version!r} for {path}"
        )
    return Requirement(path=path, version=version, indirect=_is_indirect(comment))


def _parse_module(args: list[str], filename: str, lineno: int) -> str:
    if len(args) != 1:
        raise GoModParseError(filename, lineno, "usage: module module/path")
    return args[0]


def parse_go_mod(content: bytes | str, filename: str = "go.mod") -> GoModFile:
    """Parse go.mod content.

    Args:
        content: Raw file content.
        filename: Name used in error messages.

    Returns:
        GoModFile with the module path and the direct requirements.

    Raises:
        GoModParseError: On unknown directives, malformed lines or an
            unterminated block.
    """
    if isinstance(content, bytes):
        try:
            content = content.decode("utf-8")
        except UnicodeDecodeError as e:
            raise GoModParseError(filename, 0, f"invalid UTF-8: {e}") from e

    result = GoModFile()
    block: str | None = None
    block_start = 0

    for lineno, line in enumerate(content.splitlines(), start=1):
        tokens, comment = _tokenize(line, filename, lineno)
        if not tokens:
            continue

        if block is not None:
            if tokens == [")"]:
                block = None
                continue
            if block == "require":
                result.requires.append(_parse_require(tokens, comment, filename, lineno))
            elif block == "module":
                result.module_path = _parse_module(tokens, filename, lineno)
            continue

        verb, args = tokens[0], tokens[1:]
        if verb not in KNOWN_DIRECTIVES:
            raise GoModParseError(filename, lineno, f"unknown directive: {verb}")

        if args == ["("]:
            block = verb
            block_start = lineno
            continue

        if verb == "require":
            result.requires.append(_parse_require(args, comment, filename, lineno))
        elif verb == "module":
            result.module_path = _parse_module(args, filename, lineno)

    if block is not None:
        raise GoModParseError(filename, block_start, f"unterminated {block} block")

    return result
