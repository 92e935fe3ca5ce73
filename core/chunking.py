"""
Pure chunking module for source code.

Splits one source file into one chunk per declaration (function, method,
class).  No file I/O: callers pass the file contents and its path, and get
back immutable ``CodeChunk`` records ready to be written to the chunk file.

WHY DECLARATION CHUNKS?
-----------------------
A question about a codebase is usually a question about a unit of
behaviour.  A declaration is the smallest span that carries its own name,
signature and body, so each chunk embeds one self-contained idea and a
match can be shown to the user as-is.

Languages:
    Python      parsed with ``ast``; functions, async functions, classes.
    Go          ``func`` declarations, plain and with a receiver.
    TypeScript  function and class declarations, method definitions.
    JavaScript  the TypeScript set plus function expressions and arrow
                functions bound with ``const`` / ``let`` / ``var``.

The brace languages are scanned, not parsed: a declaration starts where a
line opens with one of the recognised forms and ends at its matching
closing brace.  String literals and comments are skipped while matching.
Nested declarations produce their own chunks after their parent's.
"""

import ast
import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import NamedTuple

LANGUAGES: dict[str, str] = {
    ".go": "go",
    ".ts": "ts",
    ".js": "js",
    ".py": "python",
}
"""Indexed file extensions and the extractor each one uses."""


@dataclass(frozen=True)
class CodeChunk:
    """
    One declaration taken from a source file.

    Attributes:
        id: ``<file>#chunk_<n>``, where ``n`` counts declarations in source
            order within the file.
        file: Path of the source file, as given to the chunker.
        code: Exact source text of the declaration.
        start_line: First line of the declaration (1-based, inclusive).
        end_line: Last line of the declaration (1-based, inclusive).
        symbol: Declared name, or ``anonymous_<n>`` when there is none.
        kind: Declaration kind, e.g. ``function_declaration``.
    """

    id: str
    file: str
    code: str
    start_line: int
    end_line: int
    symbol: str
    kind: str

    def to_dict(self) -> dict[str, str | int]:
        """Chunk-file record.  Readers only require ``id``, ``file`` and ``code``."""
        return {
            "id": self.id,
            "file": self.file,
            "code": self.code,
            "startLine": self.start_line,
            "endLine": self.end_line,
            "symbol": self.symbol,
            "type": self.kind,
        }


class _Declaration(NamedTuple):
    start: int
    end: int
    symbol: str
    kind: str


# ---------------------------------------------------------------------------
# Python
# ---------------------------------------------------------------------------

_PYTHON_KINDS: dict[type, str] = {
    ast.FunctionDef: "function_definition",
    ast.AsyncFunctionDef: "function_definition",
    ast.ClassDef: "class_definition",
}


def _python_declarations(source: str) -> list[_Declaration]:
    """
    Raises:
        SyntaxError: If *source* is not valid Python.
    """
    tree = ast.parse(source)
    lines = source.split("\n")
    offsets = [0]
    for line in lines:
        offsets.append(offsets[-1] + len(line) + 1)

    def position(lineno: int, col_offset: int) -> int:
        # ast column offsets count UTF-8 bytes, not characters.
        prefix = lines[lineno - 1].encode("utf-8")[:col_offset]
        return offsets[lineno - 1] + len(prefix.decode("utf-8", errors="ignore"))

    found: list[_Declaration] = []

    def visit(node: ast.AST) -> None:
        for child in ast.iter_child_nodes(node):
            kind = _PYTHON_KINDS.get(type(child))
            if kind is not None:
                start = position(child.lineno, child.col_offset)
                end = position(child.end_lineno or child.lineno, child.end_col_offset or 0)
                found.append(_Declaration(start, end, child.name, kind))
            visit(child)

    visit(tree)
    return found


# ---------------------------------------------------------------------------
# Brace languages
# ---------------------------------------------------------------------------

_NAME = r"(?P<name>[A-Za-z_$][\w$]*)"

_GO_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    ("method_declaration", re.compile(rf"^[ \t]*func[ \t]*\([^)\n]*\)[ \t]*{_NAME}", re.M)),
    ("function_declaration", re.compile(rf"^[ \t]*func[ \t]+{_NAME}", re.M)),
]

_TS_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    (
        "class_declaration",
        re.compile(
            rf"^[ \t]*(?:export[ \t]+)?(?:default[ \t]+)?(?:abstract[ \t]+)?class[ \t]+{_NAME}",
            re.M,
        ),
    ),
    (
        "function_declaration",
        re.compile(
            r"^[ \t]*(?:export[ \t]+)?(?:default[ \t]+)?(?:async[ \t]+)?function\b"
            r"[ \t]*\*?[ \t]*(?P<name>[A-Za-z_$][\w$]*)?",
            re.M,
        ),
    ),
    (
        "method_definition",
        re.compile(
            r"^[ \t]*(?:(?:public|private|protected|static|readonly|override|async|get|set)"
            rf"[ \t]+)*\*?{_NAME}[ \t]*(?:<[^>\n]*>)?\([^)\n]*\)[ \t]*(?::[^{{;\n]+)?\{{",
            re.M,
        ),
    ),
]

_JS_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    *_TS_PATTERNS,
    (
        "function_expression",
        re.compile(
            rf"^[ \t]*(?:export[ \t]+)?(?:const|let|var)[ \t]+{_NAME}[ \t]*=[ \t]*"
            r"(?:async[ \t]+)?function\b",
            re.M,
        ),
    ),
    (
        "arrow_function",
        re.compile(
            rf"^[ \t]*(?:export[ \t]+)?(?:const|let|var)[ \t]+{_NAME}[ \t]*=[ \t]*"
            r"(?:async[ \t]*)?(?:\([^)\n]*\)|[A-Za-z_$][\w$]*)[ \t]*=>",
            re.M,
        ),
    ),
]

_BRACE_PATTERNS: dict[str, list[tuple[str, re.Pattern[str]]]] = {
    "go": _GO_PATTERNS,
    "ts": _TS_PATTERNS,
    "js": _JS_PATTERNS,
}

# Words the method pattern would otherwise take for a method name.
_CONTROL_WORDS = frozenset(
    {"if", "for", "while", "switch", "catch", "with", "function", "return", "else", "do"}
)

# Go type literals whose braces belong to a signature, not a body.
_GO_EMPTY_TYPE = re.compile(r"(?:interface|struct)[ \t]*\{\}\Z")


def _skip_literal(source: str, i: int) -> int:
    """Return the index just past the string or comment starting at *i*, or *i*."""
    ch = source[i]
    if source.startswith("//", i):
        end = source.find("\n", i)
        return len(source) if end == -1 else end
    if source.startswith("/*", i):
        end = source.find("*/", i + 2)
        return len(source) if end == -1 else end + 2
    if ch in "\"'`":
        j = i + 1
        while j < len(source):
            if source[j] == "\\":
                j += 2
                continue
            if source[j] == ch:
                return j + 1
            if source[j] == "\n" and ch != "`":
                return j
            j += 1
        return len(source)
    return i


def _body_end(source: str, start: int, kind: str, language: str) -> int | None:
    """
    Return the end offset of the declaration whose header ends at *start*.

    ``None`` means the header has no body (an overload or a forward
    declaration).  Arrow functions with an expression body end at the
    terminating ``;`` or at the end of the expression's line.  A Go body
    must open on the header's line.
    """
    depth = 0
    i = start
    n = len(source)
    while i < n:
        skipped = _skip_literal(source, i)
        if skipped != i:
            i = skipped
            continue
        ch = source[i]
        if ch in "([":
            depth += 1
        elif ch in ")]":
            depth -= 1
        elif depth == 0 and ch == "{":
            if language == "go" and _GO_EMPTY_TYPE.search(source, start, i + 2):
                i += 2
                continue
            return _matching_brace(source, i)
        elif depth == 0 and ch == ";":
            return i + 1 if kind == "arrow_function" else None
        elif depth == 0 and ch == "\n":
            if language == "go":
                return None
            if kind == "arrow_function" and source[start:i].strip():
                return i
        i += 1
    return None


def _matching_brace(source: str, open_at: int) -> int:
    depth = 0
    i = open_at
    n = len(source)
    while i < n:
        skipped = _skip_literal(source, i)
        if skipped != i:
            i = skipped
            continue
        if source[i] == "{":
            depth += 1
        elif source[i] == "}":
            depth -= 1
            if depth == 0:
                return i + 1
        i += 1
    # Unbalanced: the declaration runs to the end of the file.
    return n


def _brace_declarations(source: str, language: str) -> list[_Declaration]:
    headers: dict[int, tuple[int, str, str]] = {}
    for kind, pattern in _BRACE_PATTERNS[language]:
        for match in pattern.finditer(source):
            name = match.group("name") or ""
            if kind == "method_definition" and name in _CONTROL_WORDS:
                continue
            # Start at the first non-blank character of the line.
            start = match.start() + len(match.group(0)) - len(match.group(0).lstrip())
            if start in headers:
                continue
            header_end = match.end() - 1 if kind == "method_definition" else match.end()
            headers[start] = (header_end, name, kind)

    found: list[_Declaration] = []
    for start in sorted(headers):
        header_end, name, kind = headers[start]
        end = _body_end(source, header_end, kind, language)
        if end is not None:
            found.append(_Declaration(start, end, name, kind))
    return found


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def detect_language(file_path: str) -> str | None:
    """Return the extractor name for *file_path*, or ``None`` if it is not indexed."""
    return LANGUAGES.get(PurePosixPath(file_path).suffix)


def normalize_source(source: str) -> str:
    """Normalize CRLF and CR line endings to LF."""
    return source.replace("\r\n", "\n").replace("\r", "\n")


def chunk_source(source: str, file_path: str) -> list[CodeChunk]:
    """
    Split *source* into one ``CodeChunk`` per declaration.

    Chunks come back in source order, parents before the declarations
    nested inside them.  Chunks are returned even when their code is
    blank; dropping those is the caller's decision.

    Args:
        source: Full text of the file.
        file_path: Path recorded on every chunk and used to pick the
            language.

    Returns:
        The chunks, or an empty list for an unsupported extension or a
        file without declarations.

    Raises:
        SyntaxError: If a ``.py`` file does not parse.
    """
    language = detect_language(file_path)
    if language is None:
        return []

    text = normalize_source(source)
    if language == "python":
        declarations = _python_declarations(text)
    else:
        declarations = _brace_declarations(text, language)

    chunks: list[CodeChunk] = []
    for i, decl in enumerate(declarations):
        chunks.append(
            CodeChunk(
                id=f"{file_path}#chunk_{i}",
                file=file_path,
                code=text[decl.start : decl.end],
                start_line=text.count("\n", 0, decl.start) + 1,
                end_line=text.count("\n", 0, max(decl.start, decl.end - 1)) + 1,
                symbol=decl.symbol or f"anonymous_{i}",
                kind=decl.kind,
            )
        )
    return chunks
