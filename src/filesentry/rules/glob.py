"""Minimatch-style glob matching for rule path patterns.

Supported syntax:
  - ``*``    any run of characters within one path segment
  - ``?``    one character within a segment
  - ``**``   zero or more whole segments (``**/*.ts`` matches ``b.ts``),
             never ``.`` or ``..``
  - ``[..]`` character classes, ``[!..]`` negated
  - ``{a,b}`` alternatives (unbalanced braces are taken literally)

Paths are compared in POSIX form, relative to the watch root.
"""

from __future__ import annotations

import re
from functools import lru_cache

# One path segment other than "." or ".."
_SEGMENT = r"(?!\.\.?(?:/|\Z))[^/]*"


def _translate(pattern: str, braces: bool) -> tuple[str, int]:
    out: list[str] = []
    depth = 0
    i, n = 0, len(pattern)
    while i < n:
        c = pattern[i]
        if c == "\\" and i + 1 < n:
            out.append(re.escape(pattern[i + 1]))
            i += 2
            continue
        if c == "*":
            if pattern.startswith("**", i):
                j = i + 2
                at_segment_start = i == 0 or pattern[i - 1] == "/"
                if at_segment_start and j == n:
                    out.append(rf"(?:{_SEGMENT}(?:/{_SEGMENT})*)?")
                    i = j
                    continue
                if at_segment_start and pattern[j] == "/":
                    out.append(rf"(?:{_SEGMENT}/)*")
                    i = j + 1
                    continue
                out.append("[^/]*")
                i = j
                continue
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "[":
            close = pattern.find("]", i + 2 if pattern.startswith("[!", i) else i + 1)
            if close == -1:
                out.append(re.escape(c))
            else:
                body = pattern[i + 1 : close]
                if body.startswith("!"):
                    body = "^" + body[1:]
                out.append("[" + body.replace("\\", "\\\\") + "]")
                i = close
        elif braces and c == "{":
            depth += 1
            out.append("(?:")
        elif braces and c == "," and depth > 0:
            out.append("|")
        elif braces and c == "}" and depth > 0:
            depth -= 1
            out.append(")")
        else:
            out.append(re.escape(c))
        i += 1
    return "".join(out), depth


@lru_cache(maxsize=512)
def compile_glob(pattern: str) -> re.Pattern[str]:
    """Compile a glob pattern to an anchored regex."""
    body, depth = _translate(pattern, braces=True)
    if depth:
        body, _ = _translate(pattern, braces=False)
    try:
        return re.compile(rf"\A{body}\Z", re.DOTALL)
    except re.error:
        # Malformed character class: fall back to a literal comparison
        return re.compile(rf"\A{re.escape(pattern)}\Z")


def normalize_path(path: str) -> str:
    """Convert to POSIX separators and drop a leading ``./``."""
    path = path.replace("\\", "/")
    while path.startswith("./"):
        path = path[2:]
    return path


def match_glob(pattern: str, path: str) -> bool:
    """Return True if ``path`` matches the glob ``pattern``."""
    if not pattern:
        return False
    return compile_glob(normalize_path(pattern)).match(normalize_path(path)) is not None
