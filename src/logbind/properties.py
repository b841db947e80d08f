"""
Reader for ``.properties`` resources.

Supports the usual line format:
    # comment            ! comment
    key=value            key: value            key value
    long.value=first \\
               second
    escaped=tab\\there \\u00e9

Keys keep file order; a later duplicate key wins.
"""

from __future__ import annotations

from pathlib import Path


_ESCAPES = {"t": "\t", "n": "\n", "r": "\r", "f": "\f"}


def parse_properties(text: str) -> dict[str, str]:
    """Parse properties-format text into an ordered dict."""
    props: dict[str, str] = {}
    for logical in _logical_lines(text):
        key, value = _split_pair(logical)
        props[_unescape(key)] = _unescape(value)
    return props


def read_properties(path: str | Path) -> dict[str, str] | None:
    """
    Read a properties file. Returns None if it cannot be read.

    A missing, unreadable or undecodable file is an absent source, not an
    error.
    """
    try:
        raw = Path(path).read_bytes()
    except OSError:
        return None
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError:
        text = raw.decode("latin-1")
    return parse_properties(text)


def _logical_lines(text: str):
    """Yield logical lines: comments dropped, continuations joined."""
    pending = ""
    for physical in text.splitlines():
        line = physical.lstrip()
        if not pending and (not line or line[0] in "#!"):
            continue
        if _ends_with_continuation(line):
            pending += line[:-1]
            continue
        yield pending + line
        pending = ""
    if pending:
        yield pending


def _ends_with_continuation(line: str) -> bool:
    """True if the line ends in an odd number of backslashes."""
    count = len(line) - len(line.rstrip("\\"))
    return count % 2 == 1


def _split_pair(line: str) -> tuple[str, str]:
    i = 0
    n = len(line)
    while i < n:
        ch = line[i]
        if ch == "\\":
            i += 2
            continue
        if ch in "=: \t\f":
            break
        i += 1
    key = line[:i]
    rest = line[i:].lstrip(" \t\f")
    if rest[:1] in ("=", ":") and (i >= n or line[i] in " \t\f"):
        rest = rest[1:].lstrip(" \t\f")
    elif i < n and line[i] in "=:":
        rest = line[i + 1:].lstrip(" \t\f")
    return key, rest


def _unescape(value: str) -> str:
    if "\\" not in value:
        return value
    out = []
    i = 0
    n = len(value)
    while i < n:
        ch = value[i]
        if ch != "\\" or i + 1 >= n:
            out.append(ch)
            i += 1
            continue
        nxt = value[i + 1]
        if nxt == "u" and i + 6 <= n:
            try:
                out.append(chr(int(value[i + 2:i + 6], 16)))
                i += 6
                continue
            except ValueError:
                pass
        out.append(_ESCAPES.get(nxt, nxt))
        i += 2
    return "".join(out)
