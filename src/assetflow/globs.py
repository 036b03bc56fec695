# globs.py
from __future__ import annotations

import re
from pathlib import Path
from typing import List

GLOB_CHARS = "*?["


def has_magic(pattern: str) -> bool:
    return any(ch in pattern for ch in GLOB_CHARS)


def glob_to_regex(pattern: str) -> re.Pattern:
    """
    `*`, `?` and `[...]` stay inside one path segment; `**` spans any
    number of segments, including none (`src/**/*.less` matches `src/a.less`).
    """
    i, n = 0, len(pattern)
    out: List[str] = []
    while i < n:
        c = pattern[i]
        if c == "*":
            if pattern.startswith("**", i):
                i += 2
                if i < n and pattern[i] == "/":
                    i += 1
                    out.append("(?:.*/)?")
                else:
                    out.append(".*")
                continue
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "[":
            j = pattern.find("]", i + 2 if pattern[i + 1:i + 2] in ("!", "]") else i + 1)
            if j == -1:
                out.append(re.escape(c))
            else:
                body = pattern[i + 1:j].replace("\\", "\\\\")
                if body.startswith("!"):
                    body = "^" + body[1:]
                out.append(f"[{body}]")
                i = j
        else:
            out.append(re.escape(c))
        i += 1
    return re.compile("".join(out) + r"\Z")


def static_base(pattern: str) -> str:
    """Leading path segments of `pattern` that contain no glob characters."""
    base: List[str] = []
    for part in pattern.split("/")[:-1]:
        if has_magic(part):
            break
        base.append(part)
    return "/".join(base)


def expand(root: Path, pattern: str) -> List[Path]:
    """Files under `root` matching `pattern`, sorted by relative path."""
    regex = glob_to_regex(pattern)
    base = root / static_base(pattern)
    if not base.is_dir():
        return []
    out = []
    for p in base.rglob("*"):
        if p.is_file() and regex.match(p.relative_to(root).as_posix()):
            out.append(p)
    return sorted(out, key=lambda p: p.relative_to(root).as_posix())
