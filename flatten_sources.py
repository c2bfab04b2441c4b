#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
flatten_sources.py
Inline every (transitive) Solidity import of a contract into one source unit,
the way explorers expect "single file" submissions.

Statements are found on a copy of the file with its comments blanked out, so
commented-out imports stay comments. Import aliases are resolved in the
importing file: `{Base as B}` turns every `B` back into `Base`, and namespace
aliases (`import * as R`, `import "x.sol" as R`) drop the `R.` prefix.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

from verify_errors import DuplicateLicenseError, SourceNotFound, UnsupportedImportAlias

log = logging.getLogger(__name__)

# import "a.sol"; | import "a.sol" as A; | import * as A from "a.sol"; | import {X, Y as Z} from "a.sol";
IMPORT_RE = re.compile(r"^[ \t]*import\s+[^;]*?[\"']([^\"']+)[\"'][^;]*;[ \t]*\r?\n?", re.MULTILINE)
PRAGMA_RE = re.compile(r"^[ \t]*pragma\s+[^;]+;[ \t]*\r?\n?", re.MULTILINE)
SPDX_LINE_RE = re.compile(r"^[ \t]*//[ \t]*SPDX-License-Identifier:.*(?:\r?\n)?", re.MULTILINE)
SPDX_MARKER = "SPDX-License-Identifier:"

COMMENT_OR_STRING_RE = re.compile(
    r"//[^\n]*|/\*.*?\*/|\"(?:\\.|[^\"\\\n])*\"|'(?:\\.|[^'\\\n])*'", re.DOTALL
)
IDENT = r"[A-Za-z_$][\w$]*"
NAMESPACE_ALIAS_RE = re.compile(
    rf"^\s*import\s+(?:\*\s*as\s+({IDENT})\s+from\b|[\"'][^\"']+[\"']\s*as\s+({IDENT})\s*;)"
)
SYMBOLS_RE = re.compile(r"^\s*import\s*\{([^}]*)\}\s*from\b")
SYMBOL_ALIAS_RE = re.compile(rf"^\s*({IDENT})\s+as\s+({IDENT})\s*$")


def _blank(s: str) -> str:
    return re.sub(r"[^\n]", " ", s)


def mask_comments(text: str, strings: bool = False) -> str:
    """
    Same length as `text`, with comment characters (and, with strings=True,
    string literal contents) replaced by spaces. Newlines are kept.
    """
    def repl(m: re.Match) -> str:
        s = m.group(0)
        if s.startswith("/"):
            return _blank(s)
        if strings:
            return s[0] + _blank(s[1:-1]) + s[-1]
        return s

    return COMMENT_OR_STRING_RE.sub(repl, text)


def parse_aliases(statement: str) -> Tuple[Dict[str, str], List[str]]:
    """Return ({alias: original symbol}, [namespace aliases]) for one import statement."""
    symbols: Dict[str, str] = {}
    namespaces: List[str] = []
    m = NAMESPACE_ALIAS_RE.match(statement)
    if m:
        namespaces.append(m.group(1) or m.group(2))
    m = SYMBOLS_RE.match(statement)
    if m:
        for part in m.group(1).split(","):
            a = SYMBOL_ALIAS_RE.match(part)
            if a and a.group(1) != a.group(2):
                symbols[a.group(2)] = a.group(1)
    return symbols, namespaces


def resolve_import(target: str, importer: Path, working_dir: Path) -> Optional[Path]:
    if target.startswith("./") or target.startswith("../"):
        candidates = [importer.parent / target]
    else:
        candidates = [working_dir / target]
        seen: Set[Path] = set()
        for base in (importer.parent, working_dir):
            for d in [base, *base.parents]:
                if d in seen:
                    continue
                seen.add(d)
                candidates.append(d / "node_modules" / target)
    for c in candidates:
        if c.is_file():
            return c.resolve()
    return None


def _collect(path: Path, working_dir: Path, done: List[Path], active: Set[Path], logger: logging.Logger) -> None:
    active.add(path)
    text = mask_comments(path.read_text(encoding="utf-8"))
    for m in IMPORT_RE.finditer(text):
        dep = resolve_import(m.group(1), path, working_dir)
        if dep is None:
            raise SourceNotFound(f"{m.group(1)} (imported from {path})")
        # diamond imports land here once; circular ones stop at the active set
        if dep in active or dep in done:
            continue
        logger.debug(f"Resolved import {m.group(1)} → {dep}")
        _collect(dep, working_dir, done, active, logger)
    active.discard(path)
    done.append(path)


def _identifier_re(name: str, member: bool = False) -> re.Pattern:
    tail = r"(\s*\.\s*)?" if member else ""
    return re.compile(rf"(?<![\w$.]){re.escape(name)}(?![\w$]){tail}")


def rewrite_body(text: str, path: Path) -> Tuple[str, List[str]]:
    """Drop import/pragma statements from one file and resolve its import aliases."""
    masked = mask_comments(text)
    code = mask_comments(text, strings=True)

    edits: List[Tuple[int, int, str]] = []
    symbols: Dict[str, str] = {}
    namespaces: List[str] = []
    for m in IMPORT_RE.finditer(masked):
        edits.append((m.start(), m.end(), ""))
        s, n = parse_aliases(m.group(0))
        symbols.update(s)
        namespaces.extend(n)

    pragmas: List[str] = []
    for m in PRAGMA_RE.finditer(masked):
        edits.append((m.start(), m.end(), ""))
        pragmas.append(" ".join(m.group(0).split()))

    removed = [(start, end) for start, end, _ in edits]

    def kept(pos: int) -> bool:
        return not any(start <= pos < end for start, end in removed)

    for alias, name in symbols.items():
        for m in _identifier_re(alias).finditer(code):
            if kept(m.start()):
                edits.append((m.start(), m.end(), name))

    for alias in namespaces:
        for m in _identifier_re(alias, member=True).finditer(code):
            if not kept(m.start()):
                continue
            if m.group(1) is None:
                raise UnsupportedImportAlias(alias, str(path))
            edits.append((m.start(), m.end(), ""))

    out: List[str] = []
    pos = 0
    for start, end, repl in sorted(edits):
        if start < pos:
            continue
        out.append(text[pos:start])
        out.append(repl)
        pos = end
    out.append(text[pos:])
    return "".join(out).strip("\n"), pragmas


def strip_license_markers(source: str) -> str:
    return SPDX_LINE_RE.sub("", source)


def _display_path(path: Path, working_dir: Path) -> str:
    try:
        return path.relative_to(working_dir).as_posix()
    except ValueError:
        return path.as_posix()


def flatten_source(
    source_path: str,
    license: Optional[str] = None,
    working_dir: Optional[str] = None,
    contract_name: str = "",
    logger: Optional[logging.Logger] = None,
) -> str:
    logger = logger or log
    root = Path(source_path)
    if not root.is_file():
        raise SourceNotFound(str(root), contract_name)
    root = root.resolve()
    wd = Path(working_dir).resolve() if working_dir else root.parent

    logger.debug(f"Flattening source file {root}")
    ordered: List[Path] = []
    _collect(root, wd, ordered, set(), logger)

    pragmas: Dict[str, str] = {}
    bodies: List[str] = []
    for path in ordered:
        body, found = rewrite_body(path.read_text(encoding="utf-8"), path)
        for key in found:
            pragmas.setdefault(key, key)
        bodies.append(f"// File: {_display_path(path, wd)}\n\n{body}\n")

    merged = "\n".join(pragmas.values()) + "\n\n" + "\n".join(bodies)

    if license:
        merged = f"// {SPDX_MARKER} {license}\n\n{strip_license_markers(merged)}"

    count = merged.count(SPDX_MARKER)
    if count > 1:
        raise DuplicateLicenseError(count)

    logger.debug(f"Flattened {len(ordered)} file(s) into {len(merged)} characters")
    return merged
