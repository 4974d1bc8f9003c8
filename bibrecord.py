#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
bibrecord.py — record model, brace scanner and emitter for pre-parsed .bib text.

Input is expected in the shape a BibTeX pretty-printer (e.g. `biber --tool`)
produces: `@type{key, name = {value}, ...}` records whose values are either
brace-delimited or bare literals (`year = 2020`, `month = jan`).
"""

from __future__ import annotations

import logging
import re
import textwrap
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Set

logger = logging.getLogger(__name__)

DEFAULT_WRAP_WIDTH = 90
DEFAULT_INDENT = 2

_ENTRY_START_RE = re.compile(r"@\s*([A-Za-z]+)\s*\{")
_HEADER_RE = re.compile(r"\s*@\s*([A-Za-z]+)\s*(\{)\s*([^,\s{}]*)\s*")
_FIELD_NAME_RE = re.compile(r"([A-Za-z][\w:.+-]*)\s*=\s*")
_BARE_RE = re.compile(r"[^\s,{}\"#]+")
SKIPPED_BLOCKS = {"string", "preamble"}


class MalformedRecordError(ValueError):
    """A record that cannot be split into type, key and balanced fields."""

    def __init__(self, reason: str, key: Optional[str] = None) -> None:
        self.reason = reason
        self.key = key
        super().__init__(f"{key}: {reason}" if key else reason)


class MissingAuthorError(MalformedRecordError):
    def __init__(self, key: Optional[str] = None) -> None:
        super().__init__("record has no author field", key=key)


def norm_space(s: str) -> str:
    return " ".join((s or "").replace("\n", " ").split()).strip()


@dataclass
class Record:
    key: str
    type: str
    fields: Dict[str, str] = field(default_factory=dict)
    # field names whose value is a bare literal (emitted without braces)
    bare: Set[str] = field(default_factory=set)

    def __contains__(self, name: str) -> bool:
        return name in self.fields

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.fields.get(name, default)

    def set(self, name: str, value: str) -> None:
        # rewritten values are free text and are emitted braced
        self.bare.discard(name)
        self.fields[name] = value

    def setdefault(self, name: str, value: str) -> str:
        if name not in self.fields:
            self.set(name, value)
        return self.fields[name]

    def pop(self, name: str, default: Optional[str] = None) -> Optional[str]:
        self.bare.discard(name)
        return self.fields.pop(name, default)

    def rename(self, old: str, new: str) -> None:
        was_bare = old in self.bare
        value = self.pop(old)
        if value is None:
            return
        self.set(new, value)
        if was_bare:
            self.bare.add(new)


# -----------------------------
# Scanner
# -----------------------------
def find_closing_brace(text: str, start: int, key: Optional[str] = None) -> int:
    """Return the index of the `}` matching the `{` at text[start]."""
    if text[start:start + 1] != "{":
        raise MalformedRecordError(f"expected '{{' at offset {start}", key=key)
    depth = 0
    i = start
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    raise MalformedRecordError("unterminated braces", key=key)


def _find_closing_quote(text: str, start: int, key: Optional[str]) -> int:
    depth = 0
    i = start + 1
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth < 0:
                raise MalformedRecordError("unbalanced braces in quoted value", key=key)
        elif ch == '"' and depth == 0:
            return i
        i += 1
    raise MalformedRecordError("unterminated quoted value", key=key)


def iter_raw_records(text: str) -> Iterator[str]:
    """Yield the raw `@type{...}` text of every record in *text*."""
    pos = 0
    while True:
        m = _ENTRY_START_RE.search(text, pos)
        if not m:
            return
        end = find_closing_brace(text, m.end() - 1)
        kind = m.group(1).lower()
        if kind in SKIPPED_BLOCKS:
            logger.warning("skipping @%s block at offset %d", kind, m.start())
        elif kind != "comment":
            yield text[m.start():end + 1]
        pos = end + 1


def parse_record(raw: str) -> Record:
    m = _HEADER_RE.match(raw)
    if not m:
        raise MalformedRecordError("cannot find entry type and citation key")
    key = m.group(3)
    if not key:
        raise MalformedRecordError("record has no citation key")
    close = find_closing_brace(raw, m.start(2), key=key)
    body = raw[m.end():close]
    if body and not body.startswith(","):
        raise MalformedRecordError("expected ',' after citation key", key=key)

    record = Record(key=key, type=m.group(1).lower())
    _parse_fields(body, record)
    return record


def _parse_fields(body: str, record: Record) -> None:
    key = record.key
    pos = 0
    n = len(body)
    while True:
        while pos < n and (body[pos].isspace() or body[pos] == ","):
            pos += 1
        if pos >= n:
            return
        m = _FIELD_NAME_RE.match(body, pos)
        if not m or m.end() >= n:
            raise MalformedRecordError(f"cannot parse field near {body[pos:pos + 30]!r}", key=key)
        name = m.group(1).lower()
        pos = m.end()

        bare = False
        if body[pos] == "{":
            end = find_closing_brace(body, pos, key=key)
            value = body[pos + 1:end]
            pos = end + 1
        elif body[pos] == '"':
            end = _find_closing_quote(body, pos, key)
            value = body[pos + 1:end]
            pos = end + 1
        else:
            vm = _BARE_RE.match(body, pos)
            if not vm:
                raise MalformedRecordError(f"cannot parse value of field {name!r}", key=key)
            value = vm.group()
            bare = True
            pos = vm.end()

        record.set(name, norm_space(value))
        if bare:
            record.bare.add(name)

        while pos < n and body[pos].isspace():
            pos += 1
        if pos < n and body[pos] != ",":
            raise MalformedRecordError(f"expected ',' after field {name!r}", key=key)


# -----------------------------
# Emitter
# -----------------------------
def wrap_line(prefix: str, text: str, width: int) -> List[str]:
    """
    Soft-wrap `prefix + text` at whitespace so lines fit *width*.
    Continuation lines are aligned under the start of *text*; words are never
    split, so a line without a break point before the limit stays long.
    """
    line = prefix + text
    if len(line) <= width:
        return [line]
    lines = textwrap.wrap(
        text,
        width=width,
        initial_indent=prefix,
        subsequent_indent=" " * len(prefix),
        break_long_words=False,
        break_on_hyphens=False,
    )
    return lines or [line]


def format_record(record: Record, wrap_width: int = DEFAULT_WRAP_WIDTH, indent: int = DEFAULT_INDENT) -> str:
    pad = " " * indent
    names = sorted(record.fields)
    width = max((len(n) for n in names), default=0)
    lines = [f"@{record.type}{{{record.key},"]
    for name in names:
        value = record.fields[name]
        if name not in record.bare:
            value = "{" + value + "}"
        lines.extend(wrap_line(f"{pad}{name.ljust(width)} = ", value + ",", wrap_width))
    lines.append("}")
    return "\n".join(lines)


class RecordStore:
    """
    Run-scoped, insertion-ordered collection of finished records.
    Re-inserting a key replaces the record but keeps its first-seen position.
    """

    def __init__(self) -> None:
        self._records: Dict[str, Record] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, key: str) -> bool:
        return key in self._records

    def get(self, key: str) -> Optional[Record]:
        return self._records.get(key)

    def insert(self, record: Record) -> None:
        if record.key in self._records:
            logger.debug("%s: duplicate citation key, keeping the later record", record.key)
        self._records[record.key] = record

    def records(self, sort: bool = True) -> List[Record]:
        out = list(self._records.values())
        if sort:
            out.sort(key=lambda r: (r.key.lower(), r.key))
        return out

    def emit(self, wrap_width: int = DEFAULT_WRAP_WIDTH, indent: int = DEFAULT_INDENT, sort: bool = True) -> str:
        chunks = [format_record(r, wrap_width, indent) for r in self.records(sort)]
        if not chunks:
            return ""
        return "\n\n".join(chunks) + "\n"
