#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
bibfix.py — normalize pre-parsed BibTeX/biblatex records.

Pipeline (per record):
1) arXiv detection: `journal = {arXiv preprint arXiv:XXXX.XXXXX}` or
   `volume = {abs/XXXX.XXXXX}` -> @misc with eprint/eprinttype/howpublished
2) preprint housekeeping: synthesize howpublished for arXiv @misc
3) venue/title cleanup: strip venue boilerplate, title-case, fix acronyms,
   brace proper nouns
4) author footnote markers (*) removed
5) eprinttype casing (arXiv)
6) noise fields dropped
7) records sorted, `=`-aligned and wrapped on output

Input is expected to be pretty-printed already (e.g. by `biber --tool`):
brace-delimited values and blank-line separated records.

Notes:
- A record without an author, or one whose braces do not balance, aborts
  the whole run; nothing is written.
- Running bibfix on its own output changes nothing.
"""

from __future__ import annotations

import argparse
import logging
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping, Optional

from bibrecord import (
    DEFAULT_INDENT,
    DEFAULT_WRAP_WIDTH,
    MalformedRecordError,
    MissingAuthorError,
    Record,
    RecordStore,
    iter_raw_records,
    norm_space,
    parse_record,
)
from bibtitle import ACRONYMS, fix_acronyms, protect_capitalized, titlecase

logger = logging.getLogger(__name__)

# -----------------------------
# Config
# -----------------------------
@dataclass(frozen=True)
class FixConfig:
    acronyms: Mapping[str, str] = field(default_factory=lambda: ACRONYMS)
    wrap_width: int = DEFAULT_WRAP_WIDTH
    indent: int = DEFAULT_INDENT
    sort: bool = True


ARXIV_JOURNAL_RE = re.compile(r"arXiv\D*(\d+)\.(\d+)", re.IGNORECASE)
ARXIV_VOLUME_RE = re.compile(r"abs/(\d{4})\.(\d{4,5})")
ARXIV_WORD_RE = re.compile(r"arxiv", re.IGNORECASE)

VENUE_FIELDS = ("booktitle", "journal", "journaltitle")
CLEANED_FIELDS = ("booktitle", "journal", "journaltitle", "title", "shorttitle")

# Prefix match: "lang" also drops langid, "note" also drops notebook.
JUNK_FIELD_PREFIXES = (
    "urldate", "abstract", "keywords", "note", "lang",
    "issn", "location", "file", "annotation",
)

_UNITS = "first|second|third|fourth|fifth|sixth|seventh|eighth|ninth"
_TEENS = ("tenth|eleventh|twelfth|thirteenth|fourteenth|fifteenth|sixteenth|"
          "seventeenth|eighteenth|nineteenth")
_TENS = "twenty|thirty|forty|fifty|sixty|seventy|eighty|ninety"
_TENTHS = "twentieth|thirtieth|fortieth|fiftieth|sixtieth|seventieth|eightieth|ninetieth|hundredth"
ORDINAL_RE = re.compile(
    r"(?:\d+(?:st|nd|rd|th)|(?:(?:%s)[- ]?)?(?:%s)|%s|%s)\s+(?:annual\s+)?"
    % (_TENS, _UNITS, _TEENS, _TENTHS),
    re.IGNORECASE,
)
_THE_RE = re.compile(r"the\s+", re.IGNORECASE)
_PROCEEDINGS_RE = re.compile(r"proceedings\s+of\s+", re.IGNORECASE)
_CONFERENCE_ON_RE = re.compile(r"conference\s+on\s+", re.IGNORECASE)
_ADVANCES_RE = re.compile(r"advances\s+in\s+", re.IGNORECASE)
_LEADING_INT_RE = re.compile(r"\d+\s+")
_TRAILING_PAREN_RE = re.compile(r"\s*\([^()]*\)\Z")
_BRACE_RE = re.compile(r"(?<!\\)[{}]")


# -----------------------------
# Text cleanup
# -----------------------------
def strip_braces(s: str) -> str:
    # escaped \{ and \} are literal characters, keep them
    return _BRACE_RE.sub("", s or "")


def _strip_prefix(pattern: re.Pattern, s: str) -> str:
    m = pattern.match(s)
    return s[m.end():] if m else s


def strip_venue_boilerplate(name: str) -> str:
    """
    Reduce a venue name to its core:
    "Proceedings of the 35th Annual Conference on Neural Information
    Processing Systems" -> "Neural Information Processing Systems".
    The rules run until nothing changes, so the result is stable.
    """
    prev = None
    while name != prev:
        prev = name
        name = _strip_prefix(_THE_RE, name)
        name = _strip_prefix(ORDINAL_RE, name)
        name = _strip_prefix(_PROCEEDINGS_RE, name)
        m = _CONFERENCE_ON_RE.match(name)
        # short names such as "Conference on Robot Learning" stay intact
        if m and len(name[m.end():].split()) >= 4:
            name = name[m.end():]
        name = _strip_prefix(_ADVANCES_RE, name)
        name = _strip_prefix(_LEADING_INT_RE, name)
        name = _TRAILING_PAREN_RE.sub("", name).strip()
        name = ARXIV_WORD_RE.sub("arXiv", name)
        name = name.split(",", 1)[0].strip()
    return name


def clean_text_field(name: str, value: str, config: FixConfig) -> str:
    text = norm_space(strip_braces(value)).rstrip(".").strip()
    if name in VENUE_FIELDS:
        text = strip_venue_boilerplate(text)
    text = titlecase(text)
    text = fix_acronyms(text, config.acronyms)
    return protect_capitalized(text)


# -----------------------------
# Normalization steps
# -----------------------------
def convert_preprint(record: Record) -> bool:
    """Turn a journal-style arXiv record into @misc with eprint metadata."""
    m = None
    for name in ("journaltitle", "journal"):
        m = ARXIV_JOURNAL_RE.search(record.get(name) or "")
        if m:
            break
    if not m:
        m = ARXIV_VOLUME_RE.search(record.get("volume") or "")
    if not m:
        return False

    arxiv_id = f"{m.group(1)}.{m.group(2)}"
    record.type = "misc"
    record.setdefault("eprint", arxiv_id)
    record.setdefault("eprinttype", "arXiv")
    record.setdefault("howpublished", f"arXiv:{arxiv_id}")
    for name in ("volume", "journaltitle", "journal"):
        record.pop(name)
    logger.debug("%s: converted to @misc (arXiv %s)", record.key, arxiv_id)
    return True


def synthesize_howpublished(record: Record) -> None:
    if record.type != "misc" or "howpublished" in record:
        return
    eprint = record.get("eprint")
    eprinttype = record.get("eprinttype")
    if eprint and eprinttype and "arxiv" in eprinttype.lower():
        record.set("howpublished", f"arXiv:{eprint}")


def _drop(record: Record, name: str, why: str) -> None:
    if name in record:
        record.pop(name)
        logger.debug("%s: dropped %s (%s)", record.key, name, why)


def drop_noise_fields(record: Record) -> None:
    for name in list(record.fields):
        if name.lower().startswith(JUNK_FIELD_PREFIXES):
            _drop(record, name, "noise")

    if record.type == "misc":
        _drop(record, "eprintclass", "misc")
    else:
        _drop(record, "eprint", "not a preprint")
        _drop(record, "urldate", "not a preprint")

    url = record.get("url") or ""
    if "doi.org" in url.lower():
        _drop(record, "url", "doi link")

    doi = record.get("doi") or ""
    url = record.get("url") or ""
    if "arxiv" in doi.lower() and "arxiv" in url.lower():
        _drop(record, "doi", "arXiv doi next to arXiv url")

    number = record.get("number")
    howpublished = record.get("howpublished") or ""
    if number and number in howpublished:
        _drop(record, "number", "repeated in howpublished")


def normalize_record(record: Record, config: Optional[FixConfig] = None) -> Record:
    """Clean *record* in place and return it."""
    config = config or FixConfig()
    if "author" not in record:
        raise MissingAuthorError(record.key)

    convert_preprint(record)
    synthesize_howpublished(record)

    for name in CLEANED_FIELDS:
        if name in record:
            record.set(name, clean_text_field(name, record.get(name), config))
    record.rename("journaltitle", "journal")

    record.set("author", record.get("author").replace("*", ""))
    if "eprinttype" in record:
        record.set("eprinttype", ARXIV_WORD_RE.sub("arXiv", record.get("eprinttype")))

    drop_noise_fields(record)
    return record


def normalize_entry(raw: str, config: Optional[FixConfig] = None) -> Record:
    return normalize_record(parse_record(raw), config)


def normalize_texts(
    texts: Iterable[str],
    config: Optional[FixConfig] = None,
    store: Optional[RecordStore] = None,
) -> RecordStore:
    config = config or FixConfig()
    store = store if store is not None else RecordStore()
    for text in texts:
        for raw in iter_raw_records(text):
            store.insert(normalize_entry(raw, config))
    return store


# -----------------------------
# CLI
# -----------------------------
def read_text(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    return Path(path).read_text(encoding="utf-8")


def main(argv: Optional[list] = None) -> int:
    ap = argparse.ArgumentParser(prog="bibfix", description="Normalize pre-parsed BibTeX records.")
    ap.add_argument("inputs", nargs="*", help="One or more pre-parsed .bib files ('-' reads stdin)")
    ap.add_argument("-o", "--output", default=None, help="Write here instead of stdout")
    ap.add_argument("-w", "--wrap-width", type=int, default=DEFAULT_WRAP_WIDTH, help="Wrap field lines at this column")
    ap.add_argument("-i", "--indent", type=int, default=DEFAULT_INDENT, help="Spaces before each field")
    ap.add_argument("--unsorted", action="store_true", help="Keep input order instead of sorting by key")
    ap.add_argument("-v", "--verbose", action="store_true", help="Log every conversion and dropped field")
    args = ap.parse_args(argv)

    if not args.inputs:
        ap.print_usage(sys.stderr)
        return 0

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    config = FixConfig(
        wrap_width=max(1, args.wrap_width),
        indent=max(0, args.indent),
        sort=not args.unsorted,
    )
    store = RecordStore()
    for path in args.inputs:
        try:
            normalize_texts([read_text(path)], config, store)
        except OSError as exc:
            raise SystemExit(f"bibfix: error: {exc}")
        except MalformedRecordError as exc:
            raise SystemExit(f"bibfix: error: {path}: {exc}")

    output = store.emit(config.wrap_width, config.indent, sort=config.sort)
    if args.output:
        Path(args.output).write_text(output, encoding="utf-8")
    else:
        sys.stdout.write(output)
    logger.info("normalized %d records", len(store))
    return 0


if __name__ == "__main__":
    sys.exit(main())
