#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
bibdup.py - Report citations that appear more than once across BibTeX files.

Workflow:
1) Read all input .bib files with bibtexparser.
2) Build a comparison key per entry from title + author (lowercased,
   punctuation removed, whitespace collapsed).
3) Group citation keys sharing a comparison key.
4) Print one line per group with more than one member.
"""

from __future__ import annotations

import argparse
import logging
import re
import sys
from typing import Dict, Iterable, List, Optional

from bibtexparser.bibdatabase import BibDatabase
from bibtexparser.bparser import BibTexParser

logger = logging.getLogger(__name__)

_NON_WORD_RE = re.compile(r"[^\w\s]+")
_SPACE_RE = re.compile(r"\s+")


def comparison_key(title: str, author: str = "") -> str:
    t = f"{title or ''} {author or ''}".lower()
    t = _NON_WORD_RE.sub("", t)
    return _SPACE_RE.sub(" ", t).strip()


def _new_parser() -> BibTexParser:
    # bibtexparser parsers accumulate entries; use a fresh one per source
    parser = BibTexParser(common_strings=True)
    parser.ignore_nonstandard_types = False
    return parser


def read_bib(path: str) -> BibDatabase:
    if path == "-":
        return _new_parser().parse(sys.stdin.read())
    with open(path, "r", encoding="utf-8") as f:
        return _new_parser().parse_file(f)


def parse_bib(text: str) -> BibDatabase:
    return _new_parser().parse(text)


def read_entries(paths: Iterable[str]) -> List[Dict[str, str]]:
    entries: List[Dict[str, str]] = []
    for p in paths:
        db = read_bib(p)
        logger.debug("%s: %d entries", p, len(db.entries))
        entries.extend(db.entries)
    return entries


def find_duplicates(entries: Iterable[Dict[str, str]]) -> List[List[str]]:
    """
    Group citation keys by comparison key. Entries without a key or title
    are skipped. Only groups with more than one member are returned, each in
    first-seen order, groups ordered by their first key.
    """
    groups: Dict[str, List[str]] = {}
    for e in entries:
        cite = (e.get("ID") or "").strip()
        title = e.get("title") or ""
        if not cite or not title.strip():
            logger.debug("skipping entry without key or title: %r", cite or e)
            continue
        groups.setdefault(comparison_key(title, e.get("author", "")), []).append(cite)

    dups = [keys for keys in groups.values() if len(keys) > 1]
    dups.sort(key=lambda keys: keys[0])
    return dups


def format_groups(groups: List[List[str]]) -> str:
    return "".join(" ".join(keys) + "\n" for keys in groups)


def main(argv: Optional[list] = None) -> int:
    ap = argparse.ArgumentParser(prog="bibdup", description="Report duplicate BibTeX entries.")
    ap.add_argument("inputs", nargs="*", help="One or more .bib files ('-' reads stdin)")
    ap.add_argument("--quiet", action="store_true", help="Reduce console logs")
    args = ap.parse_args(argv)

    if not args.inputs:
        ap.print_usage(sys.stderr)
        return 0

    logging.basicConfig(
        level=logging.WARNING if args.quiet else logging.INFO,
        format="%(asctime)s %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        entries = read_entries(args.inputs)
    except OSError as exc:
        raise SystemExit(f"bibdup: error: {exc}")

    groups = find_duplicates(entries)
    sys.stdout.write(format_groups(groups))
    logger.info("entries: %d, duplicate groups: %d", len(entries), len(groups))
    return 0


if __name__ == "__main__":
    sys.exit(main())
