"""Tests for the record scanner, parser and emitter."""

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from bibrecord import (
    MalformedRecordError,
    Record,
    RecordStore,
    find_closing_brace,
    format_record,
    iter_raw_records,
    norm_space,
    parse_record,
)


SAMPLE = """@Article{Smith2020,
  AUTHOR = {John Smith and Jane Doe},
  title = {A {Nested} Title},
  year = 2020,
  month = jan,
  pages = "1--10",
}
"""


# ---------------------------------------------------------------------------
# Scanner
# ---------------------------------------------------------------------------

class TestFindClosingBrace:
    def test_nested(self):
        assert find_closing_brace("{a{b}c}d", 0) == 6

    def test_escaped_brace_is_literal(self):
        assert find_closing_brace(r"{a\}b}", 0) == 5

    def test_unterminated(self):
        with pytest.raises(MalformedRecordError):
            find_closing_brace("{a{b}", 0)

    def test_must_start_on_brace(self):
        with pytest.raises(MalformedRecordError):
            find_closing_brace("abc", 0)


class TestIterRawRecords:
    def test_splits_records_and_skips_blocks(self):
        text = (
            "@comment{jabref-meta: x}\n\n"
            "@string{acm = {ACM}}\n\n"
            "@article{a, title = {One}}\n\n"
            "@book{b, title = {Two {Braced}}}\n"
        )
        raws = list(iter_raw_records(text))
        assert raws == [
            "@article{a, title = {One}}",
            "@book{b, title = {Two {Braced}}}",
        ]

    def test_unbalanced_record(self):
        with pytest.raises(MalformedRecordError):
            list(iter_raw_records("@article{a, title = {One}\n"))

    def test_empty_text(self):
        assert list(iter_raw_records("")) == []


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

class TestParseRecord:
    def test_fields_and_literals(self):
        r = parse_record(SAMPLE)
        assert r.key == "Smith2020"
        assert r.type == "article"
        assert r.fields == {
            "author": "John Smith and Jane Doe",
            "title": "A {Nested} Title",
            "year": "2020",
            "month": "jan",
            "pages": "1--10",
        }
        assert r.bare == {"year", "month"}

    def test_whitespace_collapsed(self):
        r = parse_record("@misc{k,\n  title = {Deep\n      Learning},\n}")
        assert r.get("title") == "Deep Learning"

    def test_record_without_fields(self):
        r = parse_record("@misc{onlykey}")
        assert r.key == "onlykey"
        assert r.fields == {}

    def test_repeated_field_keeps_last(self):
        r = parse_record("@misc{k, note = {a}, NOTE = {b}}")
        assert r.fields == {"note": "b"}

    def test_missing_key(self):
        with pytest.raises(MalformedRecordError):
            parse_record("@article{, title = {x}}")

    def test_not_a_record(self):
        with pytest.raises(MalformedRecordError):
            parse_record("title = {x}")

    def test_unbalanced_braces(self):
        with pytest.raises(MalformedRecordError) as exc:
            parse_record("@article{k, title = {x}")
        assert exc.value.key == "k"

    def test_garbage_after_value(self):
        with pytest.raises(MalformedRecordError):
            parse_record("@article{k, title = {x} junk}")

    def test_stray_closing_brace_in_quotes(self):
        with pytest.raises(MalformedRecordError):
            parse_record('@article{k, title = "x } y"}')


class TestRecord:
    def test_rename_keeps_bare_flag(self):
        r = Record(key="k", type="misc", fields={"yr": "2020"}, bare={"yr"})
        r.rename("yr", "year")
        assert r.fields == {"year": "2020"}
        assert r.bare == {"year"}

    def test_set_clears_bare_flag(self):
        r = parse_record("@article{k, journal = jmlr, year = 2020}")
        r.set("journal", "JMLR")
        assert r.bare == {"year"}
        assert "journal = {JMLR}," in format_record(r)

    def test_setdefault_does_not_overwrite(self):
        r = Record(key="k", type="misc", fields={"eprint": "1"})
        assert r.setdefault("eprint", "2") == "1"
        assert r.setdefault("eprinttype", "arXiv") == "arXiv"

    def test_pop_clears_bare(self):
        r = Record(key="k", type="misc", fields={"year": "2020"}, bare={"year"})
        assert r.pop("year") == "2020"
        assert r.bare == set()
        assert r.pop("year") is None


def test_norm_space():
    assert norm_space("  a \n  b\tc ") == "a b c"
    assert norm_space(None) == ""


# ---------------------------------------------------------------------------
# Emitter
# ---------------------------------------------------------------------------

class TestFormatRecord:
    def test_sorted_aligned_fields(self):
        r = Record(
            key="k",
            type="misc",
            fields={"title": "T", "year": "2020", "howpublished": "x"},
            bare={"year"},
        )
        assert format_record(r) == (
            "@misc{k,\n"
            "  howpublished = {x},\n"
            "  title        = {T},\n"
            "  year         = 2020,\n"
            "}"
        )

    def test_indent(self):
        r = Record(key="k", type="misc", fields={"title": "T"})
        assert format_record(r, indent=4).splitlines()[1] == "    title = {T},"

    def test_long_value_wrapped_under_value_start(self):
        words = " ".join(["word"] * 30)
        r = Record(key="k", type="misc", fields={"title": words})
        lines = format_record(r, wrap_width=40).splitlines()[1:-1]
        assert len(lines) > 1
        assert all(len(line) <= 40 for line in lines)
        assert lines[0].startswith("  title = {word")
        for line in lines[1:]:
            assert line.startswith(" " * len("  title = "))
            assert not line[len("  title = ")].isspace()
        assert norm_space(" ".join(lines)) == "title = {" + words + "},"

    def test_unbreakable_value_left_alone(self):
        r = Record(key="k", type="misc", fields={"url": "x" * 100})
        lines = format_record(r, wrap_width=40).splitlines()
        assert lines[1] == "  url = {" + "x" * 100 + "},"
        assert len(lines) == 3

    def test_output_reparses(self):
        r = parse_record(SAMPLE)
        again = parse_record(format_record(r, wrap_width=30))
        assert again == r


class TestRecordStore:
    def _rec(self, key, kind="misc"):
        return Record(key=key, type=kind, fields={"author": "A"})

    def test_sorted_case_insensitive(self):
        store = RecordStore()
        for key in ("b", "A", "c"):
            store.insert(self._rec(key))
        assert [r.key for r in store.records()] == ["A", "b", "c"]

    def test_unsorted_keeps_first_seen_order(self):
        store = RecordStore()
        for key in ("b", "A", "c"):
            store.insert(self._rec(key))
        assert [r.key for r in store.records(sort=False)] == ["b", "A", "c"]

    def test_last_insert_wins_in_first_position(self):
        store = RecordStore()
        store.insert(self._rec("b"))
        store.insert(self._rec("a"))
        store.insert(self._rec("b", kind="book"))
        assert len(store) == 2
        assert store.get("b").type == "book"
        assert [r.key for r in store.records(sort=False)] == ["b", "a"]

    def test_emit_one_blank_line_between_records(self):
        store = RecordStore()
        store.insert(self._rec("b"))
        store.insert(self._rec("a"))
        assert store.emit() == (
            "@misc{a,\n"
            "  author = {A},\n"
            "}\n"
            "\n"
            "@misc{b,\n"
            "  author = {A},\n"
            "}\n"
        )

    def test_emit_empty(self):
        assert RecordStore().emit() == ""
