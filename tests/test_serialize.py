"""Tests for text cleaning and SQL literal quoting."""

import sqlite3

import pytest

from shell_brain.serialize import clean_text, quote_literal


def _round_trip(literal: str):
    conn = sqlite3.connect(":memory:")
    try:
        conn.execute("CREATE TABLE t (v)")
        conn.execute(f"INSERT INTO t (v) VALUES ({literal})")
        return conn.execute("SELECT v FROM t").fetchone()[0]
    finally:
        conn.close()


class TestCleanText:
    def test_none_stays_none(self):
        assert clean_text(None) is None

    def test_control_characters_become_spaces(self):
        assert clean_text("a\x00b\nc\td\x1be\x7ff\x85g") == "a b c d e f g"

    def test_printable_text_is_untouched(self):
        text = "echo 'hi' \"there\" C:\\path ünïcode → ok"
        assert clean_text(text) == text

    def test_bounding(self):
        assert clean_text("abcdef", max_length=3) == "abc"


class TestQuoteLiteral:
    def test_none_is_null(self):
        assert quote_literal(None) == "NULL"

    def test_empty_string_is_not_null(self):
        assert quote_literal("") == "''"

    def test_quotes_are_doubled(self):
        assert quote_literal("it's") == "'it''s'"

    def test_numbers_are_bare(self):
        assert quote_literal(3) == "3"
        assert quote_literal(2.5) == "2.5"
        assert quote_literal(float("nan")) == "NULL"

    def test_backslash_escaping_is_opt_in(self):
        assert quote_literal("a\\b") == "'a\\b'"
        assert quote_literal("a\\b", escape_backslashes=True) == "'a\\\\b'"

    @pytest.mark.parametrize("text", [
        "git commit -m 'it''s done'",
        "echo \"quoted\" && echo 'single'",
        "C:\\Users\\me\\file.txt",
        "'; DROP TABLE commands; --",
        "trailing backslash \\",
        "",
    ])
    def test_round_trip_through_sqlite(self, text):
        assert _round_trip(quote_literal(text)) == text

    def test_round_trip_with_control_characters_yields_cleaned_text(self):
        text = "line1\nline2\x00'quoted'\\"
        assert _round_trip(quote_literal(text)) == clean_text(text)

    def test_null_round_trip(self):
        assert _round_trip(quote_literal(None)) is None
