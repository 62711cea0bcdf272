import io

import pytest

from teachos.grep import grep, match, match_here, match_star


def test_match_here_anchored_at_start():
    assert match_here("ab", "abc") is True
    assert match_here("bc", "abc") is False


def test_match_star():
    assert match_star("a", "b", "aaab") is True
    assert match_star("a", "b", "aaac") is False
    assert match_star(".", "c", "xyzc") is True


def test_grep_yields_matching_lines():
    lines = list(grep("foo", io.StringIO("foo\nbar\nfoobar\n")))
    assert lines == ["foo\n", "foobar\n"]


def test_grep_skips_unterminated_last_line():
    assert list(grep("foo", io.StringIO("foo\nfoo"))) == ["foo\n"]


def test_grep_discards_overlong_line_head():
    text = "a" * 2000 + "\nfoo\n"
    assert list(grep("foo", io.StringIO(text))) == ["foo\n"]


def test_grep_lines_all_match():
    text = "one\ntwo\nthree\n"
    for line in grep("o", io.StringIO(text)):
        assert match("o", line.rstrip("\n"))