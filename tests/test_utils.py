from datetime import date, datetime, timezone

from canvas_cli.utils import clean_text, parse_timestamp, strip_html, to_query_date, truncate


def test_clean_text_reduces_whitespace():
    text = "Hello   world\nthis  is  a\t test"
    assert clean_text(text) == "Hello world this is a test"


def test_clean_text_smart_punctuation():
    assert clean_text("“Quiz” – week’s") == '"Quiz" - week\'s'


def test_strip_html():
    body = "<p>Read <b>chapter&nbsp;3</b></p>\n<p>before Friday</p>"
    assert strip_html(body) == "Read chapter 3 before Friday"
    assert strip_html(None) == ""


def test_truncate():
    assert truncate("short", 10) == "short"
    assert truncate("a" * 20, 5) == "aaaaa..."


def test_parse_timestamp_canvas_format():
    dt = parse_timestamp("2024-03-01T23:59:00Z")
    assert dt == datetime(2024, 3, 1, 23, 59, tzinfo=timezone.utc)


def test_parse_timestamp_naive_date_is_utc():
    assert parse_timestamp("2024-03-05").tzinfo is not None


def test_parse_timestamp_bad_input():
    assert parse_timestamp(None) is None
    assert parse_timestamp("") is None
    assert parse_timestamp("next tuesday") is None


def test_to_query_date():
    assert to_query_date(date(2024, 3, 1)) == "2024-03-01"
    assert to_query_date(datetime(2024, 3, 1, 8, 0)) == "2024-03-01T08:00:00+00:00"
    assert to_query_date("2024-03-01") == "2024-03-01"
    assert to_query_date(None) is None
