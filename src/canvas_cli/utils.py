"""canvas_cli.utils

Small helpers shared across the canvas_cli package.
"""
from __future__ import annotations

import html
import re
import unicodedata
from datetime import date, datetime, timezone
from typing import Optional, Union

from dateutil import parser as date_parser

__all__ = [
    "clean_text",
    "strip_html",
    "truncate",
    "parse_timestamp",
    "to_query_date",
]


_tag_re = re.compile(r"<[^>]*>")

DateLike = Union[str, date, datetime]


def clean_text(s: str) -> str:
    """Unicode-normalise, replace smart quotes/dashes, collapse whitespace."""
    if not isinstance(s, str):
        return ""
    t = unicodedata.normalize("NFKC", s)
    for orig, repl in [
        ("\u2013", "-"),  # en-dash
        ("\u2014", "-"),  # em-dash
        ("\u201C", '"'), ("\u201D", '"'),
        ("\u2018", "'"), ("\u2019", "'"),
        ("\u00A0", " "),
    ]:
        t = t.replace(orig, repl)
    return " ".join(t.split())


def strip_html(s: Optional[str]) -> str:
    """Drop tags from a Canvas HTML body and return readable plain text."""
    if not s:
        return ""
    return clean_text(html.unescape(_tag_re.sub(" ", s)))


def truncate(s: str, limit: int = 500) -> str:
    if len(s) <= limit:
        return s
    return s[:limit].rstrip() + "..."


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp from Canvas into an aware datetime.

    Naive values are taken to be UTC. Returns None for empty or unparseable
    input.
    """
    if not value:
        return None
    try:
        dt = date_parser.isoparse(value)
    except (TypeError, ValueError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def to_query_date(value: Optional[DateLike]) -> Optional[str]:
    """Render a date-ish value the way Canvas query parameters expect it."""
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)
