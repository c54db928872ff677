"""
Semi-structured extraction of chart data embedded in HTML.

The pollen graph page carries its data as a Highcharts JavaScript object
literal, not JSON. Recovery runs in four stages so that upstream drift fails
in exactly one place:

1. marker     - find ``series:`` followed by an array literal
2. tokenizer  - slice up to the matching closing bracket (quote aware)
3. fix-ups    - quote ``Date.UTC(...)`` calls, quote bare keys, ' -> "
4. decode     - json + pydantic validation into HighchartSeries

Example input fragment::

    series: [{visible:false,name:'2020',data:[[Date.UTC(1972,0,1),4]]}]

Dates always use the sentinel year 1972 and a zero-based month; the real
year is the series name.
"""

import json
import re
from datetime import date
from typing import Any, Optional

from pydantic import BaseModel, TypeAdapter, ValidationError

from ..errors import ScrapeFormatError

SERIES_MARKER_RE = re.compile(r"series\s*:\s*(?=\[)")
DATE_UTC_RE = re.compile(
    r"Date\.UTC\(\s*(\d{4})\s*,\s*(\d{1,2})\s*,\s*(\d{1,2})\s*\)"
)
BARE_KEY_RE = re.compile(r"(?<=[{,])(\s*)(visible|name|data)(\s*):")

_OPENERS = {"[": "]", "{": "}"}


class HighchartSeries(BaseModel):
    """One yearly series of the chart."""
    visible: bool = True
    name: str
    data: list[list[Any]]


_SERIES_LIST = TypeAdapter(list[HighchartSeries])


def find_series_start(html: str) -> int:
    """Index of the opening bracket of the series array."""
    match = SERIES_MARKER_RE.search(html)
    if match is None:
        raise ScrapeFormatError("Series marker not found in page")
    return match.end()


def slice_array_literal(text: str, start: int) -> str:
    """
    Return the bracketed literal starting at ``text[start]``.

    Tracks nesting of [] and {} and skips over quoted strings, so brackets
    inside labels do not end the literal early.
    """
    if start >= len(text) or text[start] != "[":
        raise ScrapeFormatError(f"Expected '[' at offset {start}")

    stack: list[str] = []
    quote: Optional[str] = None
    escaped = False

    for index in range(start, len(text)):
        char = text[index]
        if quote:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == quote:
                quote = None
            continue

        if char in ("'", '"'):
            quote = char
        elif char in _OPENERS:
            stack.append(_OPENERS[char])
        elif char in ("]", "}"):
            if not stack or stack.pop() != char:
                raise ScrapeFormatError(f"Unbalanced '{char}' at offset {index}")
            if not stack:
                return text[start:index + 1]

    raise ScrapeFormatError("Series literal is not terminated")


def coerce_to_json(literal: str) -> str:
    """Apply the structural fix-ups that turn the JS literal into JSON."""
    coerced = DATE_UTC_RE.sub(lambda m: f'"Date.UTC({m[1]},{m[2]},{m[3]})"', literal)
    coerced = BARE_KEY_RE.sub(r'\1"\2"\3:', coerced)
    return coerced.replace("'", '"')


def decode_series(html: str) -> list[HighchartSeries]:
    """Run every stage and return the validated series."""
    literal = slice_array_literal(html, find_series_start(html))
    coerced = coerce_to_json(literal)

    try:
        payload = json.loads(coerced)
    except json.JSONDecodeError as e:
        raise ScrapeFormatError(f"Series literal is not decodable: {e}") from e

    try:
        return _SERIES_LIST.validate_python(payload)
    except ValidationError as e:
        raise ScrapeFormatError(f"Unexpected series shape: {e.error_count()} errors") from e


def parse_encoded_date(encoded: str, year: int) -> date:
    """
    Recover the calendar date of a data point.

    The encoded year is a sentinel and is replaced by ``year``; the month is
    zero-based upstream.

    Raises:
        ValueError: if the text is not a Date.UTC call or not a real date
    """
    match = DATE_UTC_RE.fullmatch(encoded.strip())
    if match is None:
        raise ValueError(f"Not an encoded date: {encoded!r}")
    month = int(match[2]) + 1
    day = int(match[3])
    return date(year, month, day)
