"""Parser for the ``speedtest-cli --simple`` summary output.

The utility prints exactly three lines, always in this order::

    Ping: 23.456 ms
    Download: 85.67 Mbit/s
    Upload: 12.34 Mbit/s

Each line is matched against its own pattern by position. A reordered or
duplicated field is a malformed output, not something to recover from.
"""

from __future__ import annotations

import math
import re
from typing import List, Tuple

from .errors import ParseError
from .models import MeasurementResult, utcnow

_NUMBER = r"([0-9]+(?:\.[0-9]+)?)"

LINE_PATTERNS: Tuple[Tuple[str, re.Pattern], ...] = (
    ("ping", re.compile(rf"Ping:\s+{_NUMBER}\s+ms", re.ASCII)),
    ("download", re.compile(rf"Download:\s+{_NUMBER}\s+Mbit/s", re.ASCII)),
    ("upload", re.compile(rf"Upload:\s+{_NUMBER}\s+Mbit/s", re.ASCII)),
)


def parse_speedtest_output(output: str) -> MeasurementResult:
    """Convert captured stdout into a validated :class:`MeasurementResult`.

    Raises :class:`ParseError` if the text is not exactly the three expected
    lines or any value is not a positive, finite number.
    """

    lines = output.strip().splitlines()
    if len(lines) != len(LINE_PATTERNS):
        raise ParseError(
            f"failed to parse speedtest output: expected {len(LINE_PATTERNS)} lines, got {len(lines)}",
            output=output,
        )

    values: List[float] = []
    for number, ((field, pattern), line) in enumerate(zip(LINE_PATTERNS, lines), start=1):
        match = pattern.fullmatch(line.strip())
        if not match:
            raise ParseError(
                f"failed to parse speedtest output: line {number} is not a {field} line: {line!r}",
                output=output,
            )
        value = float(match.group(1))
        if not math.isfinite(value):
            raise ParseError(
                f"failed to parse speedtest output: {field} is out of range on line {number}",
                output=output,
            )
        if value <= 0:
            raise ParseError(
                f"failed to parse speedtest output: {field} must be positive, got {value:g}",
                output=output,
            )
        values.append(value)

    ping_ms, download_mbps, upload_mbps = values
    return MeasurementResult(
        download_mbps=download_mbps,
        upload_mbps=upload_mbps,
        ping_ms=ping_ms,
        timestamp=utcnow(),
    )
