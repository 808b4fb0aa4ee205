# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Byte size parsing and formatting."""

from __future__ import annotations

import re

_STEP = 1024
_SIZE_RE = re.compile(r"(\d+)\s*(?:([kmgt])b?|b)?", re.IGNORECASE)
_SHIFT = {"k": 1, "m": 2, "g": 3, "t": 4}


def format_bytes(n: int) -> str:
    """Render a byte count for humans: ``512 B``, ``1.5 KB``, ``2.0 TB``."""
    if n < _STEP:
        return f"{max(n, 0)} B"
    value = n / _STEP
    for unit in ("KB", "MB", "GB"):
        if value < _STEP:
            return f"{value:.1f} {unit}"
        value /= _STEP
    return f"{value:.1f} TB"


def parse_size(s: str | int) -> int:
    """Turn ``"16MB"``, ``"256m"``, ``"1g"`` or ``"100"`` into a byte count.

    Units are binary and case-insensitive, with an optional trailing ``b``.
    An ``int`` is returned as-is.
    """
    if isinstance(s, int):
        return s
    match = _SIZE_RE.fullmatch(s.strip())
    if match is None:
        msg = f"invalid size: {s!r}"
        raise ValueError(msg)
    number, unit = match.groups()
    return int(number) * _STEP ** _SHIFT.get((unit or "").lower(), 0)
