"""Deterministic, filesystem-safe photo names."""

from __future__ import annotations

import re

_UNSAFE_RE = re.compile(r"[^A-Za-z0-9_-]")


def safe_site_name(site_name: str) -> str:
    # one underscore per rejected character, runs are not collapsed
    return _UNSAFE_RE.sub("_", site_name)


def photo_filename(site_name: str, date: str, seq: int, lat: float, lng: float) -> str:
    """``{site}_{date}_{seq:03d}_{lat:.6f}_{lng:.6f}.jpg``

    >>> photo_filename("Trench Alpha!", "2024-05-01", 1, 41.015137, 28.979530)
    'Trench_Alpha__2024-05-01_001_41.015137_28.979530.jpg'
    """
    return f"{safe_site_name(site_name)}_{date}_{seq:03d}_{lat:.6f}_{lng:.6f}.jpg"


__all__ = ["photo_filename", "safe_site_name"]
