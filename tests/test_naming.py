from __future__ import annotations

import re

from trenchsight.capture.naming import photo_filename, safe_site_name


def test_photo_filename_matches_field_example():
    name = photo_filename("Trench Alpha!", "2024-05-01", 1, 41.015137, 28.979530)

    assert name == "Trench_Alpha__2024-05-01_001_41.015137_28.979530.jpg"


def test_photo_filename_is_deterministic():
    args = ("Kazı Alanı / 3", "2024-06-12", 42, -12.3456789, 130.0)

    assert photo_filename(*args) == photo_filename(*args)


def test_site_segment_only_has_safe_characters():
    for site in ["a b c", "ç/ğ\\ü", "already_safe-Name9", "../../etc/passwd", "***"]:
        safe = safe_site_name(site)
        assert re.fullmatch(r"[A-Za-z0-9_-]*", safe)
        assert len(safe) == len(site)


def test_consecutive_unsafe_characters_are_not_collapsed():
    assert safe_site_name("a  !b") == "a___b"


def test_sequence_padding_and_overflow():
    assert "_007_" in photo_filename("s", "2024-01-01", 7, 0.0, 0.0)
    assert "_1000_" in photo_filename("s", "2024-01-01", 1000, 0.0, 0.0)


def test_coordinates_use_six_fractional_digits():
    name = photo_filename("s", "2024-01-01", 1, -33.8688, 151.2093)

    assert name.endswith("_-33.868800_151.209300.jpg")
