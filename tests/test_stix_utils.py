"""Tests for STIX object validation and string sanitisation."""

import pytest

from grc_records.utils.stix import (
    MAX_PLATFORMS,
    clean_platforms,
    clean_text,
    decode_entities,
    sanitize_string,
    validate_mitre_id,
    validate_stix_object,
)


class TestValidateStixObject:
    def test_accepts_attack_pattern(self) -> None:
        assert validate_stix_object(
            {"type": "attack-pattern", "id": "attack-pattern--1", "name": "Phishing"}
        )

    @pytest.mark.parametrize(
        "obj",
        [
            None,
            "attack-pattern",
            {"type": "malware", "id": "malware--1"},
            {"type": "attack-pattern"},
            {"type": "attack-pattern", "id": 5},
            {"type": "attack-pattern", "id": "x", "name": "<script>alert(1)</script>"},
            {"type": "attack-pattern", "id": "x", "description": "click javascript:void(0)"},
        ],
    )
    def test_rejects_malformed_or_active_content(self, obj) -> None:
        assert validate_stix_object(obj) is False


class TestSanitizeString:
    def test_removes_scripts_handlers_and_iframes(self) -> None:
        dirty = 'a<script>x()</script>b<iframe src="e"></iframe>c onclick= d JavaScript:e'

        assert sanitize_string(dirty, 100) == "abc  d e"

    def test_truncates(self) -> None:
        assert sanitize_string("abcdef", 3) == "abc"

    def test_non_string_becomes_empty(self) -> None:
        assert sanitize_string(None, 10) == ""
        assert sanitize_string(42, 10) == ""


def test_decode_entities_handles_named_and_numeric() -> None:
    assert decode_entities("Tom &amp; Jerry &#x27;s &#64; &lt;b&gt;") == "Tom & Jerry 's @ <b>"
    assert decode_entities("") == ""


def test_clean_text_sanitises_after_decoding() -> None:
    assert clean_text("&lt;script&gt;bad()&lt;/script&gt;ok", 50) == "ok"


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("T1078", True),
        ("T1055.012", True),
        ("T10", False),
        ("T1055.12", False),
        ("TA0001", False),
        ("t1078", False),
        (None, False),
    ],
)
def test_validate_mitre_id(value, expected: bool) -> None:
    assert validate_mitre_id(value) is expected


def test_clean_platforms_limits_count_and_length() -> None:
    platforms = [f"P{n}" for n in range(30)] + [None, "x" * 80, ""]

    cleaned = clean_platforms(platforms)

    assert len(cleaned) == MAX_PLATFORMS
    assert clean_platforms("Windows") == []
    assert len(clean_platforms(["y" * 80])[0]) == 50
