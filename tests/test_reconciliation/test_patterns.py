"""Unit tests for rule pattern matching."""

from __future__ import annotations

from app.services.reconciliation.patterns import pattern_matches


def test_case_insensitive_search() -> None:
    assert pattern_matches("rent", "MONTHLY RENT PAYMENT")


def test_regex_anchors_respected() -> None:
    assert pattern_matches(r"^zelle", "Zelle from J Smith")
    assert not pattern_matches(r"^zelle", "Transfer via Zelle")


def test_no_match() -> None:
    assert not pattern_matches("deposit", "Monthly rent")


def test_invalid_regex_falls_back_to_substring() -> None:
    assert pattern_matches("unit [4", "Rent unit [4B]")
    assert not pattern_matches("unit [4", "Rent unit 5")
