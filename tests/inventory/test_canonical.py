"""Tests for inventory name canonicalization."""

from __future__ import annotations

import pytest

from snapshelf.inventory.canonical import (
    canonicalize,
    display_name,
    generate_variants,
    normalize_lookup_name,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Apple", "apple"),
        ("apples", "apple"),
        ("  Green   Apples!! ", "green apple"),
        ("berries", "berry"),
        ("tomatoes", "tomato"),
        ("boxes", "box"),
        ("peaches", "peach"),
        ("glasses", "glass"),
        ("glass", "glass"),
        ("asparagus", "asparagus"),
        ("cheese", "cheese"),
        ("Eggs", "egg"),
        ("7-Up", "7up"),
        ("!!!", ""),
        ("", ""),
    ],
)
def test_canonicalize(raw, expected):
    assert canonicalize(raw) == expected


@pytest.mark.parametrize(
    "raw",
    [
        "Apples",
        "berries",
        "glasses",
        "tomatoes",
        "dresses",
        "Hummus",
        "ies",
        "es",
        "s",
        "Lens",
        "apple s",
        "a s",
        "Vitamin D s",
    ],
)
def test_canonicalize_is_idempotent(raw):
    once = canonicalize(raw)

    assert canonicalize(once) == once


def test_generate_variants_covers_legacy_plurals():
    assert generate_variants("apple") == {"apple", "apples", "applees"}
    assert generate_variants("berry") == {"berry", "berrys", "berryes", "berries"}
    assert generate_variants("") == set()


def test_normalize_lookup_name_only_lowercases_and_trims():
    assert normalize_lookup_name("  Eggs ") == "eggs"
    assert normalize_lookup_name(None) == ""
    assert normalize_lookup_name(42) == ""


def test_display_name_capitalizes_each_word():
    assert display_name("green  apples") == "Green Apples"
    assert display_name("iPhone charger") == "IPhone Charger"


def test_stripped_trailing_word_leaves_no_dangling_space():
    assert canonicalize("apple s") == "apple"
    assert canonicalize("Vitamin D s") == "vitamin d"
    assert canonicalize("a s") == "a"
