"""Name canonicalization used for inventory identity."""

from __future__ import annotations

import re

_WHITESPACE_RE = re.compile(r"\s+")
_DISALLOWED_RE = re.compile(r"[^a-z0-9 ]")

# Stems after which a plural takes "es" ("boxes", "peaches", "glasses", "tomatoes").
_ES_STEMS = ("x", "z", "ch", "sh", "ss", "us", "o")
# Singular words that already end in "s" and must keep it ("glass", "asparagus").
_KEEP_S_ENDINGS = ("ss", "us")


def _collapse(value: str) -> str:
    return _WHITESPACE_RE.sub(" ", value).strip()


def _singularize(value: str) -> str:
    if value.endswith("ies") and len(value) > 3:
        return value[:-3] + "y"
    if value.endswith("es") and len(value) > 2 and value[:-2].endswith(_ES_STEMS):
        return value[:-2]
    if value.endswith("s") and len(value) > 1 and not value.endswith(_KEEP_S_ENDINGS):
        return value[:-1]
    return value


def canonicalize(raw_name: str) -> str:
    """Return the canonical identity key for ``raw_name``.

    Lowercases, collapses whitespace, strips everything outside ``[a-z0-9 ]`` and
    applies one suffix-stripping pass to approximate the singular form. Returns an
    empty string when nothing survives; callers drop such items.
    """

    cleaned = _collapse(raw_name or "").lower()
    alnum = _collapse(_DISALLOWED_RE.sub("", cleaned))
    if not alnum:
        return ""
    # Stripping a lone trailing "s" word leaves a dangling space.
    return _collapse(_singularize(alnum))


def generate_variants(canonical_key: str) -> set[str]:
    """Surface forms that legacy, pre-canonical records may have been stored under.

    These are lookup keys only; they are not themselves guaranteed to be canonical.
    """

    if not canonical_key:
        return set()
    variants = {canonical_key, f"{canonical_key}s", f"{canonical_key}es"}
    if canonical_key.endswith("y"):
        variants.add(f"{canonical_key[:-1]}ies")
    return variants


def normalize_lookup_name(name: str | None) -> str:
    """Lowercase-and-trim key used by the grocery and recipe comparisons."""

    if not isinstance(name, str):
        return ""
    return name.lower().strip()


def display_name(raw_name: str) -> str:
    """Title-case a free-text name for presentation ("green apples" -> "Green Apples")."""

    words = _collapse(raw_name or "").split(" ")
    return " ".join(word[:1].upper() + word[1:] for word in words if word)


__all__ = ["canonicalize", "generate_variants", "normalize_lookup_name", "display_name"]
