"""Utility helpers for AIAutofill."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Dict, List, Mapping, TypeVar

_NON_ALNUM_RUN = re.compile(r"[^a-z0-9]+")
_WORD_START = re.compile(r"\b\w")

V = TypeVar("V")


def slugify(text: str) -> str:
    """Lowercase ``text`` and collapse every non-alphanumeric run to ``_``."""

    return _NON_ALNUM_RUN.sub("_", text.lower())


def capitalise_words(text: str) -> str:
    # Only the first character of each word changes; "firstName" stays "FirstName".
    return _WORD_START.sub(lambda match: match.group(0).upper(), text)


def humanise_name(name: str) -> str:
    cleaned = name.replace("_", " ").replace("[", "").replace("]", "")
    return capitalise_words(cleaned).strip()


def humanise_id(element_id: str) -> str:
    return capitalise_words(element_id.replace("_", " ")).strip()


def partition_fields(fields: Mapping[str, V], size: int) -> List[Dict[str, V]]:
    """Split an ordered mapping into consecutive chunks of at most ``size`` entries."""

    if size < 1:
        raise ValueError("chunk size must be at least 1")
    items = list(fields.items())
    return [dict(items[start:start + size]) for start in range(0, len(items), size)]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def isoformat(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def timestamp_slug(moment: datetime) -> str:
    """Filesystem-safe timestamp that sorts chronologically."""

    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%fZ")


__all__ = [
    "capitalise_words",
    "humanise_id",
    "humanise_name",
    "isoformat",
    "partition_fields",
    "slugify",
    "timestamp_slug",
    "utc_now",
]
