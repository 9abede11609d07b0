"""Resolve labels, identities and option sets for raw DOM field descriptors."""

from __future__ import annotations

import uuid
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from .models import LabelSource, NormalizedField, RawChoice, RawFieldDescriptor
from .utils import humanise_id, humanise_name, slugify

UNKNOWN_PREFIX = "unknown_"

SELECT_STOPLIST = frozenset({"select", "choose", "---", "select category", "select job", ""})
CHOICE_TYPES = frozenset({"radio", "checkbox"})

LabelResolver = Callable[[RawFieldDescriptor], Optional[str]]
IdentityResolver = Callable[[RawFieldDescriptor, str], Optional[str]]


def _from_source(source: LabelSource) -> LabelResolver:
    def resolve(raw: RawFieldDescriptor) -> Optional[str]:
        return raw.label_from(source) or None

    resolve.__name__ = f"label_from_{source.value}"
    return resolve


def label_from_placeholder(raw: RawFieldDescriptor) -> Optional[str]:
    return raw.placeholder.strip() or None


def label_from_name(raw: RawFieldDescriptor) -> Optional[str]:
    return humanise_name(raw.name) if raw.name else None


def label_from_id(raw: RawFieldDescriptor) -> Optional[str]:
    return humanise_id(raw.id) if raw.id else None


LABEL_RESOLVERS: Tuple[LabelResolver, ...] = (
    _from_source(LabelSource.EXPLICIT),
    _from_source(LabelSource.HEADING),
    _from_source(LabelSource.GROUPED),
    _from_source(LabelSource.ENCLOSING),
    _from_source(LabelSource.PRECEDING),
    _from_source(LabelSource.NEARBY),
    label_from_placeholder,
    label_from_name,
    label_from_id,
)


def identity_from_name(raw: RawFieldDescriptor, label: str) -> Optional[str]:
    return raw.name or None


def identity_from_id(raw: RawFieldDescriptor, label: str) -> Optional[str]:
    return raw.id or None


def identity_from_label(raw: RawFieldDescriptor, label: str) -> Optional[str]:
    return slugify(label) or None


IDENTITY_RESOLVERS: Tuple[IdentityResolver, ...] = (
    identity_from_name,
    identity_from_id,
    identity_from_label,
)


def first_resolved(candidates: Iterable[Optional[str]]) -> Optional[str]:
    for candidate in candidates:
        if candidate:
            return candidate
    return None


def _random_identity() -> str:
    return UNKNOWN_PREFIX + uuid.uuid4().hex[:6]


def _dedupe(values: Iterable[str]) -> Tuple[str, ...]:
    return tuple(dict.fromkeys(value for value in values if value))


def _choice_label(choice: RawChoice) -> str:
    return first_resolved(
        text.strip() for text in (choice.explicit_label, choice.enclosing_label, choice.adjacent_label)
    ) or ""


class FieldNormalizer:
    """Turn raw DOM descriptors into fields with a stable label and identity.

    Both resolution chains are ordered tuples of pure functions; the first
    non-empty answer wins. Only the synthetic ``unknown_`` fallback is not
    deterministic, and it can be replaced through ``synthetic_identity``.
    """

    def __init__(
        self,
        label_resolvers: Sequence[LabelResolver] = LABEL_RESOLVERS,
        identity_resolvers: Sequence[IdentityResolver] = IDENTITY_RESOLVERS,
        synthetic_identity: Callable[[], str] = _random_identity,
    ) -> None:
        self._label_resolvers = tuple(label_resolvers)
        self._identity_resolvers = tuple(identity_resolvers)
        self._synthetic_identity = synthetic_identity

    def normalize(self, raw_fields: Iterable[RawFieldDescriptor]) -> List[NormalizedField]:
        return [self.normalize_field(raw) for raw in raw_fields]

    def normalize_field(self, raw: RawFieldDescriptor) -> NormalizedField:
        label = self.resolve_label(raw)
        return NormalizedField(
            final_name=self.resolve_identity(raw, label),
            label=label,
            type=raw.type,
            placeholder=raw.placeholder,
            options=self.resolve_options(raw),
            tag=raw.tag,
            element_id=raw.id,
            element_name=raw.name,
        )

    def resolve_label(self, raw: RawFieldDescriptor) -> str:
        return first_resolved(resolver(raw) for resolver in self._label_resolvers) or ""

    def resolve_identity(self, raw: RawFieldDescriptor, label: str) -> str:
        resolved = first_resolved(resolver(raw, label) for resolver in self._identity_resolvers)
        return resolved or self._synthetic_identity()

    def resolve_options(self, raw: RawFieldDescriptor) -> Tuple[str, ...]:
        if raw.tag == "select":
            return _dedupe(
                option.strip() for option in raw.options if option.strip().lower() not in SELECT_STOPLIST
            )
        if raw.type in CHOICE_TYPES:
            if len(raw.group) <= 1:
                return ()
            member_labels = _dedupe(_choice_label(choice) for choice in raw.group)
            if member_labels:
                return member_labels
            return _dedupe(choice.strip() for choice in raw.grouped_choices)
        return tuple(option.strip() for option in raw.options if option.strip())


__all__ = [
    "FieldNormalizer",
    "IDENTITY_RESOLVERS",
    "LABEL_RESOLVERS",
    "SELECT_STOPLIST",
    "UNKNOWN_PREFIX",
    "first_resolved",
]
