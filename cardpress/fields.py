"""
fields.py

Responsibility: the fixed registry of personalizable card fields and the
sanitizer that turns untrusted input into a registry-filtered value map.

Every value that reaches the renderer must have passed through
`normalize_fields`; unknown ids never survive it.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any

_WHITESPACE_RUN = re.compile(r"\s+")


@dataclass(frozen=True)
class FieldConfig:
    """Where one field lives in the card document."""

    id: str
    selector: str
    occurrence_index: int | None = None
    attribute_name: str | None = None


class FieldRegistry:
    """Ordered, read-only collection of `FieldConfig` keyed by id."""

    def __init__(self, configs: Iterable[FieldConfig]) -> None:
        self._configs = tuple(configs)
        self._by_id = {c.id: c for c in self._configs}
        if len(self._by_id) != len(self._configs):
            raise ValueError("Field ids must be unique.")

    def __contains__(self, field_id: object) -> bool:
        return field_id in self._by_id

    def __iter__(self) -> Iterator[FieldConfig]:
        return iter(self._configs)

    def __len__(self) -> int:
        return len(self._configs)

    def get(self, field_id: str) -> FieldConfig | None:
        return self._by_id.get(field_id)

    @property
    def ids(self) -> tuple[str, ...]:
        return tuple(c.id for c in self._configs)


FIELD_REGISTRY = FieldRegistry(
    [
        FieldConfig("phone", ".card__phone"),
        FieldConfig("companyWordLeft", ".card__company-word", occurrence_index=0),
        FieldConfig("companyAmpersand", ".card__company-ampersand"),
        FieldConfig("companyWordRight", ".card__company-word", occurrence_index=1),
        FieldConfig("companyTagline", ".card__company-tagline"),
        FieldConfig("personFirst", ".card__person-first"),
        FieldConfig("personLast", ".card__person-last"),
        FieldConfig("title", ".card__title"),
        FieldConfig("address", ".card__bottom-address"),
        FieldConfig("faxLabel", ".card__bottom-contact--fax .card__bottom-label"),
        FieldConfig("faxValue", ".card__bottom-contact--fax .card__bottom-value"),
        FieldConfig("telexLabel", ".card__bottom-contact--telex .card__bottom-label"),
        FieldConfig("telexValue", ".card__bottom-contact--telex .card__bottom-value"),
    ]
)


def sanitize_value(raw: Any) -> str:
    """
    Collapse whitespace runs to a single space and trim the ends.
    Anything that is not a string becomes an empty string.
    """
    if not isinstance(raw, str):
        return ""
    return _WHITESPACE_RUN.sub(" ", raw).strip()


def normalize_fields(raw: Any, registry: FieldRegistry = FIELD_REGISTRY) -> dict[str, str]:
    """
    Keep only ids known to `registry`, each mapped to its sanitized value.
    A non-mapping input yields an empty map.
    """
    result: dict[str, str] = {}
    if not isinstance(raw, Mapping):
        return result

    for key, value in raw.items():
        if key not in registry:
            continue
        result[key] = sanitize_value(value)
    return result
