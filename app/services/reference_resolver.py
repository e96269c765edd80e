"""
app/services/reference_resolver.py

Loads categories and neighbourhoods once per import and resolves the
human-entered references in each CSV row against them.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from app.domain.business_import import ReferenceEntity, ReferenceKind
from app.domain.import_errors import ReferenceFetchError
from app.repositories.business_store import BusinessStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReferenceIndex:
    """
    Slug-then-name lookup for one reference kind.
    """

    by_slug: Mapping[str, Any] = field(default_factory=dict)
    by_name: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_entities(cls, entities: Iterable[ReferenceEntity]) -> ReferenceIndex:
        by_slug: dict[str, Any] = {}
        by_name: dict[str, Any] = {}
        for entity in entities:
            if entity.slug:
                by_slug[entity.slug] = entity.id
            if entity.name:
                by_name[entity.name.lower()] = entity.id
        return cls(by_slug=MappingProxyType(by_slug), by_name=MappingProxyType(by_name))

    def resolve(self, text: str | None) -> Any | None:
        """
        Return the id for ``text`` by exact slug, then case-insensitive name.

        Unknown or blank text resolves to None; it is never an error.
        """

        value = (text or "").strip()
        if not value:
            return None
        if value in self.by_slug:
            return self.by_slug[value]
        return self.by_name.get(value.lower())


@dataclass(frozen=True)
class ReferenceLookup:
    """
    Snapshot of both reference collections for the duration of one import.
    """

    categories: ReferenceIndex = field(default_factory=ReferenceIndex)
    neighbourhoods: ReferenceIndex = field(default_factory=ReferenceIndex)


class ReferenceResolver:
    """
    Builds a ReferenceLookup with exactly one fetch per reference kind.
    """

    def __init__(self, store: BusinessStore) -> None:
        self._store = store

    def build(self) -> ReferenceLookup:
        """
        Raises:
            ReferenceFetchError: If either collection cannot be fetched.
        """

        categories = self._fetch(ReferenceKind.CATEGORY)
        neighbourhoods = self._fetch(ReferenceKind.NEIGHBOURHOOD)
        logger.info(
            "Reference data loaded categories=%d neighbourhoods=%d",
            len(categories),
            len(neighbourhoods),
        )
        return ReferenceLookup(
            categories=ReferenceIndex.from_entities(categories),
            neighbourhoods=ReferenceIndex.from_entities(neighbourhoods),
        )

    def _fetch(self, kind: ReferenceKind) -> list[ReferenceEntity]:
        try:
            return list(self._store.fetch_all(kind))
        except Exception as exc:
            raise ReferenceFetchError(
                "Failed to fetch categories or neighbourhoods"
                f" ({kind.value}: {exc})"
            ) from exc
