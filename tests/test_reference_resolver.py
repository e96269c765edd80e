"""
tests/test_reference_resolver.py

Slug-then-name reference resolution and the one-fetch-per-kind contract.
"""

from __future__ import annotations

import pytest
from conftest import CAFE_ID, MITTE_ID, FakeBusinessStore

from app.domain.business_import import ReferenceEntity, ReferenceKind
from app.domain.import_errors import ReferenceFetchError
from app.services.reference_resolver import ReferenceIndex, ReferenceResolver


@pytest.fixture()
def categories() -> ReferenceIndex:
    return ReferenceIndex.from_entities(
        [
            ReferenceEntity(id=CAFE_ID, slug="cafe", name="Cafe"),
            ReferenceEntity(id="bar-id", slug="cocktail-bar", name="Bar"),
        ]
    )


class TestReferenceIndex:
    def test_exact_slug_match(self, categories: ReferenceIndex) -> None:
        assert categories.resolve("cafe") == CAFE_ID

    def test_case_mismatched_text_falls_back_to_name(self, categories: ReferenceIndex) -> None:
        assert categories.resolve("Cafe") == CAFE_ID
        assert categories.resolve("BAR") == "bar-id"

    def test_slug_match_is_case_sensitive(self, categories: ReferenceIndex) -> None:
        assert categories.resolve("Cocktail-Bar") is None

    def test_unknown_text_resolves_to_none(self, categories: ReferenceIndex) -> None:
        assert categories.resolve("unknown-xyz") is None

    @pytest.mark.parametrize("text", [None, "", "   "])
    def test_blank_text_resolves_to_none(self, categories: ReferenceIndex, text: str | None) -> None:
        assert categories.resolve(text) is None

    def test_surrounding_whitespace_is_ignored(self, categories: ReferenceIndex) -> None:
        assert categories.resolve("  cafe ") == CAFE_ID

    def test_slug_wins_over_another_entity_name(self) -> None:
        index = ReferenceIndex.from_entities(
            [
                ReferenceEntity(id=1, slug="bar", name="Wine Bar"),
                ReferenceEntity(id=2, slug="pub", name="bar"),
            ]
        )

        assert index.resolve("bar") == 1

    def test_maps_are_read_only(self, categories: ReferenceIndex) -> None:
        with pytest.raises(TypeError):
            categories.by_slug["new"] = 1  # type: ignore[index]


class TestReferenceResolver:
    def test_fetches_each_kind_exactly_once(self, store: FakeBusinessStore) -> None:
        lookup = ReferenceResolver(store).build()

        assert store.fetch_calls == [ReferenceKind.CATEGORY, ReferenceKind.NEIGHBOURHOOD]
        assert lookup.categories.resolve("cafe") == CAFE_ID
        assert lookup.neighbourhoods.resolve("Mitte") == MITTE_ID

    def test_fetch_failure_raises_reference_fetch_error(self) -> None:
        failing = FakeBusinessStore(fail_fetch=True)

        with pytest.raises(ReferenceFetchError) as excinfo:
            ReferenceResolver(failing).build()

        assert "Failed to fetch categories or neighbourhoods" in str(excinfo.value)
        assert isinstance(excinfo.value.__cause__, ConnectionError)
