"""Tests for subsite filtering."""

from __future__ import annotations

from indexsync.configuration import IndexConfiguration, IndexSettings, SearchSettings
from indexsync.document.document import RecordDocument
from indexsync.extensions.subsites import (
    SubsiteDependentFilter,
    filter_indexes_for_subsite,
    register_subsite_support,
)
from indexsync.hooks import UPDATE_DEPENDENTS, UPDATE_INDEXES


def _indexes() -> dict:
    return {
        "shared": IndexSettings(include_classes={"Page": True}),
        "all": IndexSettings(include_classes={"Page": True}, subsite_id="all"),
        "site_1": IndexSettings(include_classes={"Page": True}, subsite_id=1),
        "site_2": IndexSettings(include_classes={"Page": True}, subsite_id=2),
        "blog": IndexSettings(include_classes={"BlogPage": True}, subsite_id=2),
    }


class TestFilterIndexes:
    """Test filter_indexes_for_subsite."""

    def test_record_with_subsite(self, make_record, services) -> None:
        """Indexes for another subsite are dropped."""
        page = make_record("Page", Title="Home", SubsiteID=1)
        indexes = _indexes()

        filter_indexes_for_subsite(RecordDocument(page, services), indexes)

        assert set(indexes) == {"shared", "all", "site_1"}

    def test_record_without_subsite(self, make_record, services) -> None:
        """Only indexes naming the exact type remain."""
        blog = make_record("BlogPage", Title="Blog")
        indexes = _indexes()

        filter_indexes_for_subsite(RecordDocument(blog, services), indexes)

        assert set(indexes) == {"blog"}

    def test_all_indexes_checked(self, make_record, services) -> None:
        """Every non-matching index is removed, not just the first."""
        page = make_record("Page", Title="Home", SubsiteID=3)
        indexes = _indexes()

        filter_indexes_for_subsite(RecordDocument(page, services), indexes)

        assert set(indexes) == {"shared", "all"}


class TestDependentFilter:
    """Test SubsiteDependentFilter."""

    def test_drops_other_subsites(self, make_record, services) -> None:
        tag = make_record("Tag", Title="news", SubsiteID=1)
        same = RecordDocument(make_record("Article", SubsiteID=1), services)
        other = RecordDocument(make_record("Article", SubsiteID=2), services)
        documents = [same, other]

        SubsiteDependentFilter()(RecordDocument(tag, services), documents)

        assert documents == [same]

    def test_custom_equality(self, make_record, services) -> None:
        tag = make_record("Tag", Title="news", SubsiteID=1)
        other = RecordDocument(make_record("Article", SubsiteID=2), services)
        documents = [other]

        SubsiteDependentFilter(equals=lambda origin, candidate: True)(
            RecordDocument(tag, services), documents
        )

        assert documents == [other]

    def test_missing_values_match_main_site(self, make_record, services) -> None:
        tag = make_record("Tag", Title="news")
        article = RecordDocument(make_record("Article", SubsiteID=0), services)
        documents = [article]

        SubsiteDependentFilter()(RecordDocument(tag, services), documents)

        assert documents == [article]


class TestRegistration:
    """Test register_subsite_support end to end."""

    def test_registers_hooks(self, services) -> None:
        register_subsite_support(services.hooks)

        assert services.hooks.callbacks(UPDATE_INDEXES)
        assert services.hooks.callbacks(UPDATE_DEPENDENTS)

    def test_dependents_filtered(self, make_record, store, services) -> None:
        register_subsite_support(services.hooks)
        tag = make_record("Tag", Title="news", SubsiteID=1)
        same = make_record("Article", Title="same", SubsiteID=1)
        other = make_record("Article", Title="other", SubsiteID=2)
        store.set_relation(same, "Tags", [tag])
        store.set_relation(other, "Tags", [tag])

        dependents = RecordDocument(tag, services).dependent_documents()

        assert [doc.identifier() for doc in dependents] == [f"article_{same.id}"]

    def test_should_index_uses_subsite_indexes(self, make_record, services, schema) -> None:
        services.configuration = IndexConfiguration(
            SearchSettings.model_validate(
                {"indexes": {"site_2": {"includeClasses": {"Page": True}, "subsite_id": 2}}}
            ),
            schema,
        )
        register_subsite_support(services.hooks)
        page = make_record("Page", Title="Home", SubsiteID=1)

        assert not RecordDocument(page, services).should_index()
