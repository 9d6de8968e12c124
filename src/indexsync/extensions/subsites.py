"""Multi-tenant (subsite) filtering of indexes and dependent documents."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

from indexsync.hooks import UPDATE_DEPENDENTS, UPDATE_INDEXES, HookRegistry

if TYPE_CHECKING:
    from indexsync.configuration import IndexSettings
    from indexsync.document.document import RecordDocument

SUBSITE_FIELD = "SubsiteID"


def _subsite_id(document: "RecordDocument", field: str = SUBSITE_FIELD) -> int:
    record = document.record
    if record is None:
        return 0
    return int(record.get(field) or 0)


def filter_indexes_for_subsite(
    document: "RecordDocument", indexes: Dict[str, "IndexSettings"]
) -> None:
    """Drop indexes that do not belong to the document's subsite.

    Records without a subsite stay only in indexes that name their exact
    type in ``includeClasses``. Records with a subsite stay in indexes whose
    ``subsite_id`` is unset, ``all`` or equal to theirs.
    """
    subsite_id = _subsite_id(document)

    for name, index in list(indexes.items()):
        if not subsite_id:
            if index.class_settings(document.source_type()) is None:
                del indexes[name]
            continue

        index_subsite = index.subsite_id
        if index_subsite is None or index_subsite == "all":
            continue
        if int(index_subsite) != subsite_id:
            del indexes[name]


class SubsiteDependentFilter:
    """Drop dependent documents that belong to another subsite than the origin."""

    def __init__(
        self,
        field: str = SUBSITE_FIELD,
        equals: Optional[Callable[[Any, Any], bool]] = None,
    ) -> None:
        self.field = field
        self.equals = equals or (lambda origin, candidate: int(origin or 0) == int(candidate or 0))

    def __call__(self, document: "RecordDocument", documents: List["RecordDocument"]) -> None:
        origin = document.record
        if origin is None:
            return
        origin_value = origin.get(self.field)
        documents[:] = [
            dependent
            for dependent in documents
            if dependent.record is not None
            and self.equals(origin_value, dependent.record.get(self.field))
        ]


def register_subsite_support(hooks: HookRegistry, *, field: str = SUBSITE_FIELD) -> None:
    hooks.register(UPDATE_INDEXES, filter_indexes_for_subsite)
    hooks.register(UPDATE_DEPENDENTS, SubsiteDependentFilter(field))
