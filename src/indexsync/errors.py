"""Error hierarchy for IndexSync."""

from __future__ import annotations


class IndexSyncError(Exception):
    """Base error for the indexing engine."""


class IndexConfigurationError(IndexSyncError):
    """A field mapping or record cannot be turned into an indexable document."""


class RecordNotFound(IndexConfigurationError):
    """The backing record of a document does not exist."""


class InvalidFieldName(IndexConfigurationError):
    """An attribute name is rejected by the indexing backend."""


class InvalidAttributeShape(IndexConfigurationError):
    """A field resolves to a map, a mixed list or an unsupported value."""


class AmbiguousRelationField(IndexConfigurationError):
    """A field resolves to a relation or record instead of a scalar."""


class UnresolvablePath(IndexConfigurationError):
    """A dotted property path cannot be walked against the record graph."""


class IndexingServiceError(IndexSyncError):
    """Failure while handing documents to the indexing backend."""


class NotPublished(IndexingServiceError):
    """A document was added to the index without a live version."""
