"""Core data models - canonical record and store types.

This package contains the record models shared by the normalizer, the
merge engine, the duplicate finder and the pipeline entry points.
"""

from core.models.canonical import (
    # Base
    CanonicalBase,
    ObjectType,
    SourceContext,
    STAGE_BUCKETS,
    utc_now,

    # Records
    RawRecord,
    ValidatedRecord,
    CanonicalRecord,

    # Store
    StoreMetadata,
    CanonicalStore,
)

from core.models.refs import DataReference

__all__ = [
    # Base
    "CanonicalBase",
    "ObjectType",
    "SourceContext",
    "STAGE_BUCKETS",
    "utc_now",

    # Records
    "RawRecord",
    "ValidatedRecord",
    "CanonicalRecord",

    # Store
    "StoreMetadata",
    "CanonicalStore",

    # References
    "DataReference",
]
