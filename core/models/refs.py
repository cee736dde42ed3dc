"""Data reference model for persisted store snapshots."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field


class DataReference(BaseModel):
    """Reference to a stored snapshot with metadata for retrieval and verification.

    Attributes:
        storage_uri: Absolute file path to the snapshot
        content_hash: SHA256 hash of the content for integrity verification
        content_type: MIME type (always "application/json" for snapshots)
        size_bytes: Size of the snapshot in bytes
        stored_at: Timestamp when the snapshot was written
    """
    storage_uri: str = Field(..., description="Absolute file path to the snapshot")
    content_hash: str = Field(..., description="SHA256 hash of content")
    content_type: str = Field(default="application/json", description="MIME type")
    size_bytes: int = Field(..., description="Size in bytes")
    stored_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), description="Storage timestamp")
