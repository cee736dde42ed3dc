"""Batch ingestion and export entry points."""

from pipeline.export import export_records, serialize, to_csv, to_json, write_export
from pipeline.ingest import BatchReport, RecordError, RecordPipeline, RecordWarning

__all__ = [
    "export_records",
    "serialize",
    "to_csv",
    "to_json",
    "write_export",
    "BatchReport",
    "RecordError",
    "RecordPipeline",
    "RecordWarning",
]
