"""Ingest a batch of raw scraped records into the store snapshot.

Loads the snapshot (or starts an empty store), runs the batch through the
record pipeline, writes the snapshot back atomically and prints the report.

Input file: a JSON array of raw records, or {"records": [...]}, each shaped
like {"objectType": "Lead", "source": "list", "fields": {...}}.
"""

import json
import sys
from pathlib import Path

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from core.config import PipelineSettings
from core.errors import StoreUnavailable
from core.observability.logging import configure_logging
from core.storage import load_store_snapshot, save_store_snapshot
from pipeline.ingest import RecordPipeline


def load_raws(path: Path) -> list:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("records", [])
    return data


def main():
    import argparse

    parser = argparse.ArgumentParser(description="Ingest raw CRM records into the store snapshot")
    parser.add_argument("--input", required=True, help="JSON file of raw records")
    parser.add_argument("--store", default=None, help="Snapshot path (default: CRM_PIPELINE_SNAPSHOT_PATH)")
    parser.add_argument("--batch-id", default=None, help="Correlation id for this batch")
    parser.add_argument("--dry-run", action="store_true", help="Process but do not write the snapshot")
    args = parser.parse_args()

    settings = PipelineSettings.from_env()
    configure_logging(settings.log_level, json_format=settings.log_json)
    store_path = Path(args.store) if args.store else settings.snapshot_path

    try:
        store = load_store_snapshot(store_path, missing_ok=True)
        report = RecordPipeline(settings).process_batch(store, load_raws(args.input), batch_id=args.batch_id)
        if not args.dry_run:
            ref = save_store_snapshot(store, store_path)
            print(f"Snapshot written: {ref.storage_uri} ({ref.size_bytes} bytes)", file=sys.stderr)
    except StoreUnavailable as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)

    print(json.dumps(report.to_dict(), indent=2, default=str))
    print(
        f"\naccepted={report.valid_count} rejected={report.invalid_count} "
        f"inserted={report.inserted} updated={report.updated}",
        file=sys.stderr,
    )


if __name__ == "__main__":
    main()
