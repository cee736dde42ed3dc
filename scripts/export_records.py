"""Export one object type from the store snapshot as CSV or JSON."""

import sys
from pathlib import Path

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from core.config import PipelineSettings
from core.errors import StoreUnavailable
from core.observability.logging import configure_logging
from core.storage import load_store_snapshot
from pipeline.export import EXPORT_FORMATS, export_records, serialize, write_export


def main():
    import argparse

    parser = argparse.ArgumentParser(description="Export stored records")
    parser.add_argument("--type", required=True, help="Object type (Lead, Contact, Account, Opportunity, Task)")
    parser.add_argument("--format", choices=EXPORT_FORMATS, default="csv")
    parser.add_argument("--output", default=None, help="Output file (default: stdout)")
    parser.add_argument("--store", default=None, help="Snapshot path (default: CRM_PIPELINE_SNAPSHOT_PATH)")
    args = parser.parse_args()

    settings = PipelineSettings.from_env()
    configure_logging(settings.log_level, json_format=settings.log_json)

    try:
        store = load_store_snapshot(Path(args.store) if args.store else settings.snapshot_path)
        records = export_records(store, args.type)
    except StoreUnavailable as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if args.output:
        path = write_export(records, args.format, Path(args.output))
        print(f"Exported {len(records)} records to {path}", file=sys.stderr)
    else:
        print(serialize(records, args.format))


if __name__ == "__main__":
    main()
