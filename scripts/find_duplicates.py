"""List probable duplicate records of one object type.

Reads the store snapshot and prints candidate pairs with their scores.
Candidates are advisory; nothing in the store is changed.
"""

import json
import sys
from pathlib import Path

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from core.config import PipelineSettings
from core.errors import StoreUnavailable
from core.observability.logging import configure_logging
from core.storage import load_store_snapshot
from pipeline.ingest import RecordPipeline


def main():
    import argparse

    parser = argparse.ArgumentParser(description="Find probable duplicate records")
    parser.add_argument("--type", required=True, help="Object type (Lead, Contact, Account, Opportunity, Task)")
    parser.add_argument("--threshold", type=float, default=None, help="Min pair score (default from settings)")
    parser.add_argument("--store", default=None, help="Snapshot path (default: CRM_PIPELINE_SNAPSHOT_PATH)")
    parser.add_argument("--json", action="store_true", help="Print the full scan as JSON")
    args = parser.parse_args()

    settings = PipelineSettings.from_env()
    if args.threshold is not None:
        settings = settings.model_copy(update={"similarity_threshold": args.threshold})
    configure_logging(settings.log_level, json_format=settings.log_json)

    try:
        store = load_store_snapshot(Path(args.store) if args.store else settings.snapshot_path)
        scan = RecordPipeline(settings).find_duplicates(store, args.type)
    except StoreUnavailable as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if args.json:
        print(json.dumps(scan.model_dump(mode="json"), indent=2))
        return

    print(f"\n=== DUPLICATE CANDIDATES ({scan.object_type.value}, threshold {scan.threshold}) ===")
    if not scan.candidates:
        print("No candidates found.")
    for candidate in scan.candidates:
        flag = "  [provisional id]" if candidate.involves_provisional_id else ""
        print(f"  {candidate.score:.3f}  {candidate.record_id_a} <-> {candidate.record_id_b}{flag}")
    print(f"\nRecords: {scan.records_scanned}  Pairs compared: {scan.pairs_compared}")
    print("=" * 60 + "\n")


if __name__ == "__main__":
    main()
