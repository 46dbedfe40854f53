from pathlib import Path
import argparse
import os
import sys
import uuid

# Ensure repo root is on sys.path and is the working directory.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
os.chdir(ROOT)

from stableflows.logging import setup_logging
from stableflows.pipeline.orchestrator import run_refresh, snapshot_store
from stableflows.services.formatting import rankings_table

if __name__ == '__main__':
    ap = argparse.ArgumentParser(description="Fetch DeFi Llama data and store today's snapshot.")
    ap.add_argument('--force', action='store_true', help='refresh even if the latest snapshot is recent')
    args = ap.parse_args()

    setup_logging()
    run_id = str(uuid.uuid4())
    print('Run', run_id)
    result = run_refresh(run_id, force=args.force)
    print('Result:', result['status'])
    latest = snapshot_store().latest()
    if latest:
        print()
        print(rankings_table(latest))
