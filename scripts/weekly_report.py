from pathlib import Path
import os
import sys
import uuid

# Ensure repo root is on sys.path and is the working directory.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
os.chdir(ROOT)

from stableflows.logging import setup_logging
from stableflows.pipeline.orchestrator import run_weekly

if __name__ == '__main__':
    setup_logging()
    run_id = str(uuid.uuid4())
    print('Run', run_id)
    result = run_weekly(run_id)
    if result.get('status') != 'ok':
        print('Skipped:', result.get('reason'))
        sys.exit(1)
    print('Snapshot', result['timestamp'])
    for bullet in result['insights']:
        print(' •', bullet)
