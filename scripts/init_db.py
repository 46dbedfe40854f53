from pathlib import Path
import os
import sys

# Ensure repo root is on sys.path and is the working directory.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
os.chdir(ROOT)

from stableflows.db import get_conn, migrate
from stableflows.config import settings

if __name__ == '__main__':
    conn = get_conn(settings.db_path)
    migrate(conn)
    rows = conn.execute("SELECT key, entry_count, updated_at_utc FROM kv_series ORDER BY key").fetchall()
    print('DB ready at', settings.db_path)
    for key, count, updated in rows:
        print(f'  {key}: {count} entries (updated {updated})')
