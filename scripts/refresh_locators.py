"""Re-issue time-limited locators for every stored image.

Locators expire after LOCATOR_TTL_SECONDS (7 days), so run this from cron
at a shorter interval, e.g. daily.
"""

from gallery_ingest.config import STORE_DIR
from gallery_ingest.db import get_connection
from gallery_ingest.log import setup_logging
from gallery_ingest.store.object_store import LocalObjectStore


def main() -> None:
    setup_logging()
    conn = get_connection()
    store = LocalObjectStore(STORE_DIR, index_conn=conn)

    records = store.list_all()
    print(f"Refreshing {len(records)} locators...")
    refreshed = store.refresh_all()
    conn.close()

    print(f"Done. Refreshed {len(refreshed)}/{len(records)} locators.")


if __name__ == "__main__":
    main()
