# vault/init_db.py

import argparse

from vault.core.config import DATABASE_URL
from vault.infra.database import check_connection
from vault.infra.log_store import LogStore


def init_db(database_url: str = DATABASE_URL, reset: bool = False):
    """Create the backing store (and optionally wipe it back to an empty collection)"""
    store = LogStore(database_url)
    try:
        # SQLite files are created by load(); servers must be reachable first
        if store.engine.url.get_backend_name() != "sqlite" and not check_connection(store.engine):
            raise SystemExit(1)

        if reset:
            print("⚠️  Resetting store to an empty collection...")
            store.reset()

        collection = store.load()
        print(f"✅ Store ready: {store.engine.url.render_as_string(hide_password=True)}")
        print(f"   users: {len(collection.users)}, messages: {len(collection.messages)}")
        return collection
    finally:
        store.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Bootstrap the vault store")
    parser.add_argument("--database-url", default=DATABASE_URL)
    parser.add_argument("--reset", action="store_true", help="drop everything first")
    args = parser.parse_args()

    init_db(args.database_url, reset=args.reset)
