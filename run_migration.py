"""
Migration runner script
Applies pending schema migrations and the one-time legacy posts.json import.

Usage:
    python run_migration.py                  # migrate, then import legacy JSON if present
    python run_migration.py --status         # list applied and pending migrations
    python run_migration.py --skip-import
    python run_migration.py --legacy-json path/to/posts.json
"""

import logging
import sys

from chavrusa.config import LEGACY_POSTS_JSON
from chavrusa.database import engine
from chavrusa.migrations import MIGRATIONS, applied_migrations, import_legacy_posts, run_migrations

logging.basicConfig(level=logging.INFO, format="%(message)s")
logger = logging.getLogger(__name__)


def show_status():
    """Print the migration ledger"""
    rows = applied_migrations(engine)
    applied = {version for version, _, _ in rows}

    for version, name, applied_at in rows:
        logger.info(f"✅ {version:>4}  {name}  ({applied_at})")
    for version, name, _ in MIGRATIONS:
        if version not in applied:
            logger.info(f"⏳ {version:>4}  {name}  (pending)")


def migrate(legacy_json: str, skip_import: bool):
    applied = run_migrations(engine)
    logger.info(f"✅ Applied {len(applied)} migration(s)")

    if skip_import:
        return
    imported = import_legacy_posts(engine, legacy_json)
    if imported:
        logger.info(f"📦 Imported {imported} legacy post(s) from {legacy_json}")
    else:
        logger.info("ℹ️  No legacy import needed")


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Manage the board database schema")
    parser.add_argument("--status", action="store_true", help="Show applied and pending migrations")
    parser.add_argument("--skip-import", action="store_true", help="Do not import legacy posts.json")
    parser.add_argument("--legacy-json", default=LEGACY_POSTS_JSON, help="Legacy posts.json path")
    args = parser.parse_args()

    try:
        if args.status:
            show_status()
        else:
            migrate(args.legacy_json, args.skip_import)
    except Exception as e:
        logger.error(f"❌ Migration failed: {e}")
        sys.exit(1)
