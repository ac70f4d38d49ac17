"""
Background worker that purges expired trash.

Every PURGE_INTERVAL seconds, permanently deletes trashed nodes whose
retention window (TRASH_RETENTION_DAYS) has passed, together with their
content objects. The API also purges once at startup; this worker keeps
long-running deployments tidy.

Usage:
    python worker.py
"""

import os
import sys
import time
import logging

# Add cloudvault to path
sys.path.insert(0, os.path.dirname(__file__))

from cloudvault.database import SessionLocal, Base, engine
from cloudvault.services.hierarchy_service import HierarchyService
from cloudvault.storage import get_content_store

# Seconds between purge sweeps (default: hourly)
PURGE_INTERVAL = int(os.getenv("PURGE_INTERVAL", str(60 * 60)))

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s"
)
logger = logging.getLogger("worker")


def purge_once() -> int:
    """Run one purge sweep. Returns the number of nodes removed."""
    db = SessionLocal()
    try:
        removed = HierarchyService(db, get_content_store()).purge_expired_trash()
        if removed:
            logger.info(f"Purged {removed} expired node(s) from trash")
        return removed
    finally:
        db.close()


def main() -> None:
    """Sweep expired trash forever, sleeping PURGE_INTERVAL between runs."""
    Base.metadata.create_all(bind=engine)
    logger.info(f"Worker started, purging every {PURGE_INTERVAL}s")

    while True:
        try:
            purge_once()
            time.sleep(PURGE_INTERVAL)
        except KeyboardInterrupt:
            logger.info("Worker shutting down")
            break
        except Exception as e:
            logger.error(f"Worker error: {e}")
            time.sleep(PURGE_INTERVAL)


if __name__ == "__main__":
    main()
