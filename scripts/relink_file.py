#!/usr/bin/env python3
"""
Re-bind a file node to a source file on disk.

Copies the source into the owner's area of the content store (adding a
timestamp suffix when the name is taken) and points the node at the copy.
Use it when a download reports that the content is missing and the
automatic search cannot find it.

Usage:
    python scripts/relink_file.py <node_id> /path/to/source.file
"""

import argparse
import sys
from pathlib import Path

# Add parent directory to path to import cloudvault modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from cloudvault.database import SessionLocal, Base, engine
from cloudvault.exceptions import VaultException
from cloudvault.services.reconciler import PathReconciler
from cloudvault.storage import get_content_store


def relink(node_id: str, source: str) -> int:
    """Run the relink and print the outcome. Returns a process exit code."""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        node = PathReconciler(db, get_content_store()).relink(node_id, source)
        print(f"✓ Node {node.id} ({node.name}) now points at {node.path}")
        print("  Retry the download in the app.")
        return 0
    except VaultException as e:
        print(f"✗ {e.message}")
        return 1
    finally:
        db.close()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Re-bind a file node to a source file on disk.")
    parser.add_argument("node_id", help="Id of the file node to relink")
    parser.add_argument("source", help="Path of the file to copy into the content store")
    args = parser.parse_args(argv)
    return relink(args.node_id, args.source)


if __name__ == "__main__":
    sys.exit(main())
