"""CLI tool for admin operations.

Usage:
    python -m backend.cli rebuild <batch_id>
    python -m backend.cli rebuild-all
    python -m backend.cli parse "<alert text or JSON>"
"""

import json
import sys

from backend.database import create_db_and_tables, unit_of_work
from backend.errors import ServiceError
from backend.services.batch_registry import BatchRegistry
from backend.services.signal_parser import parse_alert
from backend.utils.logging import setup_logging


def rebuild(batch_id: int):
    """Recompute one batch log from the full trade history."""
    batch = BatchRegistry(unit_of_work).rebuild(batch_id)
    print(
        f"Batch {batch.id} '{batch.name}': {batch.snapshot.total_trades} trades, "
        f"capital {batch.snapshot.current_capital}, max drawdown {batch.snapshot.max_drawdown}%"
    )


def rebuild_all():
    count = BatchRegistry(unit_of_work).rebuild_all()
    print(f"Rebuilt {count} batches.")


def parse(alert: str):
    """Show how an alert would be interpreted, without touching the database."""
    signal = parse_alert(alert)
    print(json.dumps(signal.model_dump(mode="json", exclude={"payload"}), indent=2))


def main():
    if len(sys.argv) < 2:
        print("Usage: python -m backend.cli <command>")
        print("Commands: rebuild <batch_id>, rebuild-all, parse <alert>")
        sys.exit(1)

    setup_logging()
    command = sys.argv[1]
    try:
        if command == "rebuild" and len(sys.argv) == 3 and sys.argv[2].isdigit():
            create_db_and_tables()
            rebuild(int(sys.argv[2]))
        elif command == "rebuild-all":
            create_db_and_tables()
            rebuild_all()
        elif command == "parse" and len(sys.argv) == 3:
            parse(sys.argv[2])
        else:
            print(f"Unknown command or arguments: {' '.join(sys.argv[1:])}")
            sys.exit(1)
    except ServiceError as e:
        print(f"{e.code}: {e.detail}")
        sys.exit(1)


if __name__ == "__main__":
    main()
