"""Script for importing maintenance plans from a CSV file."""

import asyncio
import io
import sys
import traceback
from pathlib import Path

from components.core.init_db import get_db
from components.plan.repository import PlanRepository


async def import_plans(csv_path: Path, account_id: int):
    """Import plans from a tab-separated CSV file."""
    try:
        if not csv_path.exists():
            print(f"Error: File not found at {csv_path}")
            return

        print(f"Reading file: {csv_path}")
        with open(csv_path, "rb") as f:
            file_content = f.read()

        async for db in get_db():
            repo = PlanRepository(db)
            success, message, errors = await repo.upload_plans_from_csv(io.BytesIO(file_content), account_id)

            print(f"Success: {success}")
            print(f"Message: {message}")

            if errors:
                print("Errors:")
                for error in errors:
                    print(f"  Row {error['row']}: {error['message']}")
            break  # Only need one session
    except Exception as e:
        print(f"Import failed: {e}")
        traceback.print_exc()

if __name__ == "__main__":
    if len(sys.argv) != 3:
        print("Usage: python -m scripts.import_plans_csv <file.csv> <account_id>")
        sys.exit(1)
    asyncio.run(import_plans(Path(sys.argv[1]), int(sys.argv[2])))
