from __future__ import annotations

import argparse
import importlib
import logging

from dotenv import load_dotenv

from attendance_tracker.config import get_settings_module
from attendance_tracker.database.bootstrap import apply_schema, ensure_sample_students, list_tables
from attendance_tracker.database.connection import DBConfig

logger = logging.getLogger("init_db")


def main() -> None:
    parser = argparse.ArgumentParser(description="Create the attendance tables in MySQL.")
    parser.add_argument("--seed", action="store_true", help="insert the demo roster when no students exist")
    args = parser.parse_args()

    load_dotenv(override=False)
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")

    settings = importlib.import_module(get_settings_module())
    target = DBConfig.from_dict(dict(settings.DB_CONFIG))

    apply_schema(target)
    tables = list_tables(target)
    logger.info(
        "Applied schema.sql -> %s@%s:%s/%s (tables=%d)",
        target.user, target.host, target.port, target.database, len(tables),
    )

    if args.seed:
        added = ensure_sample_students(target)
        logger.info("Seeded %d demo students", added)


if __name__ == "__main__":
    main()
