#!/usr/bin/env python3
import argparse
import logging

from app import create_app, get_store
from services.errors import StorageError


def positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive integer: {value}")
    return number


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Insert numbered placeholder tasks after the current last one.")
    parser.add_argument("--count", type=positive_int, required=True, help="Number of tasks to insert")
    parser.add_argument(
        "--batch-size",
        type=positive_int,
        default=None,
        help="Rows per committed batch (default: TASKS_GENERATE_BATCH_SIZE or 1000).",
    )
    parser.add_argument("--database-uri", default=None, help="Override TASKS_DATABASE_URI")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    config = {"SQLALCHEMY_DATABASE_URI": args.database_uri} if args.database_uri else None
    app = create_app(config)
    with app.app_context():
        try:
            inserted = get_store().generate_bulk(args.count, batch_size=args.batch_size)
        except StorageError as exc:
            print(f"Generation failed: {exc.message}")
            return 1

    print(f"Successfully generated {inserted} dummy tasks")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
