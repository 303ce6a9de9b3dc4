"""Run the test scheduler: `python -m app.scheduler [--loop SECONDS]`."""

import argparse
import logging
import time

from app.database import SessionLocal
from app.logging_config import configure_logging
from app.services.scheduler_service import scheduler_service

logger = logging.getLogger(__name__)


def run_pass() -> dict:
    db = SessionLocal()
    try:
        return scheduler_service.run_once(db)
    finally:
        db.close()


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Start, end and release scheduled tests")
    parser.add_argument("--loop", type=int, metavar="SECONDS", help="repeat every SECONDS instead of running once")
    args = parser.parse_args(argv)

    configure_logging()
    if not args.loop:
        run_pass()
        return

    logger.info(f"Scheduler running every {args.loop} seconds")
    while True:
        try:
            run_pass()
        except Exception as e:
            logger.error(f"Scheduler pass failed: {str(e)}")
        time.sleep(args.loop)


if __name__ == "__main__":
    main()
