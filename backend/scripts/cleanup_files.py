# scripts/cleanup_files.py
"""Remove orphaned, expired and stale temporary uploads.

Run from the backend directory: ``python -m scripts.cleanup_files``
"""
import asyncio
import logging
import sys

from app.core.config import get_settings
from app.core.database import DatabaseHelper
from app.core.exceptions import ConfigurationError
from app.services.cleanup import CleanupReport, FileCleanupService

logger = logging.getLogger("scripts.cleanup_files")


async def run_cleanup() -> CleanupReport:
    settings = get_settings()
    db = DatabaseHelper.from_config(settings.db)
    try:
        async with db.session_factory() as session:
            return await FileCleanupService(session, settings.storage).run()
    finally:
        await db.dispose()


def main() -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    try:
        report = asyncio.run(run_cleanup())
    except ConfigurationError as e:
        logger.error(f"File cleanup failed: {e}")
        return 1
    except Exception:
        logger.exception("File cleanup failed")
        return 1
    logger.info(f"File cleanup completed: {report.as_dict()}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
