"""
Session cleanup background job.

Removes expired sessions and revoked sessions older than the retention
window. The API process runs the same sweep hourly; this job covers
deployments that run with the in-process sweeper disabled.

Usage:
    Run via CRON:
        0 * * * * cd /path/to/project && python -m jobs.session_cleanup

    Or run directly:
        python -m jobs.session_cleanup
"""

import asyncio
import logging
import os
import sys
from datetime import datetime, timezone, timedelta
from typing import Dict, Any

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import PyMongoError

from gateway.auth.services.session_store import expired_filter, stale_revoked_filter

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


class SessionCleanupJob:
    """
    Deletes sessions that can no longer be used.

    Actions performed:
    1. Deletes sessions whose expiresAt has passed
    2. Deletes revoked sessions whose revokedAt is older than the retention window
    """

    def __init__(
        self,
        db_uri: str,
        db_name: str = "gemini_gateway",
        revoked_retention_days: int = 30,
    ):
        """
        Initialize the session cleanup job.

        Args:
            db_uri: MongoDB URI
            db_name: Database name
            revoked_retention_days: Days revoked sessions are kept
        """
        self._client = AsyncIOMotorClient(db_uri, tz_aware=True)
        self._sessions = self._client[db_name]["sessions"]
        self._retention = timedelta(days=revoked_retention_days)

    async def run(self) -> Dict[str, Any]:
        """
        Execute the session cleanup job.

        Returns:
            Dict with job results including counts and any errors
        """
        logger.info("Starting session cleanup job")
        start_time = datetime.now(timezone.utc)

        results = {
            "startTime": start_time.isoformat(),
            "expiredDeleted": 0,
            "revokedDeleted": 0,
            "errors": [],
        }

        try:
            expired = await self._sessions.delete_many(expired_filter(start_time))
            results["expiredDeleted"] = expired.deleted_count
            logger.debug(f"Deleted {expired.deleted_count} expired sessions")
        except PyMongoError as e:
            error_msg = f"Failed to delete expired sessions: {str(e)}"
            logger.error(error_msg)
            results["errors"].append(error_msg)

        try:
            revoked = await self._sessions.delete_many(stale_revoked_filter(start_time, self._retention))
            results["revokedDeleted"] = revoked.deleted_count
            logger.debug(f"Deleted {revoked.deleted_count} revoked sessions")
        except PyMongoError as e:
            error_msg = f"Failed to delete revoked sessions: {str(e)}"
            logger.error(error_msg)
            results["errors"].append(error_msg)

        results["endTime"] = datetime.now(timezone.utc).isoformat()
        results["durationSeconds"] = (
            datetime.now(timezone.utc) - start_time
        ).total_seconds()

        logger.info(
            f"Session cleanup job completed. "
            f"Deleted: {results['expiredDeleted'] + results['revokedDeleted']} sessions, "
            f"Errors: {len(results['errors'])}"
        )

        return results

    async def close(self):
        """Close database connection."""
        self._client.close()


async def main():
    """Main entry point for the session cleanup job."""
    db_uri = os.getenv("MONGODB_URI", "mongodb://localhost:27017")
    db_name = os.getenv("MONGODB_DATABASE", "gemini_gateway")
    retention_days = int(os.getenv("SESSION_REVOKED_RETENTION_DAYS", "30"))

    job = SessionCleanupJob(
        db_uri=db_uri,
        db_name=db_name,
        revoked_retention_days=retention_days,
    )

    try:
        results = await job.run()

        print("\n=== Session Cleanup Job Results ===")
        print(f"Start Time: {results['startTime']}")
        print(f"End Time: {results['endTime']}")
        print(f"Duration: {results['durationSeconds']:.2f} seconds")
        print(f"Expired Sessions Deleted: {results['expiredDeleted']}")
        print(f"Revoked Sessions Deleted: {results['revokedDeleted']}")

        if results["errors"]:
            print(f"\nErrors ({len(results['errors'])}):")
            for error in results["errors"]:
                print(f"  - {error}")

        exit_code = 1 if results["errors"] else 0
        sys.exit(exit_code)

    finally:
        await job.close()


if __name__ == "__main__":
    asyncio.run(main())
