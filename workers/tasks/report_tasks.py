"""
Report Tasks

Background generation of the all-locations dashboard.
"""

import asyncio
import logging
import os
from datetime import date

from workers.celery_app import app

logger = logging.getLogger(__name__)


@app.task(bind=True, max_retries=2, default_retry_delay=120)
def generate_location_reports(self, access_token: str | None = None, business_date: str | None = None):
    """
    Build dashboards for every configured location.

    Args:
        access_token: PAR Brink access token; defaults to BRINK_ACCESS_TOKEN
        business_date: ISO date; each location's current business date if omitted
    """
    token = access_token or os.getenv("BRINK_ACCESS_TOKEN", "")
    if not token:
        logger.error("No PAR Brink access token configured, skipping location reports")
        return {"succeeded": 0, "failed": 0, "skipped": True}

    logger.info(f"Generating location reports for {business_date or 'current business date'}")
    try:
        result = asyncio.run(
            _async_generate_reports(
                token,
                date.fromisoformat(business_date) if business_date else None,
            )
        )
    except Exception as exc:
        logger.error(f"Location reports failed: {exc}")
        raise self.retry(exc=exc)

    logger.info(f"Location reports done: {result['succeeded']} succeeded, {result['failed']} failed")
    return result


async def _async_generate_reports(access_token: str, business_date: date | None) -> dict:
    """Async implementation of the all-locations report."""
    from backend.config import get_settings
    from backend.services import cache
    from backend.services.dashboard import DashboardService
    from integrations.pos.brink import RequestThrottle

    # Each task run owns its event loop, so it gets its own throttle
    throttle = RequestThrottle(get_settings().brink_max_concurrent_requests)
    service = DashboardService(throttle=throttle)
    try:
        report = await service.all_location_reports(access_token, business_date)
    finally:
        await service.close()
        await cache.close_redis()

    return report.model_dump(mode="json", by_alias=True)
