"""Fire-and-forget view tracking."""

import logging
import uuid

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from thorbis.core import database
from thorbis.core.exceptions import BackendUnavailableError
from thorbis.core.logging import log_event
from thorbis.models import BusinessMetrics
from thorbis.models.utils import utcnow

logger = logging.getLogger(__name__)


async def increment_business_views(business_id: uuid.UUID) -> None:
    """Bump the view counters for one business; never raises."""
    try:
        async with database.get_sessionmaker()() as db:
            result = await db.execute(
                update(BusinessMetrics)
                .where(BusinessMetrics.business_id == business_id)
                .values(
                    views_today=BusinessMetrics.views_today + 1,
                    views_this_week=BusinessMetrics.views_this_week + 1,
                    views_this_month=BusinessMetrics.views_this_month + 1,
                    updated_at=utcnow(),
                )
            )
            if result.rowcount == 0:
                existing = await db.scalar(
                    select(BusinessMetrics.business_id).where(BusinessMetrics.business_id == business_id)
                )
                if existing is None:
                    db.add(
                        BusinessMetrics(
                            business_id=business_id,
                            views_today=1,
                            views_this_week=1,
                            views_this_month=1,
                        )
                    )
            await db.commit()
    except (SQLAlchemyError, BackendUnavailableError, OSError) as exc:
        logger.warning("Failed to increment views for %s: %s", business_id, exc)


def track_business_view(
    business_id: uuid.UUID,
    business_name: str,
    user_id: uuid.UUID | None,
    view_source: str,
    user_agent: str | None,
) -> None:
    log_event(
        "business_view",
        business_id=str(business_id),
        business_name=business_name,
        user_id=str(user_id) if user_id else None,
        view_source=view_source,
        user_agent=user_agent,
    )
