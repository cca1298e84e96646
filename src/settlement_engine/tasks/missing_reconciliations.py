from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone

from celery import shared_task

from src.api.database.database import SessionLocal
from src.settlement_engine import config
from src.settlement_engine.services.reconciliation import ReconciliationEngine
from src.settlement_engine.services.unit_of_work import read_guard
from src.utils.helper import business_day
from src.utils.retry import with_backoff

logger = logging.getLogger("venue_settlement.settlement_engine.tasks.missing_reconciliations")


@shared_task(name="settlement_engine.missing_reconciliations")
def run_missing_reconciliations(day: str | None = None) -> dict:
    """
    List active venues that have not submitted a reconciliation.
    day is an ISO date string (YYYY-MM-DD); defaults to the previous business day.
    """
    return find_missing_reconciliations(day=date.fromisoformat(day) if day else None)


def find_missing_reconciliations(day: date | None = None) -> dict:
    if day is None:
        today = business_day(datetime.now(timezone.utc), config.SETTLEMENT_TIMEZONE)
        day = today - timedelta(days=1)

    engine = ReconciliationEngine()
    session = SessionLocal()
    try:
        def _load():
            with read_guard(session, "missing reconciliations"):
                return engine.missing_reconciliations(session=session, day=day)

        stores = with_backoff(_load)
        store_ids = [store.store_id for store in stores]
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    if store_ids:
        logger.warning(
            "%s venue(s) missing reconciliation for %s: %s",
            len(store_ids),
            day.isoformat(),
            ", ".join(store_ids),
        )
    return {
        "date": day.isoformat(),
        "missing": len(store_ids),
        "store_ids": store_ids,
    }
