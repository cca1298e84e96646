from __future__ import annotations

import logging

from celery import shared_task

from src.api.database.database import SessionLocal
from src.settlement_engine.services.reconciliation import ReconciliationEngine
from src.settlement_engine.services.unit_of_work import read_guard
from src.utils.retry import with_backoff

logger = logging.getLogger("venue_settlement.settlement_engine.tasks.compliance_overview")


@shared_task(name="settlement_engine.compliance_overview")
def run_compliance_overview() -> dict:
    return build_compliance_overview()


def build_compliance_overview() -> dict:
    engine = ReconciliationEngine()
    session = SessionLocal()
    try:
        def _load():
            with read_guard(session, "compliance overview"):
                return engine.system_compliance_overview(session=session)

        overview = with_backoff(_load)
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    snapshot = overview.to_dict()
    logger.info(
        "Compliance overview %s: %s/%s venues submitted, %s flagged, health %s",
        snapshot["as_of"],
        snapshot["today_submissions"],
        snapshot["total_stores"],
        snapshot["flagged_reconciliations"],
        snapshot["system_health"],
    )
    return snapshot
