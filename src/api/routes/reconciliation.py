from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date, datetime, timedelta, timezone

from src.api.database.database import get_db
from src.api.auth.auth import Actor, require_admin, require_staff
from src.models.reconciliation_schemas import (
    ActualFeeRequest,
    ApproveRequest,
    DisputeRequest,
    FlagRequest,
    MissingReconciliationsResponse,
    MissingVenueResponse,
    OutstandingPaymentsResponse,
    PaymentConfirmRequest,
    PaymentSentRequest,
    ReconciliationResponse,
    ReconciliationStatus,
    ReconciliationSubmit,
    ResolveRequest,
    SystemComplianceResponse,
    VenueDashboardResponse,
)
from src.settlement_engine import config
from src.settlement_engine.services.reconciliation import ReconciliationEngine
from src.utils.helper import business_day


router = APIRouter(prefix="/api/reconciliation", tags=["reconciliation"])

reconciliation_engine = ReconciliationEngine()


# DASHBOARDS --------------------------------------------------------------------------------------
# Registered before /{store_id} so the literal paths win.
@router.get("/dashboard/system", response_model=SystemComplianceResponse)
def get_system_dashboard(
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_admin),
):
    overview = reconciliation_engine.system_compliance_overview(session=db)
    return SystemComplianceResponse.model_validate(overview)


@router.get("/dashboard/venues/{store_id}", response_model=VenueDashboardResponse)
def get_venue_dashboard(
    store_id: str,
    days: int = Query(default=config.VENUE_STATS_LOOKBACK_DAYS, ge=1, le=365),
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_staff),
):
    dashboard = reconciliation_engine.venue_dashboard(session=db, store_id=store_id, days=days)
    return VenueDashboardResponse.model_validate(dashboard)


@router.get("/missing", response_model=MissingReconciliationsResponse)
def get_missing_reconciliations(
    day: Optional[date] = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_admin),
):
    if day is None:
        day = business_day(datetime.now(timezone.utc), config.SETTLEMENT_TIMEZONE) - timedelta(days=1)
    stores = reconciliation_engine.missing_reconciliations(session=db, day=day)
    return MissingReconciliationsResponse(
        reconciliation_date=day,
        missing=[MissingVenueResponse.model_validate(store) for store in stores],
    )


# SUBMISSION --------------------------------------------------------------------------------------
@router.post("/{store_id}", response_model=ReconciliationResponse)
def submit_reconciliation(
    store_id: str,
    payload: ReconciliationSubmit,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_staff),
):
    row = reconciliation_engine.submit_daily_reconciliation(
        session=db,
        store_id=store_id,
        reconciliation_date=payload.reconciliation_date,
        venue_gaming_revenue=payload.venue_gaming_revenue,
        submitted_by=actor.actor_id,
        notes=payload.notes,
        machine_count=payload.machine_count,
        transaction_count=payload.transaction_count,
    )
    return ReconciliationResponse.model_validate(row)


@router.get("/{store_id}", response_model=List[ReconciliationResponse])
def list_reconciliations(
    store_id: str,
    days: int = Query(default=config.VENUE_STATS_LOOKBACK_DAYS, ge=1, le=365),
    status: Optional[ReconciliationStatus] = None,
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_staff),
):
    rows = reconciliation_engine.list_for_store(
        session=db,
        store_id=store_id,
        days=days,
        status=status,
        limit=limit,
    )
    return [ReconciliationResponse.model_validate(row) for row in rows]


@router.get("/{store_id}/outstanding", response_model=OutstandingPaymentsResponse)
def get_outstanding_payments(
    store_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_staff),
):
    outstanding = reconciliation_engine.outstanding(session=db, store_id=store_id)
    return OutstandingPaymentsResponse.model_validate(outstanding)


# COMPLIANCE STATUS -------------------------------------------------------------------------------
@router.put("/{reconciliation_id}/actual-fee", response_model=ReconciliationResponse)
def record_actual_fee(
    reconciliation_id: int,
    payload: ActualFeeRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_admin),
):
    row = reconciliation_engine.record_actual_fee(
        session=db,
        reconciliation_id=reconciliation_id,
        actual_software_fee=payload.actual_software_fee,
        actor_id=actor.actor_id,
        notes=payload.notes,
    )
    return ReconciliationResponse.model_validate(row)


@router.patch("/{reconciliation_id}/approve", response_model=ReconciliationResponse)
def approve_reconciliation(
    reconciliation_id: int,
    payload: ApproveRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_admin),
):
    row = reconciliation_engine.approve(
        session=db,
        reconciliation_id=reconciliation_id,
        actor_id=actor.actor_id,
        notes=payload.notes,
    )
    return ReconciliationResponse.model_validate(row)


@router.patch("/{reconciliation_id}/flag", response_model=ReconciliationResponse)
def flag_reconciliation(
    reconciliation_id: int,
    payload: FlagRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_admin),
):
    row = reconciliation_engine.flag(
        session=db,
        reconciliation_id=reconciliation_id,
        reason=payload.flagged_reason,
        actor_id=actor.actor_id,
    )
    return ReconciliationResponse.model_validate(row)


@router.patch("/{reconciliation_id}/resolve", response_model=ReconciliationResponse)
def resolve_reconciliation(
    reconciliation_id: int,
    payload: ResolveRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_admin),
):
    row = reconciliation_engine.resolve(
        session=db,
        reconciliation_id=reconciliation_id,
        actor_id=actor.actor_id,
        notes=payload.notes,
    )
    return ReconciliationResponse.model_validate(row)


# SETTLEMENT --------------------------------------------------------------------------------------
@router.put("/{reconciliation_id}/payment-sent", response_model=ReconciliationResponse)
def mark_payment_sent(
    reconciliation_id: int,
    payload: PaymentSentRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_admin),
):
    row = reconciliation_engine.mark_payment_sent(
        session=db,
        reconciliation_id=reconciliation_id,
        amount_sent=payload.amount_sent,
        actor_id=actor.actor_id,
        method=payload.payment_method,
        sent_at=payload.sent_at,
    )
    return ReconciliationResponse.model_validate(row)


@router.put("/{reconciliation_id}/confirm-payment", response_model=ReconciliationResponse)
def confirm_payment(
    reconciliation_id: int,
    payload: PaymentConfirmRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_admin),
):
    row = reconciliation_engine.confirm_payment(
        session=db,
        reconciliation_id=reconciliation_id,
        actor_id=actor.actor_id,
        amount_received=payload.amount_received,
        received_at=payload.received_at,
        notes=payload.notes,
    )
    return ReconciliationResponse.model_validate(row)


@router.put("/{reconciliation_id}/dispute", response_model=ReconciliationResponse)
def dispute_payment(
    reconciliation_id: int,
    payload: DisputeRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_admin),
):
    row = reconciliation_engine.dispute_payment(
        session=db,
        reconciliation_id=reconciliation_id,
        actor_id=actor.actor_id,
        reason=payload.reason,
    )
    return ReconciliationResponse.model_validate(row)
