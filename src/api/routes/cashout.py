from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date, datetime

from src.api.database.database import get_db
from src.api.auth.auth import Actor, require_admin, require_staff
from src.models.settlement_schemas import (
    CashoutHistoryResponse,
    CashoutRequest,
    CustomerBalanceResponse,
    CustomerSearchResult,
    ExchangeRateResponse,
    HistoryStatus,
    RateConfigCreate,
    RateConfigResponse,
    ReversalRequest,
    SettlementResponse,
    StatsPeriod,
)
from src.settlement_engine.services.cashout import CashoutEngine
from src.settlement_engine.services.rate_config import RateConfigInput, RateConfigStore
from src.settlement_engine.services.transactions import (
    CashoutHistoryFilters,
    SettlementQueryService,
)


router = APIRouter(prefix="/api/cashout", tags=["cashout"])

rate_store = RateConfigStore()
queries = SettlementQueryService()
cashout_engine = CashoutEngine(rate_store=rate_store, queries=queries)


# EXCHANGE RATE -----------------------------------------------------------------------------------
@router.get("/exchange-rate", response_model=ExchangeRateResponse)
def get_exchange_rate(
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_staff),
):
    rate = cashout_engine.get_current_exchange_rate(session=db)
    return ExchangeRateResponse.model_validate(rate)


@router.post("/exchange-rate", response_model=RateConfigResponse)
def create_exchange_rate(
    payload: RateConfigCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_admin),
):
    row = rate_store.create_config(
        session=db,
        data=RateConfigInput(**payload.model_dump()),
        actor_id=actor.actor_id,
    )
    return RateConfigResponse.model_validate(row)


@router.get("/exchange-rate/history", response_model=List[RateConfigResponse])
def list_exchange_rate_history(
    limit: int = Query(default=50, ge=1, le=500),
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_admin),
):
    rows = rate_store.list_history(session=db, limit=limit)
    return [RateConfigResponse.model_validate(row) for row in rows]


# CUSTOMERS ---------------------------------------------------------------------------------------
@router.get("/customers/search", response_model=List[CustomerSearchResult])
def search_customers(
    q: str = "",
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_staff),
):
    customers = queries.search_customers(session=db, query=q, limit=limit)
    return [CustomerSearchResult.model_validate(customer) for customer in customers]


@router.get("/customers/{customer_id}/balance", response_model=CustomerBalanceResponse)
def get_customer_balance(
    customer_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_staff),
):
    balance = queries.customer_balance(session=db, customer_id=customer_id)
    return CustomerBalanceResponse.model_validate(balance)


# VENUE CASHOUTS ----------------------------------------------------------------------------------
@router.post("/venues/{store_id}/process", response_model=SettlementResponse)
def process_cashout(
    store_id: str,
    payload: CashoutRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_staff),
):
    result = cashout_engine.process_cashout(
        session=db,
        customer_id=payload.customer_id,
        token_amount=payload.token_amount,
        store_id=store_id,
        staff_id=actor.actor_id,
        notes=payload.notes,
        reference_id=payload.reference_id,
    )
    return SettlementResponse.model_validate(result)


@router.get("/venues/{store_id}/history", response_model=CashoutHistoryResponse)
def get_cashout_history(
    store_id: str,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    customer_id: Optional[int] = None,
    staff_id: Optional[str] = None,
    status: HistoryStatus = "completed",
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_staff),
):
    history = queries.cashout_history(
        session=db,
        store_id=store_id,
        filters=CashoutHistoryFilters(
            start_date=start_date,
            end_date=end_date,
            customer_id=customer_id,
            staff_id=staff_id,
            status=status,
            limit=limit,
            offset=offset,
        ),
    )
    return CashoutHistoryResponse.model_validate(history)


@router.get("/venues/{store_id}/daily/{day}")
def get_daily_cashout_report(
    store_id: str,
    day: date,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_staff),
):
    return queries.daily_cashout_report(session=db, store_id=store_id, day=day).to_dict()


@router.get("/stats/venues/{store_id}")
def get_venue_cashout_stats(
    store_id: str,
    period: StatsPeriod = "7days",
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_staff),
):
    return queries.venue_cashout_stats(session=db, store_id=store_id, period=period)


# TRANSACTIONS ------------------------------------------------------------------------------------
@router.get("/transactions/{transaction_id}", response_model=SettlementResponse)
def get_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_staff),
):
    result = queries.get_transaction(session=db, transaction_id=transaction_id)
    return SettlementResponse.model_validate(result)


@router.post("/reverse/{transaction_id}", response_model=SettlementResponse)
def reverse_cashout(
    transaction_id: int,
    payload: ReversalRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_admin),
):
    result = cashout_engine.reverse_cashout(
        session=db,
        transaction_id=transaction_id,
        actor_id=actor.actor_id,
        reason=payload.reason,
    )
    return SettlementResponse.model_validate(result)
