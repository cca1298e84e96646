from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

StatsPeriod = Literal["today", "7days", "30days"]
HistoryStatus = Literal["completed", "failed", "all"]


class ExchangeRateResponse(BaseModel):
    config_id: Optional[int]
    tokens_per_dollar: Decimal
    min_cashout: Decimal
    max_cashout_per_transaction: Decimal
    daily_limit_per_customer: Decimal
    daily_limit_per_staff: Decimal
    venue_commission_percent: Decimal
    is_default: bool
    effective_from: Optional[datetime]
    effective_to: Optional[datetime]
    min_tokens: Decimal
    max_tokens: Decimal

    class Config:
        from_attributes = True


class RateConfigCreate(BaseModel):
    tokens_per_dollar: Decimal
    min_cashout: Decimal
    max_cashout_per_transaction: Decimal
    daily_limit_per_customer: Decimal
    daily_limit_per_staff: Decimal
    venue_commission_percent: Decimal = Decimal("0")
    effective_from: Optional[datetime] = None
    notes: Optional[str] = None


class RateConfigResponse(BaseModel):
    config_id: int
    tokens_per_dollar: Decimal
    min_cashout: Decimal
    max_cashout_per_transaction: Decimal
    daily_limit_per_customer: Decimal
    daily_limit_per_staff: Decimal
    venue_commission_percent: Decimal
    is_active: bool
    effective_from: datetime
    effective_to: Optional[datetime]
    notes: Optional[str]
    created_by: Optional[str]
    updated_by: Optional[str]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class CashoutRequest(BaseModel):
    customer_id: int
    token_amount: int = Field(gt=0)
    notes: str = ""
    reference_id: Optional[str] = None


class ReversalRequest(BaseModel):
    reason: str


class SettlementResponse(BaseModel):
    transaction_id: int
    reference_id: str
    customer_id: int
    type: str
    status: str
    token_amount: int
    usd_amount: Decimal
    cash_to_customer: Optional[Decimal]
    venue_commission: Optional[Decimal]
    commission_percent: Optional[Decimal]
    exchange_rate: Optional[Decimal]
    balance_before: Optional[int]
    balance_after: Optional[int]
    store_id: Optional[str]
    staff_id: Optional[str]
    original_transaction_id: Optional[int]
    reversal_transaction_id: Optional[int]
    reversed_at: Optional[datetime]
    reversed_by: Optional[str]
    reversal_reason: Optional[str]
    created_at: Optional[datetime]
    replayed: bool = False

    class Config:
        from_attributes = True


class CashoutSummaryResponse(BaseModel):
    total_transactions: int
    total_tokens_converted: int
    total_cash_paid: Decimal
    total_commission: Decimal

    class Config:
        from_attributes = True


class CashoutHistoryResponse(BaseModel):
    transactions: List[SettlementResponse]
    total: int
    limit: int
    offset: int
    pages: int
    summary: CashoutSummaryResponse

    class Config:
        from_attributes = True


class CustomerBalanceResponse(BaseModel):
    customer_id: int
    full_name: str
    email: Optional[str]
    phone: Optional[str]
    balance: int
    total_withdrawn: Decimal
    today_cashouts_count: int
    today_cashouts_total: Decimal
    recent_transactions: List[SettlementResponse] = []

    class Config:
        from_attributes = True


class CustomerSearchResult(BaseModel):
    customer_id: int
    first_name: Optional[str]
    last_name: Optional[str]
    email: Optional[str]
    phone: Optional[str]
    token_balance: int
    is_active: bool

    class Config:
        from_attributes = True
