from datetime import date, datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

ReconciliationStatus = Literal["pending", "approved", "flagged", "resolved"]
SettlementStatus = Literal["unsettled", "payment_sent", "partial", "settled", "disputed"]
PaymentMethod = Literal["cash", "check", "wire", "crypto", "zelle", "other"]


class ReconciliationSubmit(BaseModel):
    reconciliation_date: date
    venue_gaming_revenue: Decimal = Field(ge=0)
    notes: str = ""
    machine_count: Optional[int] = None
    transaction_count: Optional[int] = None


class ActualFeeRequest(BaseModel):
    actual_software_fee: Decimal = Field(ge=0)
    notes: str = ""


class ApproveRequest(BaseModel):
    notes: str = ""


class FlagRequest(BaseModel):
    flagged_reason: str


class ResolveRequest(BaseModel):
    notes: str


class PaymentSentRequest(BaseModel):
    amount_sent: Decimal = Field(gt=0)
    payment_method: PaymentMethod = "other"
    sent_at: Optional[datetime] = None


class PaymentConfirmRequest(BaseModel):
    amount_received: Optional[Decimal] = Field(default=None, gt=0)
    received_at: Optional[datetime] = None
    notes: str = ""


class DisputeRequest(BaseModel):
    reason: str


class ReconciliationResponse(BaseModel):
    reconciliation_id: int
    store_id: str
    reconciliation_date: date
    venue_gaming_revenue: Decimal
    software_fee_percentage: Decimal
    expected_software_fee: Decimal
    actual_software_fee: Optional[Decimal]
    variance: Optional[Decimal]
    variance_percentage: Optional[Decimal]
    compliance_score: Optional[int]
    reconciliation_status: ReconciliationStatus
    settlement_status: SettlementStatus
    submitted_by: str
    submitted_at: datetime
    approved_by: Optional[str]
    approved_at: Optional[datetime]
    flagged_reason: Optional[str]
    resolved_by: Optional[str]
    resolved_at: Optional[datetime]
    payment_method: Optional[str]
    payment_sent_at: Optional[datetime]
    amount_sent: Optional[Decimal]
    payment_received_at: Optional[datetime]
    amount_received: Optional[Decimal]
    payment_confirmed_by: Optional[str]
    notes: Optional[str]
    machine_count: Optional[int]
    transaction_count: Optional[int]

    class Config:
        from_attributes = True


class VenueComplianceStatsResponse(BaseModel):
    store_id: str
    days: int
    total_reconciliations: int
    average_compliance_score: Optional[Decimal]
    total_variance: Decimal
    flagged_count: int
    approved_count: int
    total_expected_fees: Decimal
    total_actual_fees: Decimal
    rating: str

    class Config:
        from_attributes = True


class VenueDashboardResponse(BaseModel):
    stats: VenueComplianceStatsResponse
    recent_reconciliations: List[ReconciliationResponse]
    pending_count: int
    compliance_rating: str

    class Config:
        from_attributes = True


class LowComplianceVenueResponse(BaseModel):
    store_id: str
    average_score: Decimal
    count: int

    class Config:
        from_attributes = True


class SystemComplianceResponse(BaseModel):
    as_of: date
    total_stores: int
    today_submissions: int
    submission_rate: int
    pending_reconciliations: int
    flagged_reconciliations: int
    low_compliance_venues: List[LowComplianceVenueResponse]
    system_health: str

    class Config:
        from_attributes = True


class MissingVenueResponse(BaseModel):
    store_id: str
    store_name: str
    city: Optional[str]
    state: Optional[str]

    class Config:
        from_attributes = True


class MissingReconciliationsResponse(BaseModel):
    reconciliation_date: date
    missing: List[MissingVenueResponse]


class OutstandingPaymentsResponse(BaseModel):
    store_id: str
    reconciliations: List[ReconciliationResponse]
    total_outstanding: Decimal
    count: int

    class Config:
        from_attributes = True
