from .cashout import CashoutEngine, generate_reference_id
from .compliance import (
    VarianceAssessment,
    assess_variance,
    compliance_rating,
    compliance_score,
    expected_software_fee,
    is_submission_timely,
    system_health,
)
from .errors import (
    AlreadyReversed,
    DuplicateSubmission,
    InsufficientBalance,
    InvalidTransition,
    LimitExceeded,
    NotFound,
    PersistenceFailure,
    SettlementError,
    ValidationError,
)
from .rate_config import (
    ExchangeRate,
    RateConfigInput,
    RateConfigRepository,
    RateConfigStore,
    SqlRateConfigRepository,
)
from .reconciliation import (
    LowComplianceVenue,
    OutstandingPayments,
    ReconciliationEngine,
    SystemComplianceOverview,
    VenueComplianceStats,
    VenueDashboard,
    is_compliant,
    needs_attention,
)
from .transactions import (
    CashoutHistory,
    CashoutHistoryFilters,
    CashoutSummary,
    CustomerBalance,
    DailyCashoutReport,
    SettlementQueryService,
    SettlementResult,
)
from .unit_of_work import atomic, read_guard

__all__ = [
    "CashoutEngine",
    "generate_reference_id",
    "VarianceAssessment",
    "assess_variance",
    "compliance_rating",
    "compliance_score",
    "expected_software_fee",
    "is_submission_timely",
    "system_health",
    "AlreadyReversed",
    "DuplicateSubmission",
    "InsufficientBalance",
    "InvalidTransition",
    "LimitExceeded",
    "NotFound",
    "PersistenceFailure",
    "SettlementError",
    "ValidationError",
    "ExchangeRate",
    "RateConfigInput",
    "RateConfigRepository",
    "RateConfigStore",
    "SqlRateConfigRepository",
    "LowComplianceVenue",
    "OutstandingPayments",
    "ReconciliationEngine",
    "SystemComplianceOverview",
    "VenueComplianceStats",
    "VenueDashboard",
    "is_compliant",
    "needs_attention",
    "CashoutHistory",
    "CashoutHistoryFilters",
    "CashoutSummary",
    "CustomerBalance",
    "DailyCashoutReport",
    "SettlementQueryService",
    "SettlementResult",
    "atomic",
    "read_guard",
]
