import os
from decimal import Decimal
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Every "business day" (daily cashout limits, reconciliation dates,
# dashboards) is cut in this one timezone.
SETTLEMENT_TIMEZONE = ZoneInfo(os.getenv("SETTLEMENT_TIMEZONE", "America/New_York"))

# Used when no active rate config exists; callers see is_default=True.
DEFAULT_TOKENS_PER_DOLLAR = Decimal("1000")
DEFAULT_MIN_CASHOUT = Decimal("5")
DEFAULT_MAX_CASHOUT_PER_TRANSACTION = Decimal("500")
DEFAULT_DAILY_LIMIT_PER_CUSTOMER = Decimal("1000")
DEFAULT_DAILY_LIMIT_PER_STAFF = Decimal("5000")
DEFAULT_VENUE_COMMISSION_PERCENT = Decimal("0")

MIN_REVERSAL_REASON_LENGTH = 5
MAX_CONFIG_NOTES_LENGTH = 500

VARIANCE_FLAG_THRESHOLD_PCT = Decimal("10")
TIMELY_SUBMISSION_HOURS = 24
TIMELY_SUBMISSION_BONUS = Decimal("5")
COMPLIANT_SCORE = 90
LOW_COMPLIANCE_SCORE = 80
VENUE_STATS_LOOKBACK_DAYS = 30
LOW_COMPLIANCE_LOOKBACK_DAYS = 7
