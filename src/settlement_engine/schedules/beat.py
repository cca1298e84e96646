from celery.schedules import crontab

beat_schedule = {
    # Venues report the previous business day; check for gaps at 10:00 AM EST.
    "missing_reconciliations_daily": {
        "task": "settlement_engine.missing_reconciliations",
        "schedule": crontab(minute=0, hour=10),
        "args": (),
    },
    # System compliance snapshot at end of day.
    "compliance_overview_daily": {
        "task": "settlement_engine.compliance_overview",
        "schedule": crontab(minute=0, hour=23),
        "args": (),
    },
}
