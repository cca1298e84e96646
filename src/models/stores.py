from src.api.database.database import Base
from sqlalchemy import Column, Numeric, String, TIMESTAMP, func, Index

STORE_STATUS_ACTIVE = "active"
STORE_STATUS_INACTIVE = "inactive"


class Store(Base):
    # Venue master data. Read-only from the settlement engine's point of view.
    __tablename__ = "stores"
    __table_args__ = (Index("ix_stores_status", "status"),)

    store_id = Column(String, primary_key=True, nullable=False)
    store_name = Column(String, nullable=False)
    city = Column(String, nullable=True)
    state = Column(String, nullable=True)
    fee_percentage = Column(Numeric(5, 2), nullable=False, server_default="0")
    status = Column(String, nullable=False, server_default=STORE_STATUS_ACTIVE)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
