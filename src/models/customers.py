from src.api.database.database import Base
from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    Integer,
    Numeric,
    String,
    TIMESTAMP,
    func,
)


class Customer(Base):
    # Customer record owned by the account system; the settlement engine only
    # touches token_balance / total_withdrawn through conditional updates.
    __tablename__ = "customers"
    __table_args__ = (
        CheckConstraint("token_balance >= 0", name="ck_customers_token_balance_non_negative"),
    )

    customer_id = Column(Integer, primary_key=True, nullable=False)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    email = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    token_balance = Column(BigInteger, nullable=False, server_default="0")
    total_withdrawn = Column(Numeric(14, 4), nullable=False, server_default="0")
    is_active = Column(Boolean, nullable=False, server_default="1")
    balance_updated_at = Column(TIMESTAMP(timezone=True), nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
