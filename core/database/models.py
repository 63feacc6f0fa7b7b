# Database models for the account store
from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, UniqueConstraint, Index
from sqlalchemy.sql import func
from core.config.settings import DECIMAL_SCALE
from .connection import Base

MONEY = Numeric(precision=28, scale=DECIMAL_SCALE, asdecimal=True)


class User(Base):
    """The single simulated account"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    email = Column(String, nullable=True)
    cash = Column(MONEY, nullable=False)
    currency = Column(String(8), nullable=False, default="USD")
    # Incremented on every applied execution (optimistic concurrency)
    version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class PortfolioPosition(Base):
    """Active position per symbol; rows with zero quantity are deleted"""
    __tablename__ = "portfolio"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    symbol = Column(String, nullable=False)
    quantity = Column(MONEY, nullable=False)
    average_price = Column(MONEY, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "symbol", name="uq_portfolio_user_symbol"),
    )


class TradeRecord(Base):
    """Append-only trade ledger"""
    __tablename__ = "trades"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    symbol = Column(String, nullable=False)
    type = Column(String(4), nullable=False)  # buy|sell
    price = Column(MONEY, nullable=False)
    quantity = Column(MONEY, nullable=False)
    fee = Column(MONEY, nullable=False, default=0)
    timestamp = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_trades_user_time", "user_id", "timestamp"),
    )
