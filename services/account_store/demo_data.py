from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional, Tuple

from core.config.settings import AccountSettings
from core.trading.models import Account, OrderSide, Position, Trade


def demo_snapshot(
    settings: AccountSettings,
    now: Optional[datetime] = None,
) -> Tuple[Account, List[Position], List[Trade]]:
    """Demo account used when no persistent store is configured."""
    now = now or datetime.now(timezone.utc)
    account = Account(
        cash=settings.starting_cash,
        currency=settings.currency,
        email=settings.email,
    )
    positions = [
        Position(symbol="AAPL", quantity=Decimal("12"), average_price=Decimal("170.12")),
        Position(symbol="BTC", quantity=Decimal("0.4"), average_price=Decimal("28000.0")),
    ]
    trades = [
        Trade(
            id=1,
            symbol="AAPL",
            side=OrderSide.BUY,
            price=Decimal("168.25"),
            quantity=Decimal("10"),
            timestamp=now - timedelta(days=1),
        ),
    ]
    return account, positions, trades


def empty_snapshot(settings: AccountSettings) -> Tuple[Account, List[Position], List[Trade]]:
    account = Account(
        cash=settings.starting_cash,
        currency=settings.currency,
        email=settings.email,
    )
    return account, [], []
