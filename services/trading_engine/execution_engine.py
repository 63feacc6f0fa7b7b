from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Optional

from core.config.settings import TradingSettings
from core.logging import get_trading_logger_safe
from core.trading.models import (
    Account,
    Execution,
    ExecutionOutcome,
    OrderRequest,
    OrderSide,
    OrderType,
    Position,
    Quote,
    Rejection,
    RejectionKind,
    Trade,
)
from core.utils.exceptions import QuoteUnavailableError

ZERO = Decimal("0")
ONE = Decimal("1")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _positive(value: Optional[Decimal]) -> bool:
    return value is not None and value.is_finite() and value > ZERO


def _decimal_places(value: Decimal) -> int:
    # Trailing zeros do not count; normalize() would round past 28 digits
    _, digits, exponent = value.as_tuple()
    while exponent < 0 and len(digits) > 1 and digits[-1] == 0:
        digits = digits[:-1]
        exponent += 1
    return max(0, -exponent)


class ExecutionEngine:
    """
    Stateless paper execution engine.

    Each call is a pure function of (order, quote, account, position). It
    decides whether the order fills, derives the execution price, fee and
    cash delta, and returns the new account, the new position (None when
    it is closed out) and the trade to append. A rejection carries no
    mutation; the inputs are never modified.
    """

    def __init__(self, settings: TradingSettings, clock: Callable[[], datetime] = _utcnow):
        self.slippage_rate = Decimal(settings.slippage_rate)
        self.fee_rate = Decimal(settings.fee_rate)
        self.decimal_places = settings.decimal_places
        self._clock = clock
        self.logger = get_trading_logger_safe("execution_engine")

    def validate(self, order: OrderRequest) -> Optional[Rejection]:
        """Request preconditions; returns an InvalidRequest rejection or None."""
        if not order.symbol:
            return self._invalid("Missing trade details.", field="symbol")
        if order.side is None:
            return self._invalid("Missing trade details.", field="side")
        if order.quantity is None:
            return self._invalid("Missing trade details.", field="quantity")
        if not _positive(order.quantity):
            return self._invalid("Quantity must be greater than zero.", field="quantity",
                                 value=str(order.quantity))
        if _decimal_places(order.quantity) > self.decimal_places:
            return self._invalid(f"Quantity supports at most {self.decimal_places} decimal places.",
                                 field="quantity", value=str(order.quantity))
        if order.order_type == OrderType.LIMIT and not _positive(order.limit_price):
            return self._invalid("Limit orders require a positive limit price.",
                                 field="limit_price", value=str(order.limit_price))
        if order.order_type == OrderType.LIMIT and _decimal_places(order.limit_price) > self.decimal_places:
            return self._invalid(f"Limit price supports at most {self.decimal_places} decimal places.",
                                 field="limit_price", value=str(order.limit_price))
        return None

    def derive_execution_price(self, side: OrderSide, latest_price: Decimal) -> Decimal:
        """Buys pay up, sells receive less, by the fixed slippage rate."""
        if side == OrderSide.BUY:
            return latest_price * (ONE + self.slippage_rate)
        return latest_price * (ONE - self.slippage_rate)

    @staticmethod
    def limit_crosses(side: OrderSide, latest_price: Decimal, limit_price: Decimal) -> bool:
        if side == OrderSide.BUY:
            return latest_price <= limit_price
        return latest_price >= limit_price

    def execute(
        self,
        order: OrderRequest,
        quote: Quote,
        account: Account,
        position: Optional[Position],
    ) -> ExecutionOutcome:
        rejection = self.validate(order)
        if rejection is not None:
            return rejection

        if position is not None and position.symbol != order.symbol:
            raise ValueError(
                f"Position for {position.symbol} passed with order for {order.symbol}"
            )

        latest_price = quote.latest_price
        if not _positive(latest_price):
            raise QuoteUnavailableError(
                "Quote has no usable price", symbol=order.symbol, source=quote.source,
                details={"latest_price": str(latest_price)},
            )

        side = order.side
        quantity = order.quantity

        # 1. Limit gate
        if order.order_type == OrderType.LIMIT and not self.limit_crosses(
            side, latest_price, order.limit_price
        ):
            return Rejection(
                kind=RejectionKind.LIMIT_NOT_FILLED,
                message="Limit order not filled at current market price.",
                details={
                    "symbol": order.symbol,
                    "side": side.value,
                    "limit_price": str(order.limit_price),
                    "market_price": str(latest_price),
                },
            )

        # 2. Slippage-adjusted price, limit orders included
        execution_price = self.derive_execution_price(side, latest_price)

        # 3. Fee on notional
        notional = execution_price * quantity
        fee = notional * self.fee_rate
        trade_cost = notional + fee if side == OrderSide.BUY else notional - fee

        held_quantity = position.quantity if position is not None else ZERO
        held_average = position.average_price if position is not None else ZERO

        # 4. Affordability / coverage
        if side == OrderSide.BUY:
            if account.cash < trade_cost:
                return Rejection(
                    kind=RejectionKind.INSUFFICIENT_CASH,
                    message="Insufficient cash.",
                    details={
                        "required": str(trade_cost),
                        "available": str(account.cash),
                    },
                )
        elif position is None or held_quantity < quantity:
            return Rejection(
                kind=RejectionKind.INSUFFICIENT_HOLDINGS,
                message="Not enough holdings to sell.",
                details={
                    "symbol": order.symbol,
                    "requested": str(quantity),
                    "held": str(held_quantity),
                },
            )

        # 5-6. Position and cash
        if side == OrderSide.BUY:
            new_quantity = held_quantity + quantity
            new_average = (held_quantity * held_average + quantity * execution_price) / new_quantity
            new_position: Optional[Position] = Position(
                symbol=order.symbol, quantity=new_quantity, average_price=new_average
            )
            new_cash = account.cash - trade_cost
        else:
            new_quantity = held_quantity - quantity
            new_position = None
            if new_quantity > ZERO:
                new_position = position.model_copy(update={"quantity": new_quantity})
            new_cash = account.cash + trade_cost

        # 7. Trade record
        trade = Trade(
            symbol=order.symbol,
            side=side,
            price=execution_price,
            quantity=quantity,
            fee=fee,
            timestamp=self._clock(),
        )

        self.logger.info("Paper order filled",
                         symbol=order.symbol,
                         side=side.value,
                         order_type=order.order_type.value,
                         quantity=str(quantity),
                         market_price=str(latest_price),
                         execution_price=str(execution_price),
                         fee=str(fee),
                         trade_cost=str(trade_cost),
                         position_closed=new_position is None)

        return Execution(
            order=order,
            account=account.model_copy(update={"cash": new_cash}),
            position=new_position,
            trade=trade,
            fee=fee,
            trade_cost=trade_cost,
        )

    @staticmethod
    def _invalid(message: str, **details) -> Rejection:
        return Rejection(kind=RejectionKind.INVALID_REQUEST, message=message, details=details)
